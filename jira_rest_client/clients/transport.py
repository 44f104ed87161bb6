from __future__ import annotations

import base64
import threading
from typing import Any, Dict, Iterable, Optional

import httpx

from jira_rest_client.core.config import Settings
from jira_rest_client.core.errors import QueryFailure, StatusMismatch, TransportFailure
from jira_rest_client.core.logging import logger, timed_log_debug


class JiraTransport:
    """
    PUBLIC_INTERFACE
    Synchronous JIRA REST transport over httpx with basic auth.

    Executes exactly one request per call: no retries, no caching. Network
    level failures are raised as TransportFailure; status checking is left to
    the caller via ``assert_status``.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        api_version: str = "2",
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not base_url or not username or not password:
            raise ValueError("Missing JIRA configuration for client initialization.")
        self.base_url = base_url.rstrip("/")
        self.api_base_url = f"{self.base_url}/rest/api/{api_version}/"
        self.username = username
        self.password = password
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._client_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> "JiraTransport":
        return cls(
            base_url=settings.JIRA_BASE_URL or "",
            username=settings.JIRA_EMAIL or "",
            password=settings.JIRA_API_TOKEN or "",
            api_version=settings.JIRA_API_VERSION,
            timeout=settings.JIRA_TIMEOUT_SECONDS,
            transport=transport,
        )

    def _basic_token(self) -> str:
        return base64.b64encode(f"{self.username}:{self.password}".encode("utf-8")).decode("ascii")

    def _get_client(self) -> httpx.Client:
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(
                    base_url=self.api_base_url,
                    headers={
                        "Accept": "application/json",
                        "Authorization": f"Basic {self._basic_token()}",
                    },
                    timeout=self.timeout,
                    transport=self._transport,
                )
            return self._client

    # PUBLIC_INTERFACE
    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        files: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Perform a single HTTP request relative to the REST API base."""
        with timed_log_debug("jira_http_request", extra={"method": method, "path": path}):
            try:
                resp = self._get_client().request(method, path, params=params, json=json, files=files, headers=headers)
            except httpx.HTTPError as exc:
                logger.error("jira_transport_error", extra={"method": method, "path": path, "error": str(exc)})
                raise TransportFailure(f"Transport level error: {exc}", details=str(exc)) from exc

        logger.debug(
            "jira_http_response",
            extra={"method": method, "path": path, "status_code": resp.status_code},
        )
        return resp

    def close(self) -> None:
        """Close underlying httpx client."""
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self) -> "JiraTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _safe_response_text(response: httpx.Response) -> str:
    try:
        return response.text
    except Exception:
        return "<no text>"


# PUBLIC_INTERFACE
def assert_status(response: httpx.Response, expected: int | Iterable[int]) -> httpx.Response:
    """Raise StatusMismatch, carrying the raw body, unless the response has an expected status."""
    allowed = {expected} if isinstance(expected, int) else set(expected)
    if response.status_code not in allowed:
        raise StatusMismatch(
            f"JIRA returned wrong status: {response.status_code} {response.reason_phrase}".rstrip(),
            status_code=response.status_code,
            details=_safe_response_text(response),
        )
    return response


# PUBLIC_INTERFACE
def decode_json(response: httpx.Response) -> Any:
    """Decode a JSON body, raising QueryFailure with the raw text when it is not JSON."""
    try:
        return response.json()
    except ValueError as exc:
        raise QueryFailure(
            "JIRA returned a body that is not valid JSON",
            status_code=response.status_code,
            details=_safe_response_text(response),
        ) from exc
