"""Paged JQL search: one-page fetcher and the lazy enumerator built on it."""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterator, Optional, Sequence

from pydantic import ValidationError

from jira_rest_client.clients.transport import JiraTransport, assert_status, decode_json
from jira_rest_client.core.errors import JiraClientError, QueryFailure, StallDetected
from jira_rest_client.core.logging import logger
from jira_rest_client.models.issue import Issue, SearchPage
from jira_rest_client.services.projector import FieldProjector

DEFAULT_PAGE_SIZE = 50


class PageFetcher:
    """
    PUBLIC_INTERFACE
    Executes one paged search request and decodes the page.
    """

    def __init__(self, transport: JiraTransport, projector: Optional[FieldProjector] = None) -> None:
        self.transport = transport
        self.projector = projector or FieldProjector()

    def fetch(
        self,
        jql: str,
        start_at: int,
        page_size: int,
        fields: Optional[Sequence[str]] = None,
    ) -> SearchPage:
        """Request ``page_size`` issues matching ``jql`` starting at offset ``start_at``."""
        params: Dict[str, Any] = {"jql": jql, "startAt": start_at, "maxResults": page_size}
        if fields is not None:
            params["fields"] = ",".join(str(f).strip() for f in fields if str(f).strip())

        resp = assert_status(self.transport.request("GET", "search", params=params), 200)
        data = decode_json(resp)
        try:
            page = SearchPage.model_validate(
                {
                    "startAt": data.get("startAt", start_at),
                    "maxResults": data.get("maxResults", page_size),
                    "total": data.get("total", 0),
                }
            )
            page.issues = [self.projector.issue_from_wire(item) for item in data.get("issues") or []]
        except (AttributeError, TypeError, ValueError, ValidationError) as exc:
            raise QueryFailure("Unexpected response structure from JIRA search", details=resp.text) from exc

        logger.debug(
            "search_page_fetched",
            extra={"start_at": start_at, "returned": len(page.issues), "total": page.total},
        )
        return page


class EnumeratorState(str, Enum):
    ACTIVE = "active"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class IssueEnumerator(Iterator[Issue]):
    """
    PUBLIC_INTERFACE
    Forward-only, pull-based iterator over every issue matching a query.

    Pages are fetched on demand. The offset advances by the number of issues
    actually returned and the latest ``total`` reported by JIRA decides when
    the enumeration is exhausted. An empty page before that point raises
    StallDetected. After any failure the instance stops yielding and must be
    discarded; use ``restart`` to re-issue the query from an explicit offset.
    Client errors raised while paging are stamped with ``operation``.

    Instances are not safe for concurrent pulls.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        jql: str,
        start_at: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        fields: Optional[Sequence[str]] = None,
        transform: Optional[Callable[[Issue], Issue]] = None,
        operation: Optional[str] = "Could not load issues",
    ) -> None:
        if start_at < 0:
            raise ValueError("start_at must be >= 0")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.fetcher = fetcher
        self.jql = jql
        self.start_at = start_at
        self.page_size = page_size
        self.fields = list(fields) if fields is not None else None
        self.transform = transform
        self.operation = operation

        self.offset = start_at
        self.total: Optional[int] = None
        self.pages_fetched = 0
        self.state = EnumeratorState.ACTIVE
        self._buffer: Deque[Issue] = deque()

    def __iter__(self) -> "IssueEnumerator":
        return self

    def __next__(self) -> Issue:
        while not self._buffer:
            if self.state is not EnumeratorState.ACTIVE:
                raise StopIteration
            try:
                self._fetch_next_page()
            except JiraClientError as exc:
                self._fail(exc)
                raise
            except Exception:
                self.state = EnumeratorState.FAILED
                raise
        issue = self._buffer.popleft()
        return self.transform(issue) if self.transform else issue

    def _fail(self, exc: JiraClientError) -> None:
        self.state = EnumeratorState.FAILED
        if exc.operation is None:
            exc.operation = self.operation
        logger.error(
            "jira_operation_failed",
            extra={
                "operation": exc.operation,
                "kind": exc.kind.value,
                "status_code": exc.status_code,
                "error": exc.message,
                "offset": self.offset,
            },
        )

    def _fetch_next_page(self) -> None:
        page = self.fetcher.fetch(self.jql, self.offset, self.page_size, self.fields)

        self.pages_fetched += 1
        self.total = page.total
        returned = len(page.issues)
        if returned == 0 and self.offset < page.total:
            logger.error(
                "enumeration_stalled",
                extra={"jql": self.jql, "offset": self.offset, "total": page.total},
            )
            raise StallDetected(
                f"Search returned no issues at offset {self.offset} of {page.total}",
                details={"jql": self.jql, "offset": self.offset, "total": page.total},
            )

        self.offset += returned
        self._buffer.extend(page.issues)
        if self.offset >= page.total:
            self.state = EnumeratorState.EXHAUSTED
            logger.debug(
                "enumeration_exhausted",
                extra={"jql": self.jql, "offset": self.offset, "total": page.total, "pages": self.pages_fetched},
            )

    def restart(self, start_at: Optional[int] = None) -> "IssueEnumerator":
        """Return a fresh enumerator for the same query, from ``start_at`` (defaults to the original start)."""
        return IssueEnumerator(
            self.fetcher,
            self.jql,
            start_at=self.start_at if start_at is None else start_at,
            page_size=self.page_size,
            fields=self.fields,
            transform=self.transform,
            operation=self.operation,
        )
