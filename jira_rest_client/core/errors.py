from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure taxonomy shared by every client error."""

    TRANSPORT = "transport"
    QUERY = "query"
    STATUS_MISMATCH = "status_mismatch"
    STALL = "stall"
    AMBIGUITY = "ambiguity"
    NOT_FOUND = "not_found"


class JiraClientError(Exception):
    """Represents an error interacting with the JIRA API."""

    kind: ErrorKind = ErrorKind.QUERY

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Any | None = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details
        self.operation = operation

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class TransportFailure(JiraClientError):
    """Network or connection level failure raised by the HTTP layer."""

    kind = ErrorKind.TRANSPORT


class QueryFailure(JiraClientError):
    """A request reached JIRA but did not produce a usable result."""

    kind = ErrorKind.QUERY


class StatusMismatch(QueryFailure):
    """JIRA answered with a status code other than the one the operation expects.

    ``details`` holds the raw response body for diagnostics.
    """

    kind = ErrorKind.STATUS_MISMATCH


class StallDetected(QueryFailure):
    """An enumeration received an empty page before reaching the declared total."""

    kind = ErrorKind.STALL


class AmbiguityFailure(JiraClientError):
    """A lookup expected to match at most one record matched several."""

    kind = ErrorKind.AMBIGUITY


class NotFound(JiraClientError):
    """A lookup expected to match exactly one record matched none."""

    kind = ErrorKind.NOT_FOUND


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    PUBLIC_INTERFACE
    Explicit value-or-error wrapper for callers that prefer returned error kinds.

    Usage:
        result = Result.capture(client.load_issue, "PROJ-1")
        if result.ok:
            issue = result.value
        elif result.kind is ErrorKind.NOT_FOUND:
            ...
    """

    value: Optional[T] = None
    error: Optional[JiraClientError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def capture(cls, func: Callable[..., T], *args: Any, **kwargs: Any) -> "Result[T]":
        """Call ``func`` and wrap either its return value or the client error it raised."""
        try:
            return cls(value=func(*args, **kwargs))
        except JiraClientError as exc:
            return cls(error=exc)
