"""Synchronous client for the JIRA REST API."""

from jira_rest_client.clients.jira_client import JiraClient
from jira_rest_client.clients.search import EnumeratorState, IssueEnumerator, PageFetcher
from jira_rest_client.clients.transport import JiraTransport
from jira_rest_client.core.config import Settings, get_settings
from jira_rest_client.core.errors import (
    AmbiguityFailure,
    ErrorKind,
    JiraClientError,
    NotFound,
    QueryFailure,
    Result,
    StallDetected,
    StatusMismatch,
    TransportFailure,
)
from jira_rest_client.core.logging import configure_logging
from jira_rest_client.models.fields import FieldDirection, FieldKind, FieldRegistry, FieldSet, FieldSpec, default_registry
from jira_rest_client.models.issue import Issue, IssueFields, IssueLink, IssueRef, SearchPage, Timetracking
from jira_rest_client.services.links import expand_links, find_issue_link, normalize_link
from jira_rest_client.services.projector import FieldProjector
from jira_rest_client.services.query import build_jql

__version__ = "0.1.0"

__all__ = [
    "AmbiguityFailure",
    "EnumeratorState",
    "ErrorKind",
    "FieldDirection",
    "FieldKind",
    "FieldProjector",
    "FieldRegistry",
    "FieldSet",
    "FieldSpec",
    "Issue",
    "IssueEnumerator",
    "IssueFields",
    "IssueLink",
    "IssueRef",
    "JiraClient",
    "JiraClientError",
    "JiraTransport",
    "NotFound",
    "PageFetcher",
    "QueryFailure",
    "Result",
    "SearchPage",
    "Settings",
    "StallDetected",
    "StatusMismatch",
    "Timetracking",
    "TransportFailure",
    "build_jql",
    "configure_logging",
    "default_registry",
    "expand_links",
    "find_issue_link",
    "get_settings",
    "normalize_link",
]
