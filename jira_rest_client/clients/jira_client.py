from __future__ import annotations

from contextlib import contextmanager
from typing import Any, BinaryIO, Dict, Iterator, List, Mapping, Optional, Sequence, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from jira_rest_client.clients.search import IssueEnumerator, PageFetcher
from jira_rest_client.clients.transport import JiraTransport, assert_status, decode_json
from jira_rest_client.core.config import Settings, get_settings
from jira_rest_client.core.errors import AmbiguityFailure, JiraClientError, NotFound, QueryFailure
from jira_rest_client.core.logging import logger
from jira_rest_client.models.fields import FieldRegistry, FieldSet
from jira_rest_client.models.issue import (
    Attachment,
    Comment,
    Issue,
    IssueFields,
    IssueLink,
    IssueRef,
    IssueType,
    JiraUser,
    Priority,
    Project,
    RemoteLink,
    ServerInfo,
    Status,
    Transition,
)
from jira_rest_client.services.links import expand_links, find_issue_link
from jira_rest_client.services.projector import FieldProjector
from jira_rest_client.services.query import build_jql

M = TypeVar("M", bound=BaseModel)

# Reported to JIRA as the owning application of remote links created by this client.
REMOTE_LINK_APPLICATION = {"type": "jira_rest_client", "name": "JIRA REST client"}


def _single(items: Sequence[M], what: str) -> M:
    if not items:
        raise NotFound(f"No {what} found")
    if len(items) > 1:
        raise AmbiguityFailure(f"Expected one {what}, found {len(items)}")
    return items[0]


class JiraClient:
    """
    PUBLIC_INTERFACE
    Synchronous JIRA REST client.

    Search results are enumerated lazily page by page; every issue handed out
    has its links normalized against itself. Create and update payloads are
    produced by the FieldProjector from any FieldSet. Each call blocks on the
    caller's thread; nothing is cached or retried.

    Example:
        >>> with JiraClient("https://jira.example.com", "user", "token") as client:
        ...     for issue in client.enumerate_issues("PROJ", "Bug"):
        ...         print(issue.key, issue.fields.summary)
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        api_version: str = "2",
        timeout: float = 15.0,
        page_size: int = 50,
        registry: Optional[FieldRegistry] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.transport = JiraTransport(
            base_url=base_url,
            username=username,
            password=password,
            api_version=api_version,
            timeout=timeout,
            transport=transport,
        )
        self.page_size = page_size
        self.projector = FieldProjector(registry)
        self.fetcher = PageFetcher(self.transport, self.projector)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        registry: Optional[FieldRegistry] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "JiraClient":
        """Build a client from application settings (environment / .env by default)."""
        settings = settings or get_settings()
        missing = [
            name
            for name, value in (
                ("JIRA_BASE_URL", settings.JIRA_BASE_URL),
                ("JIRA_EMAIL", settings.JIRA_EMAIL),
                ("JIRA_API_TOKEN", settings.JIRA_API_TOKEN),
            )
            if not value
        ]
        if missing:
            logger.warning("missing_env_variables", extra={"missing": missing})
            raise ValueError(f"JIRA configuration is incomplete: {', '.join(missing)}")
        return cls(
            base_url=settings.JIRA_BASE_URL or "",
            username=settings.JIRA_EMAIL or "",
            password=settings.JIRA_API_TOKEN or "",
            api_version=settings.JIRA_API_VERSION,
            timeout=settings.JIRA_TIMEOUT_SECONDS,
            page_size=settings.JIRA_PAGE_SIZE,
            registry=registry,
            transport=transport,
        )

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "JiraClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextmanager
    def _operation(self, description: str) -> Iterator[None]:
        """Stamp client errors raised inside the block with the operation that failed."""
        try:
            yield
        except JiraClientError as exc:
            if exc.operation is None:
                exc.operation = description
            logger.error(
                "jira_operation_failed",
                extra={
                    "operation": exc.operation,
                    "kind": exc.kind.value,
                    "status_code": exc.status_code,
                    "error": exc.message,
                },
            )
            raise
        except (ValidationError, AttributeError, TypeError, ValueError) as exc:
            logger.error("jira_operation_failed", extra={"operation": description, "error": str(exc)})
            raise QueryFailure("Unexpected response structure from JIRA", operation=description) from exc

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return decode_json(assert_status(self.transport.request("GET", path, params=params), 200))

    # Issues

    # PUBLIC_INTERFACE
    def get_issues(self, project_key: str, issue_type: Optional[str] = None) -> List[Issue]:
        """Return all issues (optionally of one type) of a project, fully materialized."""
        return list(self.enumerate_issues(project_key, issue_type))

    # PUBLIC_INTERFACE
    def enumerate_issues(self, project_key: Optional[str] = None, issue_type: Optional[str] = None) -> IssueEnumerator:
        """Lazily enumerate the issues of a project, optionally restricted to one issue type."""
        return self.enumerate_issues_by_query(build_jql(project_key, issue_type))

    # PUBLIC_INTERFACE
    def enumerate_issues_by_query(
        self,
        jql: str,
        fields: Optional[Sequence[str]] = None,
        start_at: int = 0,
    ) -> IssueEnumerator:
        """Lazily enumerate the issues matching ``jql`` starting at offset ``start_at``."""
        logger.info("enumerate_issues", extra={"jql": jql, "start_at": start_at, "page_size": self.page_size})
        return IssueEnumerator(
            self.fetcher,
            jql,
            start_at=start_at,
            page_size=self.page_size,
            fields=fields,
            transform=expand_links,
        )

    # PUBLIC_INTERFACE
    def load_issue(self, issue_ref: IssueRef | str) -> Issue:
        """Load one issue by ref, id or key, including its comments and watchers."""
        identifier = issue_ref if isinstance(issue_ref, str) else issue_ref.jira_identifier
        with self._operation("Could not load issue"):
            issue = self.projector.issue_from_wire(self._get_json(f"issue/{identifier}"))
            issue.fields.comments = self.get_comments(issue)
            issue.fields.watchers = self.get_watchers(issue)
            return expand_links(issue)

    # PUBLIC_INTERFACE
    def create_issue(
        self,
        project_key: str,
        issue_type: str,
        fields: FieldSet | str,
    ) -> Issue:
        """Create an issue from a field set (or just a summary) and return it reloaded."""
        field_set = IssueFields(summary=fields) if isinstance(fields, str) else fields
        with self._operation("Could not create issue"):
            body = self.projector.create_body(project_key, issue_type, field_set)
            resp = assert_status(self.transport.request("POST", "issue", json=body), 201)
            created = IssueRef.model_validate(decode_json(resp))
            logger.info("issue_created", extra={"issue_id": created.id, "issue_key": created.key})
            return self.load_issue(created)

    # PUBLIC_INTERFACE
    def update_issue(self, issue: Issue) -> Issue:
        """Write every set field of ``issue`` back with "set" operations and return it reloaded."""
        with self._operation("Could not update issue"):
            body = self.projector.update_body(issue.fields)
            assert_status(self.transport.request("PUT", f"issue/{issue.jira_identifier}", json=body), 204)
            logger.info("issue_updated", extra={"issue_id": issue.id, "issue_key": issue.key})
            return self.load_issue(issue)

    # PUBLIC_INTERFACE
    def delete_issue(self, issue: IssueRef) -> None:
        """Delete an issue together with its sub-tasks."""
        with self._operation("Could not delete issue"):
            resp = self.transport.request("DELETE", f"issue/{issue.id}", params={"deleteSubtasks": "true"})
            assert_status(resp, 204)

    # Transitions

    # PUBLIC_INTERFACE
    def get_transitions(self, issue: IssueRef) -> List[Transition]:
        with self._operation("Could not load issue transitions"):
            data = self._get_json(f"issue/{issue.jira_identifier}/transitions", params={"expand": "transitions.fields"})
            return [Transition.model_validate(item) for item in data.get("transitions") or []]

    # PUBLIC_INTERFACE
    def transition_issue(self, issue: IssueRef, transition: Transition) -> Issue:
        """Move an issue through a workflow transition and return it reloaded."""
        payload: Dict[str, Any] = {"transition": {"id": transition.id}}
        if transition.fields:
            payload["fields"] = transition.fields
        with self._operation("Could not transition issue state"):
            assert_status(self.transport.request("POST", f"issue/{issue.id}/transitions", json=payload), 204)
            return self.load_issue(issue)

    # Watchers and comments

    # PUBLIC_INTERFACE
    def get_watchers(self, issue: IssueRef) -> List[JiraUser]:
        with self._operation("Could not load watchers"):
            data = self._get_json(f"issue/{issue.id}/watchers")
            return [JiraUser.model_validate(item) for item in data.get("watchers") or []]

    # PUBLIC_INTERFACE
    def get_comments(self, issue: IssueRef) -> List[Comment]:
        with self._operation("Could not load comments"):
            data = self._get_json(f"issue/{issue.id}/comment")
            return [Comment.model_validate(item) for item in data.get("comments") or []]

    # PUBLIC_INTERFACE
    def create_comment(self, issue: IssueRef, body: str) -> Comment:
        with self._operation("Could not create comment"):
            resp = self.transport.request("POST", f"issue/{issue.id}/comment", json={"body": body})
            return Comment.model_validate(decode_json(assert_status(resp, 201)))

    # PUBLIC_INTERFACE
    def delete_comment(self, issue: IssueRef, comment: Comment) -> None:
        with self._operation("Could not delete comment"):
            assert_status(self.transport.request("DELETE", f"issue/{issue.id}/comment/{comment.id}"), 204)

    # Attachments

    # PUBLIC_INTERFACE
    def get_attachments(self, issue: IssueRef) -> List[Attachment]:
        return self.load_issue(issue).fields.attachments

    # PUBLIC_INTERFACE
    def create_attachment(self, issue: IssueRef, file: BinaryIO | bytes, file_name: str) -> Attachment:
        """Upload one file as an attachment of ``issue``."""
        with self._operation("Could not create attachment"):
            resp = self.transport.request(
                "POST",
                f"issue/{issue.jira_identifier}/attachments",
                files={"file": (file_name, file)},
                headers={"X-Atlassian-Token": "nocheck"},
            )
            data = decode_json(assert_status(resp, 200))
            return _single([Attachment.model_validate(item) for item in data], "attachment")

    # PUBLIC_INTERFACE
    def delete_attachment(self, attachment: Attachment) -> None:
        with self._operation("Could not delete attachment"):
            assert_status(self.transport.request("DELETE", f"attachment/{attachment.id}"), 204)

    # Issue links

    # PUBLIC_INTERFACE
    def get_issue_links(self, issue: IssueRef) -> List[IssueLink]:
        return self.load_issue(issue).fields.issue_links

    # PUBLIC_INTERFACE
    def load_issue_link(self, parent: IssueRef, child: IssueRef, relationship: str) -> Optional[IssueLink]:
        """Return the ``relationship`` link from ``parent`` to ``child``, or None when there is none."""
        with self._operation("Could not load issue link"):
            issue = self.load_issue(parent)
            return find_issue_link(issue.fields.issue_links, parent, child, relationship)

    # PUBLIC_INTERFACE
    def create_issue_link(self, parent: IssueRef, child: IssueRef, relationship: str) -> Optional[IssueLink]:
        """Link ``parent`` (inward) to ``child`` (outward) and return the stored link."""
        payload = {
            "type": {"name": relationship},
            "inwardIssue": {"id": parent.id},
            "outwardIssue": {"id": child.id},
        }
        with self._operation("Could not link issues"):
            assert_status(self.transport.request("POST", "issueLink", json=payload), 201)
            return self.load_issue_link(parent, child, relationship)

    # PUBLIC_INTERFACE
    def delete_issue_link(self, link: IssueLink) -> None:
        with self._operation("Could not delete issue link"):
            assert_status(self.transport.request("DELETE", f"issueLink/{link.id}"), 204)

    # Remote links

    # PUBLIC_INTERFACE
    def get_remote_links(self, issue: IssueRef) -> List[RemoteLink]:
        with self._operation("Could not load external links for issue"):
            return [RemoteLink.from_wire(item) for item in self._get_json(f"issue/{issue.id}/remotelink")]

    def _remote_link_by_id(self, issue: IssueRef, link_id: Optional[str]) -> RemoteLink:
        return _single([rl for rl in self.get_remote_links(issue) if rl.id == link_id], "remote link")

    # PUBLIC_INTERFACE
    def create_remote_link(self, issue: IssueRef, remote_link: RemoteLink) -> RemoteLink:
        payload = {
            "application": dict(REMOTE_LINK_APPLICATION),
            "object": {"url": remote_link.url, "title": remote_link.title, "summary": remote_link.summary},
        }
        with self._operation("Could not create external link for issue"):
            resp = self.transport.request("POST", f"issue/{issue.id}/remotelink", json=payload)
            created = decode_json(assert_status(resp, 201))
            link_id = None if created.get("id") is None else str(created["id"])
            return self._remote_link_by_id(issue, link_id)

    # PUBLIC_INTERFACE
    def update_remote_link(self, issue: IssueRef, remote_link: RemoteLink) -> RemoteLink:
        """Update the url/title/summary of a remote link; unset attributes are left unchanged."""
        update = remote_link.model_dump(include={"url", "title", "summary"}, exclude_none=True)
        with self._operation("Could not update external link for issue"):
            resp = self.transport.request("PUT", f"issue/{issue.id}/remotelink/{remote_link.id}", json={"object": update})
            assert_status(resp, 204)
            return self._remote_link_by_id(issue, remote_link.id)

    # PUBLIC_INTERFACE
    def delete_remote_link(self, issue: IssueRef, remote_link: RemoteLink) -> None:
        with self._operation("Could not delete external link for issue"):
            assert_status(self.transport.request("DELETE", f"issue/{issue.id}/remotelink/{remote_link.id}"), 204)

    # Metadata

    # PUBLIC_INTERFACE
    def get_issue_types(self) -> List[IssueType]:
        with self._operation("Could not load issue types"):
            return [IssueType.model_validate(item) for item in self._get_json("issuetype")]

    # PUBLIC_INTERFACE
    def get_issue_statuses(self) -> List[Status]:
        with self._operation("Could not load issue statuses"):
            return [Status.model_validate(item) for item in self._get_json("status")]

    # PUBLIC_INTERFACE
    def get_issue_priorities(self) -> List[Priority]:
        with self._operation("Could not load issue priorities"):
            return [Priority.model_validate(item) for item in self._get_json("priority")]

    # PUBLIC_INTERFACE
    def get_projects(self) -> List[Project]:
        with self._operation("Could not load projects"):
            return [Project.model_validate(item) for item in self._get_json("project")]

    # PUBLIC_INTERFACE
    def find_users(self, search: str) -> List[JiraUser]:
        with self._operation(f"Could not find user {search}"):
            return [JiraUser.model_validate(item) for item in self._get_json("user/search", params={"username": search})]

    # PUBLIC_INTERFACE
    def find_user(self, search: str) -> Optional[JiraUser]:
        users = self.find_users(search)
        return users[0] if users else None

    # PUBLIC_INTERFACE
    def get_server_info(self) -> ServerInfo:
        with self._operation("Could not retrieve server information"):
            return ServerInfo.model_validate(self._get_json("serverInfo"))

    # PUBLIC_INTERFACE
    def get_field_mappings(self, display_names: Mapping[str, str]) -> Dict[str, str]:
        """
        Discover custom field ids by display name.

        ``display_names`` maps a logical name to the field's display name, e.g.
        {"story_points": "Story points"}. Returns {"story_points": "customfield_10016"}
        for every name that was found; feed the result to FieldRegistry.with_alias.
        """
        wanted = {display.strip().lower(): name for name, display in display_names.items()}
        result: Dict[str, str] = {}
        with self._operation("Could not load field definitions"):
            for field in self._get_json("field"):
                field_name = (field.get("name") or "").strip().lower()
                field_id = field.get("id")
                if field_id and field_name in wanted:
                    result[wanted[field_name]] = field_id
        logger.debug("field_mappings_resolved", extra={"mappings": result})
        return result
