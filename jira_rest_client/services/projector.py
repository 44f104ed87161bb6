"""Mapping between field sets and JIRA create/update/wire payloads."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from jira_rest_client.core.logging import logger
from jira_rest_client.models.fields import (
    FieldDirection,
    FieldKind,
    FieldRegistry,
    FieldSet,
    FieldSpec,
    default_registry,
)
from jira_rest_client.models.issue import (
    Attachment,
    Comment,
    Issue,
    IssueFields,
    IssueLink,
    JiraUser,
    Priority,
    Resolution,
    Status,
    Timetracking,
)


def _comments(value: Any) -> list[Comment]:
    # issue payloads wrap comments in a paging container, the comment endpoint does too
    if isinstance(value, dict):
        value = value.get("comments") or []
    return [Comment.model_validate(item) for item in value]


_DECODERS: Dict[FieldKind, Callable[[Any], Any]] = {
    FieldKind.TEXT: lambda value: value,
    FieldKind.LABELS: lambda value: [str(label) for label in value],
    FieldKind.TIMETRACKING: Timetracking.model_validate,
    FieldKind.STATUS: Status.model_validate,
    FieldKind.USER: JiraUser.model_validate,
    FieldKind.USERS: lambda value: [JiraUser.model_validate(item) for item in value],
    FieldKind.PRIORITY: Priority.model_validate,
    FieldKind.RESOLUTION: Resolution.model_validate,
    FieldKind.SECONDS: int,
    FieldKind.LINKS: lambda value: [IssueLink.model_validate(item) for item in value],
    FieldKind.ATTACHMENTS: lambda value: [Attachment.model_validate(item) for item in value],
    FieldKind.COMMENTS: _comments,
    FieldKind.RAW: lambda value: value,
}


def _is_unset(spec: FieldSpec, value: Any) -> bool:
    if value is None:
        return True
    if spec.kind is FieldKind.TIMETRACKING:
        return getattr(value, "originalEstimate", None) is None
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _encode(spec: FieldSpec, value: Any) -> Any:
    if spec.kind is FieldKind.TIMETRACKING:
        return {"originalEstimate": value.originalEstimate}
    if spec.kind is FieldKind.LABELS:
        return list(value)
    return value


class FieldProjector:
    """
    PUBLIC_INTERFACE
    Converts field sets into partial create/update payloads and decodes wire
    field maps back into IssueFields. Works only through the FieldSet
    capability and the schema registry it is built with.
    """

    def __init__(self, registry: Optional[FieldRegistry] = None) -> None:
        self.registry = registry or default_registry()

    def _project(self, field_set: FieldSet, direction: FieldDirection) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for name in field_set.field_names():
            spec = self.registry.lookup(name)
            if spec is None or not spec.direction.allows(direction):
                continue
            value = field_set.get_field(name)
            if _is_unset(spec, value):
                continue
            payload[spec.wire_key] = _encode(spec, value)
        return payload

    # PUBLIC_INTERFACE
    def to_create_payload(self, field_set: FieldSet) -> Dict[str, Any]:
        """Sparse field map for an issue create request."""
        return self._project(field_set, FieldDirection.CREATE)

    # PUBLIC_INTERFACE
    def to_update_payload(self, field_set: FieldSet) -> Dict[str, Any]:
        """Field map for an update request, each value wrapped in a single "set" operation."""
        return {key: [{"set": value}] for key, value in self._project(field_set, FieldDirection.UPDATE).items()}

    # PUBLIC_INTERFACE
    def from_wire_payload(self, data: Optional[Dict[str, Any]], field_set: Optional[FieldSet] = None) -> FieldSet:
        """
        Decode a wire ``fields`` map. Registered and extension keys are kept,
        anything else is ignored. Decodes into ``field_set`` when given,
        otherwise into a fresh IssueFields.
        """
        target: FieldSet = field_set if field_set is not None else IssueFields()
        for wire_key, value in (data or {}).items():
            spec = self.registry.lookup_wire(wire_key)
            if spec is None or value is None:
                continue
            target.set_field(spec.name, _DECODERS[spec.kind](value))
        return target

    # PUBLIC_INTERFACE
    def issue_from_wire(self, data: Dict[str, Any]) -> Issue:
        """Decode a full issue record, fields included."""
        issue = Issue.model_validate({k: v for k, v in data.items() if k != "fields"})
        self.from_wire_payload(data.get("fields"), issue.fields)
        return issue

    # PUBLIC_INTERFACE
    def create_body(self, project_key: str, issue_type: str, field_set: FieldSet) -> Dict[str, Any]:
        """Full request body for ``POST issue``."""
        fields = self.to_create_payload(field_set)
        fields["project"] = {"key": project_key}
        fields["issuetype"] = {"name": issue_type}
        logger.debug(
            "create_payload_built",
            extra={"project_key": project_key, "issue_type": issue_type, "field_keys": sorted(fields)},
        )
        return {"fields": fields}

    # PUBLIC_INTERFACE
    def update_body(self, field_set: FieldSet) -> Dict[str, Any]:
        """Full request body for ``PUT issue/<id>``."""
        update = self.to_update_payload(field_set)
        logger.debug("update_payload_built", extra={"field_keys": sorted(update)})
        return {"update": update}
