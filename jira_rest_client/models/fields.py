from __future__ import annotations

from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

# Custom fields are addressed on the wire by generated ids such as customfield_10016.
EXTENSION_PREFIX = "customfield_"


def is_extension_key(key: str) -> bool:
    """Return True when ``key`` follows the extension (custom) field naming convention."""
    return key.startswith(EXTENSION_PREFIX) and len(key) > len(EXTENSION_PREFIX)


class FieldKind(str, Enum):
    """Shape of a field value, used to decode wire payloads."""

    TEXT = "text"
    LABELS = "labels"
    TIMETRACKING = "timetracking"
    STATUS = "status"
    USER = "user"
    USERS = "users"
    PRIORITY = "priority"
    RESOLUTION = "resolution"
    SECONDS = "seconds"
    LINKS = "links"
    ATTACHMENTS = "attachments"
    COMMENTS = "comments"
    RAW = "raw"


class FieldDirection(str, Enum):
    """Which payloads a field may be written to. READ fields are only decoded."""

    CREATE = "create"
    UPDATE = "update"
    BOTH = "both"
    READ = "read"

    def allows(self, direction: "FieldDirection") -> bool:
        return self is FieldDirection.BOTH or self is direction


class FieldSpec(BaseModel):
    """Registry entry mapping a logical field name onto its wire key."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Logical field name used by field sets")
    wire_key: str = Field(..., description="Key used in JIRA payloads")
    kind: FieldKind = Field(default=FieldKind.RAW, description="Value shape")
    direction: FieldDirection = Field(default=FieldDirection.BOTH, description="Writable directions")


@runtime_checkable
class FieldSet(Protocol):
    """
    PUBLIC_INTERFACE
    Capability the projector relies on. Any object exposing these three methods
    can be turned into create/update payloads.
    """

    def field_names(self) -> Iterable[str]:
        ...

    def get_field(self, name: str) -> Any:
        ...

    def set_field(self, name: str, value: Any) -> None:
        ...


class FieldRegistry:
    """
    PUBLIC_INTERFACE
    Immutable schema registry: logical name -> FieldSpec.

    Names that are not registered but follow the extension convention resolve
    to a pass-through RAW spec whose wire key is the name itself.
    """

    def __init__(self, specs: Iterable[FieldSpec]) -> None:
        by_name: dict[str, FieldSpec] = {}
        by_wire_key: dict[str, FieldSpec] = {}
        for spec in specs:
            if spec.name in by_name:
                raise ValueError(f"Duplicate field name '{spec.name}'")
            if spec.wire_key in by_wire_key:
                raise ValueError(f"Duplicate wire key '{spec.wire_key}'")
            by_name[spec.name] = spec
            by_wire_key[spec.wire_key] = spec
        self._by_name = MappingProxyType(by_name)
        self._by_wire_key = MappingProxyType(by_wire_key)

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def lookup(self, name: str) -> Optional[FieldSpec]:
        """Resolve a logical name, falling back to extension pass-through."""
        spec = self._by_name.get(name)
        if spec is None and is_extension_key(name):
            spec = FieldSpec(name=name, wire_key=name)
        return spec

    def lookup_wire(self, wire_key: str) -> Optional[FieldSpec]:
        """Resolve a wire key, falling back to extension pass-through."""
        spec = self._by_wire_key.get(wire_key)
        if spec is None and is_extension_key(wire_key):
            spec = FieldSpec(name=wire_key, wire_key=wire_key)
        return spec

    def with_alias(
        self,
        name: str,
        wire_key: str,
        kind: FieldKind = FieldKind.RAW,
        direction: FieldDirection = FieldDirection.BOTH,
    ) -> "FieldRegistry":
        """Return a new registry that also maps ``name`` onto ``wire_key``."""
        return FieldRegistry([*self, FieldSpec(name=name, wire_key=wire_key, kind=kind, direction=direction)])


DEFAULT_FIELD_SPECS = (
    FieldSpec(name="summary", wire_key="summary", kind=FieldKind.TEXT),
    FieldSpec(name="description", wire_key="description", kind=FieldKind.TEXT),
    FieldSpec(name="labels", wire_key="labels", kind=FieldKind.LABELS),
    FieldSpec(name="time_tracking", wire_key="timetracking", kind=FieldKind.TIMETRACKING),
    FieldSpec(name="status", wire_key="status", kind=FieldKind.STATUS, direction=FieldDirection.READ),
    FieldSpec(name="reporter", wire_key="reporter", kind=FieldKind.USER, direction=FieldDirection.READ),
    FieldSpec(name="assignee", wire_key="assignee", kind=FieldKind.USER, direction=FieldDirection.READ),
    FieldSpec(name="priority", wire_key="priority", kind=FieldKind.PRIORITY, direction=FieldDirection.READ),
    FieldSpec(name="resolution", wire_key="resolution", kind=FieldKind.RESOLUTION, direction=FieldDirection.READ),
    FieldSpec(name="resolution_date", wire_key="resolutiondate", kind=FieldKind.TEXT, direction=FieldDirection.READ),
    FieldSpec(name="time_estimate", wire_key="timeestimate", kind=FieldKind.SECONDS, direction=FieldDirection.READ),
    FieldSpec(
        name="original_time_estimate",
        wire_key="timeoriginalestimate",
        kind=FieldKind.SECONDS,
        direction=FieldDirection.READ,
    ),
    FieldSpec(name="time_spent", wire_key="timespent", kind=FieldKind.SECONDS, direction=FieldDirection.READ),
    FieldSpec(name="issue_links", wire_key="issuelinks", kind=FieldKind.LINKS, direction=FieldDirection.READ),
    FieldSpec(name="attachments", wire_key="attachment", kind=FieldKind.ATTACHMENTS, direction=FieldDirection.READ),
    FieldSpec(name="comments", wire_key="comment", kind=FieldKind.COMMENTS, direction=FieldDirection.READ),
    FieldSpec(name="watchers", wire_key="watchers", kind=FieldKind.USERS, direction=FieldDirection.READ),
)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def default_registry() -> FieldRegistry:
    """Return the registry of structured issue fields, built once."""
    return FieldRegistry(DEFAULT_FIELD_SPECS)
