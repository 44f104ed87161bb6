from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Jira converts day estimates with an eight hour working day.
DAY_TO_SECONDS = 8 * 3600


class IssueRef(BaseModel):
    """
    PUBLIC_INTERFACE
    Minimal issue identity. ``id`` is the stable internal id, ``key`` the human-facing one.
    """

    id: str = Field(default="", description="Issue id")
    key: str = Field(default="", description="Issue key (e.g., PROJ-1)")

    @field_validator("id", "key", mode="before")
    @classmethod
    def _blank_when_missing(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def jira_identifier(self) -> str:
        """Identifier used in request paths: id when present, else key."""
        return self.key if not self.id.strip() else self.id


class Status(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class Priority(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class Resolution(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class JiraUser(BaseModel):
    name: Optional[str] = None
    accountId: Optional[str] = None
    displayName: Optional[str] = None
    emailAddress: Optional[str] = None
    active: Optional[bool] = None


class Comment(BaseModel):
    id: Optional[str] = None
    body: Optional[str] = None
    author: Optional[JiraUser] = None
    updateAuthor: Optional[JiraUser] = None
    created: Optional[str] = None
    updated: Optional[str] = None


class Attachment(BaseModel):
    id: Optional[str] = None
    filename: Optional[str] = None
    author: Optional[JiraUser] = None
    created: Optional[str] = None
    size: Optional[int] = None
    mimeType: Optional[str] = None
    content: Optional[str] = None
    thumbnail: Optional[str] = None


class Timetracking(BaseModel):
    """Time tracking block; only ``originalEstimate`` is ever written back."""

    originalEstimate: Optional[str] = None
    originalEstimateSeconds: int = 0
    remainingEstimate: Optional[str] = None
    timeSpent: Optional[str] = None

    @property
    def original_estimate_days(self) -> float:
        return self.originalEstimateSeconds / DAY_TO_SECONDS

    @classmethod
    def from_days(cls, days: float) -> "Timetracking":
        """Build an estimate of ``days`` working days, keeping text and seconds in sync."""
        return cls(originalEstimate=f"{days:g}d", originalEstimateSeconds=int(days * DAY_TO_SECONDS))


class LinkType(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    inward: Optional[str] = None
    outward: Optional[str] = None


class IssueLink(BaseModel):
    """
    PUBLIC_INTERFACE
    Directional relation between two issues. The inward issue is the first
    endpoint, the outward issue the second.
    """

    id: Optional[str] = None
    type: LinkType = Field(default_factory=LinkType)
    inwardIssue: IssueRef = Field(default_factory=IssueRef)
    outwardIssue: IssueRef = Field(default_factory=IssueRef)

    @field_validator("type", "inwardIssue", "outwardIssue", mode="before")
    @classmethod
    def _empty_when_missing(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def relation_kind(self) -> Optional[str]:
        return self.type.name


class IssueFields(BaseModel):
    """
    PUBLIC_INTERFACE
    Default field set of an issue. Structured fields are typed attributes;
    extension fields (and registry aliases) are kept in ``extensions``.

    Implements the FieldSet capability: field_names / get_field / set_field.
    """

    model_config = ConfigDict(extra="ignore")

    summary: Optional[str] = None
    description: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    time_tracking: Timetracking = Field(default_factory=Timetracking)
    status: Status = Field(default_factory=Status)

    reporter: Optional[JiraUser] = None
    assignee: Optional[JiraUser] = None
    priority: Optional[Priority] = None
    resolution: Optional[Resolution] = None
    resolution_date: Optional[str] = None

    # seconds
    time_estimate: Optional[int] = None
    original_time_estimate: Optional[int] = None
    time_spent: Optional[int] = None

    issue_links: List[IssueLink] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    watchers: List[JiraUser] = Field(default_factory=list)

    extensions: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def structured_names(cls) -> List[str]:
        return [name for name in cls.model_fields if name != "extensions"]

    @model_validator(mode="after")
    def _extensions_disjoint(self) -> "IssueFields":
        overlap = set(self.extensions) & set(self.structured_names())
        if overlap:
            raise ValueError(f"Extension fields shadow structured fields: {sorted(overlap)}")
        return self

    def field_names(self) -> Iterator[str]:
        yield from self.structured_names()
        yield from list(self.extensions)

    def get_field(self, name: str) -> Any:
        if name in self.structured_names():
            return getattr(self, name)
        return self.extensions.get(name)

    def set_field(self, name: str, value: Any) -> None:
        if name in self.structured_names():
            setattr(self, name, value)
        elif value is None:
            self.extensions.pop(name, None)
        else:
            self.extensions[name] = value


class Issue(IssueRef):
    """
    PUBLIC_INTERFACE
    A full issue record as returned by JIRA.
    """

    model_config = ConfigDict(populate_by_name=True)

    self_url: Optional[str] = Field(default=None, alias="self", description="Canonical REST URL")
    expand: Optional[str] = None
    fields: IssueFields = Field(default_factory=IssueFields)

    def ref(self) -> IssueRef:
        return IssueRef(id=self.id, key=self.key)


class SearchPage(BaseModel):
    """One page of a JQL search."""

    startAt: int = Field(default=0, ge=0, description="Start offset")
    maxResults: int = Field(default=0, ge=0, description="Max results")
    total: int = Field(default=0, ge=0, description="Total results")
    issues: List[Issue] = Field(default_factory=list, description="Decoded issues of this page")


class Transition(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    to: Optional[Status] = None
    fields: Dict[str, Any] = Field(default_factory=dict)


class IssueType(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    subtask: bool = False


class Project(BaseModel):
    id: Optional[str] = None
    key: Optional[str] = None
    name: Optional[str] = None


class RemoteLink(BaseModel):
    """Remote (web) link attached to an issue, flattened from JIRA's ``object`` envelope."""

    id: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "RemoteLink":
        obj = dict(data.get("object") or {})
        obj["id"] = None if data.get("id") is None else str(data["id"])
        return cls.model_validate(obj)


class ServerInfo(BaseModel):
    baseUrl: Optional[str] = None
    version: Optional[str] = None
    buildNumber: Optional[int] = None
    buildDate: Optional[str] = None
    serverTime: Optional[str] = None
    scmInfo: Optional[str] = None
    serverTitle: Optional[str] = None
