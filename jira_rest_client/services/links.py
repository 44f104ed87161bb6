"""Repair and lookup of issue links.

When an issue is fetched, JIRA leaves out the endpoint of each link that
refers to the issue itself. These helpers put the owning issue back in.
"""

from __future__ import annotations

from typing import Iterable, Optional

from jira_rest_client.core.errors import AmbiguityFailure
from jira_rest_client.core.logging import logger
from jira_rest_client.models.issue import Issue, IssueLink, IssueRef


def _is_blank(ref: IssueRef) -> bool:
    return not ref.id.strip() and not ref.key.strip()


# PUBLIC_INTERFACE
def normalize_link(link: IssueLink, owner: IssueRef) -> IssueLink:
    """
    Return ``link`` with its blank endpoint filled from ``owner``.

    Only applies when exactly one endpoint lacks an id and that endpoint has
    no key either; any other link is returned unchanged.
    """
    inward_missing = not link.inwardIssue.id.strip()
    outward_missing = not link.outwardIssue.id.strip()
    if inward_missing == outward_missing:
        return link

    owner_ref = IssueRef(id=owner.id, key=owner.key)
    if inward_missing and _is_blank(link.inwardIssue):
        return link.model_copy(update={"inwardIssue": owner_ref})
    if outward_missing and _is_blank(link.outwardIssue):
        return link.model_copy(update={"outwardIssue": owner_ref})
    return link


# PUBLIC_INTERFACE
def expand_links(issue: Issue) -> Issue:
    """Normalize every link of ``issue`` against the issue itself, in place."""
    if issue.fields.issue_links:
        issue.fields.issue_links = [normalize_link(link, issue) for link in issue.fields.issue_links]
    return issue


# PUBLIC_INTERFACE
def find_issue_link(
    links: Iterable[IssueLink],
    parent: IssueRef,
    child: IssueRef,
    relationship: str,
) -> Optional[IssueLink]:
    """
    Find the link of type ``relationship`` from ``parent`` (inward) to ``child`` (outward).

    Returns None when no link matches and raises AmbiguityFailure when more than one does.
    """
    matches = [
        link
        for link in links
        if link.relation_kind == relationship
        and link.inwardIssue.id == parent.id
        and link.outwardIssue.id == child.id
    ]
    if len(matches) > 1:
        logger.warning(
            "ambiguous_issue_link",
            extra={"parent": parent.id, "child": child.id, "relationship": relationship, "matches": len(matches)},
        )
        raise AmbiguityFailure(
            "Ambiguous issue link",
            details={"parent": parent.id, "child": child.id, "relationship": relationship, "matches": len(matches)},
        )
    return matches[0] if matches else None
