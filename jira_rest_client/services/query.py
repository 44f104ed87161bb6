from __future__ import annotations

from typing import List, Optional


# PUBLIC_INTERFACE
def build_jql(
    project_key: Optional[str] = None,
    issue_type: Optional[str] = None,
    extra_clause: Optional[str] = None,
) -> str:
    """
    Convenience JQL builder from scoping criteria.

    Blank criteria are skipped; the rest are joined with AND in the order
    project, issue type, extra clause. Returns "" (match everything) when no
    criterion is given.
    """
    clauses: List[str] = []
    if project_key and project_key.strip():
        clauses.append(f"project={project_key.strip()}")
    if issue_type and issue_type.strip():
        clauses.append(f"issueType={issue_type.strip()}")
    if extra_clause and extra_clause.strip():
        clauses.append(extra_clause.strip())
    return " AND ".join(clauses)
