"""Builders for YouTrack search-query strings.

Clauses of one kind are OR-ed and parenthesised when there is more than one;
clauses of different kinds are AND-ed.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from youtrack_mcp.dates import DateInput, to_iso_date, today_iso, validate_date_range

SORT_UPDATED_DESC = "sort by: updated desc"
_ACTIVITY_FIELDS = ("updater", "mentions", "reporter", "assignee")

ProjectResolver = Callable[[str], Awaitable[Mapping[str, Any] | None]]


def _any_of(clauses: Sequence[str]) -> str:
    joined = " or ".join(clauses)
    return f"({joined})" if len(clauses) > 1 else joined


def user_activity_clause(logins: Sequence[str], *, braced: bool = True) -> str:
    """Clause matching issues a user updated, was mentioned in, reported or is assigned to.

    Always parenthesised: ``and`` binds tighter than ``or`` in the query grammar.
    """
    terms = []
    for login in logins:
        value = f"{{{login}}}" if braced else login
        terms.extend(f"{field}: {value}" for field in _ACTIVITY_FIELDS)
    return f"({' or '.join(terms)})"


def updated_range_clause(start: DateInput | None, end: DateInput | None) -> str:
    start_str = to_iso_date(start) if start is not None else "1970-01-01"
    end_str = to_iso_date(end) if end is not None else today_iso()
    return f"updated: {start_str} .. {end_str}"


def with_sort(filters: Sequence[str], sort: str = SORT_UPDATED_DESC) -> str:
    filter_query = " and ".join(f for f in filters if f)
    return f"{filter_query} {sort}" if filter_query else sort


def issue_id_query(issue_ids: Sequence[str]) -> str:
    return f"issue id: {' '.join(issue_ids)}"


@dataclass
class IssueListFilter:
    """Filters accepted by the ``issues_list`` tool."""

    project_ids: list[str] = field(default_factory=list)
    created_after: DateInput | None = None
    created_before: DateInput | None = None
    updated_after: DateInput | None = None
    updated_before: DateInput | None = None
    statuses: list[str] = field(default_factory=list)
    assignee_login: str | None = None
    types: list[str] = field(default_factory=list)


@dataclass
class IssueQuery:
    query: str
    resolved_projects: list[dict[str, Any]] = field(default_factory=list)


def _range_clause(name: str, after: DateInput | None, before: DateInput | None) -> str | None:
    if after is None and before is None:
        return None
    start = to_iso_date(after) if after is not None else "*"
    end = to_iso_date(before) if before is not None else "*"
    return f"{name}: {start}..{end}"


async def build_issue_query(filters: IssueListFilter, resolve_project: ProjectResolver) -> IssueQuery:
    """Compose the search query for an issue listing.

    Project ids are resolved to short names through *resolve_project*; ids
    that cannot be resolved are used verbatim.
    """
    if filters.created_after is not None and filters.created_before is not None:
        validate_date_range(filters.created_after, filters.created_before)
    if filters.updated_after is not None and filters.updated_before is not None:
        validate_date_range(filters.updated_after, filters.updated_before)

    parts: list[str] = []
    resolved: list[dict[str, Any]] = []

    if filters.project_ids:
        project_clauses = []
        for project_id in filters.project_ids:
            project = await resolve_project(project_id)
            if project and project.get("shortName"):
                resolved.append(
                    {
                        "requested_id": project_id,
                        "project_id": project.get("id", project_id),
                        "project_short_name": project["shortName"],
                        "project_name": project.get("name"),
                    }
                )
                project_clauses.append(f"project: {{{project['shortName']}}}")
            else:
                resolved.append({"requested_id": project_id, "project_id": project_id})
                project_clauses.append(f"project: {{{project_id}}}")
        parts.append(_any_of(project_clauses))

    for clause in (
        _range_clause("created", filters.created_after, filters.created_before),
        _range_clause("updated", filters.updated_after, filters.updated_before),
    ):
        if clause:
            parts.append(clause)

    if filters.statuses:
        parts.append(_any_of([f"State: {{{s}}}" for s in filters.statuses]))

    if filters.assignee_login:
        assignee = filters.assignee_login.strip()
        parts.append("Assignee: me" if assignee.lower() == "me" else f"Assignee: {{{assignee}}}")

    if filters.types:
        parts.append(_any_of([f"Type: {{{t}}}" for t in filters.types]))

    return IssueQuery(query=" and ".join(parts), resolved_projects=resolved)
