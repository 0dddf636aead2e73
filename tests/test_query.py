"""Tests for search-query composition."""

from __future__ import annotations

from typing import Any

import pytest

from youtrack_mcp.query import (
    IssueListFilter,
    build_issue_query,
    issue_id_query,
    updated_range_clause,
    user_activity_clause,
    with_sort,
)

_PROJECTS = {
    "0-1": {"id": "0-1", "shortName": "ABC", "name": "Alpha"},
    "XYZ": {"id": "0-2", "shortName": "XYZ", "name": "Xylophone"},
}


async def _resolve(project_id: str) -> dict[str, Any] | None:
    return _PROJECTS.get(project_id)


class TestActivityClauses:
    def test_single_user_braced(self) -> None:
        assert user_activity_clause(["alice"]) == (
            "(updater: {alice} or mentions: {alice} or reporter: {alice} or assignee: {alice})"
        )

    def test_multiple_users_parenthesised(self) -> None:
        clause = user_activity_clause(["a", "b"], braced=False)
        assert clause.startswith("(updater: a or ")
        assert " or updater: b or " in clause
        assert clause.endswith("assignee: b)")

    def test_updated_range(self) -> None:
        assert updated_range_clause("2024-06-01", "2024-06-30") == "updated: 2024-06-01 .. 2024-06-30"

    def test_updated_range_open_start(self) -> None:
        assert updated_range_clause(None, "2024-06-30") == "updated: 1970-01-01 .. 2024-06-30"

    def test_with_sort(self) -> None:
        assert with_sort(["a", "", "b"]) == "a and b sort by: updated desc"
        assert with_sort([]) == "sort by: updated desc"

    def test_issue_id_query(self) -> None:
        assert issue_id_query(["A-1", "B-2"]) == "issue id: A-1 B-2"


class TestBuildIssueQuery:
    async def test_empty_filters(self) -> None:
        built = await build_issue_query(IssueListFilter(), _resolve)
        assert built.query == ""
        assert built.resolved_projects == []

    async def test_projects_resolved_and_unresolved(self) -> None:
        built = await build_issue_query(IssueListFilter(project_ids=["0-1", "NOPE"]), _resolve)
        assert built.query == "(project: {ABC} or project: {NOPE})"
        assert built.resolved_projects[0]["project_short_name"] == "ABC"
        assert built.resolved_projects[1] == {"requested_id": "NOPE", "project_id": "NOPE"}

    async def test_all_clauses_joined_with_and(self) -> None:
        filters = IssueListFilter(
            project_ids=["XYZ"],
            created_after="2024-01-01",
            updated_before="2024-02-01",
            statuses=["Open", "In Progress"],
            assignee_login="me",
            types=["Bug"],
        )
        built = await build_issue_query(filters, _resolve)
        assert built.query == (
            "project: {XYZ} and created: 2024-01-01..* and updated: *..2024-02-01 "
            "and (State: {Open} or State: {In Progress}) and Assignee: me and Type: {Bug}"
        )

    async def test_assignee_login_braced(self) -> None:
        built = await build_issue_query(IssueListFilter(assignee_login="jane.doe"), _resolve)
        assert built.query == "Assignee: {jane.doe}"

    async def test_inverted_created_range_rejected(self) -> None:
        with pytest.raises(ValueError):
            await build_issue_query(IssueListFilter(created_after="2024-02-01", created_before="2024-01-01"), _resolve)
