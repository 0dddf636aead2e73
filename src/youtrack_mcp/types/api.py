"""TypedDicts for MCP tool and CLI response payloads."""

from __future__ import annotations

from typing import Any, NotRequired, TypedDict

# ---------------------------------------------------------------------------
# Shared types
# ---------------------------------------------------------------------------


class ErrorResponse(TypedDict):
    """Standard error envelope returned by MCP error paths."""

    error: str
    code: str


class RemoteErrorResponse(ErrorResponse):
    status: int | None


class ItemError(TypedDict):
    """One per-item failure from a bounded batch."""

    issue_id: str
    error: str


class Pagination(TypedDict):
    returned: int
    limit: int
    skip: int


class Period(TypedDict):
    start_date: str | None
    end_date: str | None


# ---------------------------------------------------------------------------
# Activity search
# ---------------------------------------------------------------------------


class IssueSearchResponse(TypedDict):
    issues: list[dict[str, Any]]
    user_logins: list[str]
    mode: str
    period: Period
    pagination: Pagination
    errors: NotRequired[list[ItemError]]


class IssuesCommentsResponse(TypedDict):
    comments_by_issue: dict[str, list[dict[str, Any]]]
    errors: NotRequired[list[ItemError]]


class IssuesResponse(TypedDict):
    issues: list[dict[str, Any]]
    errors: NotRequired[list[ItemError]]


# ---------------------------------------------------------------------------
# Work-item reports
# ---------------------------------------------------------------------------


class ReportDay(TypedDict):
    date: str
    expected_minutes: int
    actual_minutes: int
    difference: int
    percent: float
    items: list[dict[str, Any]]


class ReportSummary(TypedDict):
    total_minutes: int
    total_hours: float
    expected_minutes: int
    expected_hours: float
    work_days: int
    average_hours_per_day: float


class ReportPeriod(TypedDict):
    start_date: str
    end_date: str


class WorkItemReport(TypedDict):
    summary: ReportSummary
    days: list[ReportDay]
    invalid_days: list[ReportDay]
    period: ReportPeriod


class UserReport(TypedDict):
    user_login: str
    summary: ReportSummary
    invalid_days: list[ReportDay]
    period: ReportPeriod


class UserReportError(TypedDict):
    user_login: str
    error: str


class UsersReportResponse(TypedDict):
    reports: list[UserReport]
    errors: NotRequired[list[UserReportError]]


class UsersWorkItemsResponse(TypedDict):
    work_items: list[dict[str, Any]]
    count: int
    errors: NotRequired[list[UserReportError]]


class WorkItemPeriodFailure(TypedDict):
    date: str
    reason: str


class WorkItemPeriodResponse(TypedDict):
    created: list[dict[str, Any]]
    failed: list[WorkItemPeriodFailure]
