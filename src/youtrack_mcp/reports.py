"""Daily expected-vs-actual ledger over work items.

Weekends and holidays drop out of the ledger entirely.  Pre-holiday days
expect 87.5% of the usual effort (7 of 8 hours).  Any deviation, over or
under, marks a day invalid.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from youtrack_mcp.batch import Failure, Success
from youtrack_mcp.dates import (
    DateInput,
    enumerate_date_range,
    is_weekend,
    minutes_to_hours,
    round_half_up,
    to_iso_date,
    today_iso,
)
from youtrack_mcp.mappers import map_work_items
from youtrack_mcp.types.core import WorkItem

if TYPE_CHECKING:
    from youtrack_mcp.client import YoutrackClient
    from youtrack_mcp.types.api import (
        ReportDay,
        UserReport,
        UserReportError,
        UsersReportResponse,
        WorkItemReport,
    )

logger = logging.getLogger(__name__)

DEFAULT_EXPECTED_MINUTES = 8 * 60
PRE_HOLIDAY_RATIO = 0.875


@dataclass
class ReportOptions:
    author: str | None = None
    issue_id: str | None = None
    start_date: DateInput | None = None
    end_date: DateInput | None = None
    expected_daily_minutes: int = DEFAULT_EXPECTED_MINUTES
    exclude_weekends: bool = True
    exclude_holidays: bool = True
    holidays: list[DateInput] = field(default_factory=list)
    pre_holidays: list[DateInput] = field(default_factory=list)
    all_users: bool = False

    def validate(self) -> None:
        if isinstance(self.expected_daily_minutes, bool) or not isinstance(self.expected_daily_minutes, int):
            msg = "expected_daily_minutes must be an integer"
            raise ValueError(msg)
        if self.expected_daily_minutes < 0:
            msg = "expected_daily_minutes must be >= 0"
            raise ValueError(msg)
        if self.start_date is not None and self.end_date is not None:
            # Raises for an inverted period before anything is fetched.
            enumerate_date_range(self.start_date, self.end_date)


def _minutes(item: WorkItem) -> int:
    duration = item.get("duration") or {}
    return int(duration.get("minutes") or 0)


def group_by_date(work_items: Iterable[WorkItem]) -> dict[str, list[WorkItem]]:
    grouped: dict[str, list[WorkItem]] = defaultdict(list)
    for item in work_items:
        if item.get("date") is not None:
            grouped[to_iso_date(item["date"])].append(item)
    return grouped


def resolve_period(work_items: Sequence[WorkItem], options: ReportOptions, today: str) -> tuple[str, str]:
    """Caller bounds first, then the observed item dates, then *today*."""
    dates = [item["date"] for item in work_items if item.get("date") is not None]
    start = to_iso_date(options.start_date) if options.start_date is not None else None
    end = to_iso_date(options.end_date) if options.end_date is not None else None
    if start is None:
        start = to_iso_date(min(dates)) if dates else today
    if end is None:
        end = to_iso_date(max(dates)) if dates else today
    return start, end


def expected_minutes_for(date_iso: str, options: ReportOptions, pre_holidays: set[str]) -> int:
    if date_iso in pre_holidays:
        return int(round_half_up(options.expected_daily_minutes * PRE_HOLIDAY_RATIO))
    return options.expected_daily_minutes


def build_work_item_report(
    work_items: Sequence[WorkItem],
    options: ReportOptions,
    today: str | None = None,
) -> WorkItemReport:
    """Build the ledger for *work_items*; pure apart from the *today* default."""
    start, end = resolve_period(work_items, options, today or today_iso())
    holidays = {to_iso_date(h) for h in options.holidays}
    pre_holidays = {to_iso_date(p) for p in options.pre_holidays}
    grouped = group_by_date(work_items)

    total_minutes = sum(_minutes(item) for item in work_items)
    total_expected = 0
    days: list[ReportDay] = []
    invalid_days: list[ReportDay] = []

    for date_iso in enumerate_date_range(start, end):
        if options.exclude_weekends and is_weekend(date_iso):
            continue
        if options.exclude_holidays and date_iso in holidays:
            continue

        day_items = grouped.get(date_iso, [])
        actual = sum(_minutes(item) for item in day_items)
        expected = expected_minutes_for(date_iso, options, pre_holidays)
        difference = actual - expected
        percent = 0.0 if expected == 0 else round_half_up(actual / expected * 1000) / 10
        day: ReportDay = {
            "date": date_iso,
            "expected_minutes": expected,
            "actual_minutes": actual,
            "difference": difference,
            "percent": percent,
            "items": map_work_items(day_items),
        }
        days.append(day)
        total_expected += expected
        if difference != 0:
            invalid_days.append(day)

    work_days = len(days)
    return {
        "summary": {
            "total_minutes": total_minutes,
            "total_hours": minutes_to_hours(total_minutes),
            "expected_minutes": total_expected,
            "expected_hours": minutes_to_hours(total_expected),
            "work_days": work_days,
            "average_hours_per_day": 0 if work_days == 0 else minutes_to_hours(total_minutes / work_days),
        },
        "days": days,
        "invalid_days": invalid_days,
        "period": {"start_date": start, "end_date": end},
    }


async def generate_work_item_report(client: YoutrackClient, options: ReportOptions) -> WorkItemReport:
    options.validate()
    work_items = await client.list_work_items(
        author=options.author,
        issue_id=options.issue_id,
        start_date=options.start_date,
        end_date=options.end_date,
        all_users=options.all_users if options.author is None else False,
    )
    logger.debug("Report over %d work items", len(work_items))
    return build_work_item_report(work_items, options)


async def generate_invalid_work_item_report(client: YoutrackClient, options: ReportOptions) -> list[ReportDay]:
    report = await generate_work_item_report(client, options)
    return report["invalid_days"]


async def generate_users_work_item_reports(
    client: YoutrackClient,
    logins: Sequence[str],
    options: ReportOptions,
) -> UsersReportResponse:
    """One independent report per login, fetched under the concurrency cap.

    Logins whose fetch failed are listed in ``errors``; ledgers are never merged.
    """
    if not logins:
        msg = "At least one user login is required"
        raise ValueError(msg)
    options.validate()

    results = await client.get_work_items_for_users(
        logins,
        issue_id=options.issue_id,
        start_date=options.start_date,
        end_date=options.end_date,
    )
    reports: list[UserReport] = []
    errors: list[UserReportError] = []
    for result in results:
        if isinstance(result, Success):
            report = build_work_item_report(result.value, options)
            reports.append(
                {
                    "user_login": result.item,
                    "summary": report["summary"],
                    "invalid_days": report["invalid_days"],
                    "period": report["period"],
                }
            )
        elif isinstance(result, Failure):
            errors.append({"user_login": result.item, "error": result.reason})
    payload: UsersReportResponse = {"reports": reports}
    if errors:
        payload["errors"] = errors
    return payload
