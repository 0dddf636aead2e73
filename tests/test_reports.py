"""Tests for the work-item report engine."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from tests._fake_youtrack import FakeYoutrack, error
from youtrack_mcp.client import YoutrackClient
from youtrack_mcp.dates import parse_date_input
from youtrack_mcp.reports import (
    ReportOptions,
    build_work_item_report,
    generate_invalid_work_item_report,
    generate_users_work_item_reports,
    generate_work_item_report,
)


def _item(day: str, minutes: int, item_id: str | None = None) -> dict[str, Any]:
    return {
        "id": item_id or f"wi-{day}-{minutes}",
        "date": parse_date_input(day),
        "duration": {"minutes": minutes},
        "author": {"login": "alice"},
    }


class TestBuildReport:
    def test_two_day_ledger(self) -> None:
        items = [_item("2024-06-03", 480), _item("2024-06-04", 300)]
        report = build_work_item_report(items, ReportOptions(start_date="2024-06-03", end_date="2024-06-04"))

        monday, tuesday = report["days"]
        assert (monday["date"], monday["expected_minutes"], monday["actual_minutes"], monday["difference"]) == (
            "2024-06-03",
            480,
            480,
            0,
        )
        assert monday["percent"] == 100.0
        assert (tuesday["expected_minutes"], tuesday["actual_minutes"], tuesday["difference"]) == (480, 300, -180)
        assert tuesday["percent"] == 62.5
        assert [d["date"] for d in report["invalid_days"]] == ["2024-06-04"]
        assert report["summary"] == {
            "total_minutes": 780,
            "total_hours": 13.0,
            "expected_minutes": 960,
            "expected_hours": 16.0,
            "work_days": 2,
            "average_hours_per_day": 6.5,
        }
        assert report["period"] == {"start_date": "2024-06-03", "end_date": "2024-06-04"}

    def test_day_items_are_mapped(self) -> None:
        report = build_work_item_report([_item("2024-06-03", 480)], ReportOptions(start_date="2024-06-03", end_date="2024-06-03"))
        assert report["days"][0]["items"][0]["date"] == "2024-06-03"

    def test_overtime_is_invalid(self) -> None:
        report = build_work_item_report([_item("2024-06-03", 500)], ReportOptions(start_date="2024-06-03", end_date="2024-06-03"))
        assert report["invalid_days"][0]["difference"] == 20

    def test_several_items_same_day_summed(self) -> None:
        items = [_item("2024-06-03", 200, "a"), _item("2024-06-03", 280, "b")]
        report = build_work_item_report(items, ReportOptions(start_date="2024-06-03", end_date="2024-06-03"))
        assert report["days"][0]["actual_minutes"] == 480
        assert report["invalid_days"] == []

    def test_weekends_skipped_by_default(self) -> None:
        # 2024-06-07 is a Friday, 2024-06-10 a Monday.
        report = build_work_item_report([], ReportOptions(start_date="2024-06-07", end_date="2024-06-10"))
        assert [d["date"] for d in report["days"]] == ["2024-06-07", "2024-06-10"]

    def test_weekends_kept_on_request(self) -> None:
        options = ReportOptions(start_date="2024-06-07", end_date="2024-06-10", exclude_weekends=False)
        assert len(build_work_item_report([], options)["days"]) == 4

    def test_holidays_skipped(self) -> None:
        options = ReportOptions(start_date="2024-06-03", end_date="2024-06-05", holidays=["2024-06-04"])
        assert [d["date"] for d in build_work_item_report([], options)["days"]] == ["2024-06-03", "2024-06-05"]

    def test_holidays_kept_when_not_excluded(self) -> None:
        options = ReportOptions(start_date="2024-06-03", end_date="2024-06-05", holidays=["2024-06-04"], exclude_holidays=False)
        assert len(build_work_item_report([], options)["days"]) == 3

    def test_pre_holiday_expects_seven_eighths(self) -> None:
        options = ReportOptions(start_date="2024-06-03", end_date="2024-06-03", pre_holidays=["2024-06-03"])
        day = build_work_item_report([_item("2024-06-03", 420)], options)["days"][0]
        assert day["expected_minutes"] == 420
        assert isinstance(day["expected_minutes"], int)
        assert day["difference"] == 0

    def test_pre_holiday_rounds_half_up(self) -> None:
        # 100 * 0.875 = 87.5 -> 88
        options = ReportOptions(
            start_date="2024-06-03",
            end_date="2024-06-03",
            pre_holidays=["2024-06-03"],
            expected_daily_minutes=100,
        )
        assert build_work_item_report([], options)["days"][0]["expected_minutes"] == 88

    def test_all_days_excluded(self) -> None:
        options = ReportOptions(start_date="2024-06-08", end_date="2024-06-10", holidays=["2024-06-10"])
        report = build_work_item_report([_item("2024-06-08", 60)], options)
        assert report["days"] == []
        assert report["invalid_days"] == []
        assert report["summary"]["work_days"] == 0
        assert report["summary"]["average_hours_per_day"] == 0
        assert report["summary"]["expected_minutes"] == 0
        # Weekend work still counts towards the logged total.
        assert report["summary"]["total_minutes"] == 60

    def test_zero_expectation(self) -> None:
        options = ReportOptions(start_date="2024-06-03", end_date="2024-06-03", expected_daily_minutes=0)
        day = build_work_item_report([_item("2024-06-03", 30)], options)["days"][0]
        assert day["percent"] == 0.0
        assert day["difference"] == 30

    def test_single_day_period_one_bucket(self) -> None:
        report = build_work_item_report([], ReportOptions(start_date="2024-06-03", end_date="2024-06-03"))
        assert len(report["days"]) == 1

    def test_inverted_period_rejected(self) -> None:
        with pytest.raises(ValueError, match="End date cannot be earlier"):
            build_work_item_report([], ReportOptions(start_date="2024-06-04", end_date="2024-06-03"))

    def test_period_from_items_then_today(self) -> None:
        items = [_item("2024-06-05", 480), _item("2024-06-03", 480)]
        assert build_work_item_report(items, ReportOptions())["period"] == {
            "start_date": "2024-06-03",
            "end_date": "2024-06-05",
        }
        assert build_work_item_report([], ReportOptions(), today="2024-06-12")["period"] == {
            "start_date": "2024-06-12",
            "end_date": "2024-06-12",
        }

    def test_idempotent(self) -> None:
        items = [_item("2024-06-03", 480), _item("2024-06-04", 300)]
        options = ReportOptions(start_date="2024-06-01", end_date="2024-06-09", pre_holidays=["2024-06-05"])
        assert build_work_item_report(items, options) == build_work_item_report(items, options)

    def test_rejects_non_integer_expectation(self) -> None:
        with pytest.raises(ValueError, match="must be an integer"):
            ReportOptions(expected_daily_minutes=7.5).validate()  # type: ignore[arg-type]


def _work_items_route(by_author: dict[str, Any]) -> Any:
    def route(request: httpx.Request) -> Any:
        author = request.url.params.get("author")
        result = by_author.get(author, [])
        return result(request) if callable(result) else result

    return route


class TestGenerateReports:
    async def test_report_defaults_to_token_owner(self, client: YoutrackClient, fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/workItems", _work_items_route({"alice": [_item("2024-06-03", 480)]}))

        report = await generate_work_item_report(client, ReportOptions(start_date="2024-06-03", end_date="2024-06-03"))

        assert report["summary"]["total_minutes"] == 480
        (request,) = fake.calls("/api/workItems")
        assert request.url.params["author"] == "alice"
        assert request.url.params["startDate"] == "2024-06-03"
        assert request.url.params["endDate"] == "2024-06-03"

    async def test_follows_all_pages(self, client: YoutrackClient, fake: FakeYoutrack) -> None:
        first_page = [_item("2024-06-03", 1, f"a{n}") for n in range(200)]
        second_page = [_item("2024-06-04", 1, f"b{n}") for n in range(5)]

        def route(request: httpx.Request) -> Any:
            return first_page if request.url.params["$skip"] == "0" else second_page

        fake.on("GET", "/api/workItems", route)

        report = await generate_work_item_report(
            client, ReportOptions(author="alice", start_date="2024-06-03", end_date="2024-06-04")
        )

        assert report["summary"]["total_minutes"] == 205
        assert [r.url.params["$skip"] for r in fake.calls("/api/workItems")] == ["0", "200"]

    async def test_invalid_days_only(self, client: YoutrackClient, fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/workItems", [_item("2024-06-03", 480), _item("2024-06-04", 300)])

        invalid = await generate_invalid_work_item_report(
            client, ReportOptions(author="alice", start_date="2024-06-03", end_date="2024-06-04")
        )

        assert [d["date"] for d in invalid] == ["2024-06-04"]

    async def test_validation_before_fetch(self, client: YoutrackClient, fake: FakeYoutrack) -> None:
        with pytest.raises(ValueError):
            await generate_work_item_report(client, ReportOptions(start_date="2024-06-05", end_date="2024-06-01"))
        assert fake.requests == []

    async def test_users_reports_independent(self, client: YoutrackClient, fake: FakeYoutrack) -> None:
        fake.on(
            "GET",
            "/api/workItems",
            _work_items_route(
                {
                    "alice": [_item("2024-06-03", 480)],
                    "bob": [_item("2024-06-03", 240)],
                    "carol": lambda r: error(403, "no access to carol"),
                }
            ),
        )

        result = await generate_users_work_item_reports(
            client, ["alice", "bob", "carol"], ReportOptions(start_date="2024-06-03", end_date="2024-06-03")
        )

        assert [r["user_login"] for r in result["reports"]] == ["alice", "bob"]
        assert result["reports"][0]["invalid_days"] == []
        assert result["reports"][1]["invalid_days"][0]["difference"] == -240
        assert result["errors"] == [{"user_login": "carol", "error": "YouTrack API error: no access to carol"}]

    async def test_users_reports_require_logins(self, client: YoutrackClient) -> None:
        with pytest.raises(ValueError, match="At least one user login"):
            await generate_users_work_item_reports(client, [], ReportOptions())
