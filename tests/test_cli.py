"""CLI tests: commands run against the fake YouTrack through an injected transport."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from click.testing import CliRunner, Result

from tests._fake_youtrack import FakeYoutrack, error
from youtrack_mcp.cli import cli
from youtrack_mcp.dates import parse_date_input


def _item(day: str, minutes: int) -> dict[str, Any]:
    return {"id": f"wi-{day}", "date": parse_date_input(day), "duration": {"minutes": minutes}}


@pytest.fixture
def invoke(cli_runner: CliRunner, fake: FakeYoutrack, env: dict[str, str]) -> Callable[..., Result]:
    def _invoke(*args: str) -> Result:
        return cli_runner.invoke(cli, list(args), obj={"transport": fake.transport}, env=env)

    return _invoke


class TestInfo:
    def test_text(self, invoke: Callable[..., Result]) -> None:
        result = invoke("info")
        assert result.exit_code == 0
        assert "YouTrack:    https://yt.example.com" in result.output
        assert "Token owner: alice (Alice)" in result.output

    def test_json_hides_token(self, invoke: Callable[..., Result]) -> None:
        result = invoke("info", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["current_user"]["login"] == "alice"
        assert data["configuration"]["has_token"] is True
        assert "perm:test-token" not in result.output

    def test_missing_configuration(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["info"], env={"YOUTRACK_URL": None, "YOUTRACK_TOKEN": None})
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "YOUTRACK_URL" in result.output

    def test_missing_configuration_json(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["info", "--json"], env={"YOUTRACK_URL": None, "YOUTRACK_TOKEN": None})
        assert result.exit_code == 1
        assert "missing environment variables" in json.loads(result.output)["error"]

    def test_config_file(self, cli_runner: CliRunner, fake: FakeYoutrack, tmp_path: Path) -> None:
        path = tmp_path / "youtrack.json"
        path.write_text(json.dumps({"base_url": "https://file.example.com", "token": "perm:file"}))
        result = cli_runner.invoke(
            cli,
            ["--config", str(path), "info", "--json"],
            obj={"transport": fake.transport},
            env={"YOUTRACK_URL": None, "YOUTRACK_TOKEN": None},
        )
        assert result.exit_code == 0
        assert json.loads(result.output)["configuration"]["base_url"] == "https://file.example.com"

    def test_remote_failure(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/users/me", lambda r: error(401, "Unauthorized"))
        result = invoke("info")
        assert result.exit_code == 1
        assert "Error: YouTrack API error: Unauthorized" in result.output


class TestSearchActivity:
    def test_fast_text(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/issues", [{"idReadable": "P-1", "summary": "Broken build"}])
        result = invoke("search-activity", "alice", "--start", "2024-06-01", "--end", "2024-06-07")
        assert result.exit_code == 0
        assert "P-1  Broken build" in result.output
        query = fake.calls("/api/issues")[0].url.params["query"]
        assert "updater: {alice}" in query

    def test_json(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/issues", [])
        result = invoke("search-activity", "alice", "bob", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["issues"] == []
        assert data["user_logins"] == ["alice", "bob"]

    def test_no_results(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/issues", [])
        assert "No issues found." in invoke("search-activity", "alice").output

    def test_inverted_window(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        result = invoke("search-activity", "alice", "--start", "2024-06-07", "--end", "2024-06-01")
        assert result.exit_code == 1
        assert fake.requests == []

    def test_logins_required(self, invoke: Callable[..., Result]) -> None:
        assert invoke("search-activity").exit_code != 0


class TestReports:
    def test_report_text(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/workItems", [_item("2024-06-03", 480), _item("2024-06-04", 300)])
        result = invoke("report", "--start", "2024-06-03", "--end", "2024-06-04")
        assert result.exit_code == 0
        assert "Period 2024-06-03 .. 2024-06-04" in result.output
        assert "OK" in result.output
        assert "-180" in result.output
        assert "Logged 13.0h of 16.0h expected over 2 working days (6.5h/day)" in result.output
        assert "1 day(s) deviate" in result.output
        assert fake.calls("/api/workItems")[0].url.params["author"] == "alice"

    def test_report_json_with_pre_holiday(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/workItems", [_item("2024-06-03", 420)])
        result = invoke("report", "--start", "2024-06-03", "--end", "2024-06-03", "--pre-holiday", "2024-06-03", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["days"][0]["expected_minutes"] == 420
        assert data["invalid_days"] == []

    def test_report_all_users(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/workItems", [])
        result = invoke("report", "--all-users", "--start", "2024-06-03", "--end", "2024-06-03", "--json")
        assert result.exit_code == 0
        assert "author" not in fake.calls("/api/workItems")[0].url.params

    def test_report_inverted_period(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        result = invoke("report", "--start", "2024-06-05", "--end", "2024-06-01")
        assert result.exit_code == 1
        assert "End date cannot be earlier than start date" in result.output
        assert fake.calls("/api/workItems") == []

    def test_negative_expectation_rejected(self, invoke: Callable[..., Result]) -> None:
        assert invoke("report", "--expected-minutes", "-1").exit_code == 2

    def test_report_invalid(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/workItems", [_item("2024-06-03", 480), _item("2024-06-04", 300)])
        result = invoke("report-invalid", "--start", "2024-06-03", "--end", "2024-06-04", "--json")
        assert result.exit_code == 0
        assert [d["date"] for d in json.loads(result.output)] == ["2024-06-04"]

    def test_report_invalid_all_good(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/workItems", [_item("2024-06-03", 480)])
        result = invoke("report-invalid", "--start", "2024-06-03", "--end", "2024-06-03")
        assert "All days match the expectation." in result.output

    def test_report_users_partial_failure(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        def route(request: httpx.Request) -> Any:
            if request.url.params["author"] == "alice":
                return [_item("2024-06-03", 480)]
            return error(403, "no access")

        fake.on("GET", "/api/workItems", route)
        result = invoke("report-users", "alice", "bob", "--start", "2024-06-03", "--end", "2024-06-03")
        assert result.exit_code == 1
        assert "alice:" in result.output
        assert "Error: bob: YouTrack API error: no access" in result.output

    def test_report_users_json(self, invoke: Callable[..., Result], fake: FakeYoutrack) -> None:
        fake.on("GET", "/api/workItems", [_item("2024-06-03", 480)])
        result = invoke("report-users", "alice", "bob", "--start", "2024-06-03", "--end", "2024-06-03", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [r["user_login"] for r in data["reports"]] == ["alice", "bob"]
        assert "errors" not in data


def test_version(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "youtrack" in result.output
