"""Command-line access to activity search and time reports.

Reads the same configuration as the MCP server (YOUTRACK_URL, YOUTRACK_TOKEN,
optional ``--config`` file).

Usage:
    youtrack info                                        # Configuration and token owner
    youtrack search-activity alice bob --start 2024-06-01 --mode precise
    youtrack report --start 2024-06-03 --end 2024-06-07  # Expected vs actual per day
    youtrack report-invalid --start 2024-06-01 --holiday 2024-06-12
    youtrack report-users alice bob --start 2024-06-01 --end 2024-06-30
"""

from __future__ import annotations

import asyncio
import json as json_mod
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import click

from youtrack_mcp import __version__
from youtrack_mcp.activity import DEFAULT_LIMIT, SEARCH_MODES, ActivitySearchRequest, search_issues_by_user_activity
from youtrack_mcp.client import YoutrackClient
from youtrack_mcp.config import load_config, redacted
from youtrack_mcp.errors import ConfigError, YoutrackClientError
from youtrack_mcp.reports import (
    DEFAULT_EXPECTED_MINUTES,
    ReportOptions,
    generate_invalid_work_item_report,
    generate_users_work_item_reports,
    generate_work_item_report,
)

_T = TypeVar("_T")


def _fail(message: str, as_json: bool) -> NoReturn:
    if as_json:
        click.echo(json_mod.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _run(ctx: click.Context, as_json: bool, operation: Callable[[YoutrackClient], Awaitable[_T]]) -> _T:
    """Build a client from the configuration, run *operation*, and close the client."""
    try:
        config = load_config(config_path=ctx.obj.get("config_path"))
    except ConfigError as e:
        _fail(str(e), as_json)

    async def _main() -> _T:
        async with YoutrackClient(config, transport=ctx.obj.get("transport")) as client:
            return await operation(client)

    try:
        return asyncio.run(_main())
    except (ValueError, YoutrackClientError) as e:
        _fail(str(e), as_json)


def _echo_json(data: Any) -> None:
    click.echo(json_mod.dumps(data, indent=2, default=str))


def report_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by the report commands."""
    decorators = [
        click.option("--issue", "issue_id", default=None, help="Only work items on this issue"),
        click.option("--start", "start_date", default=None, help="First day (YYYY-MM-DD)"),
        click.option("--end", "end_date", default=None, help="Last day (YYYY-MM-DD)"),
        click.option(
            "--expected-minutes",
            type=click.IntRange(min=0),
            default=DEFAULT_EXPECTED_MINUTES,
            show_default=True,
            help="Expected minutes per working day",
        ),
        click.option("--holiday", "holidays", multiple=True, help="Holiday date (repeatable)"),
        click.option("--pre-holiday", "pre_holidays", multiple=True, help="Day before a holiday (repeatable)"),
        click.option("--include-weekends", is_flag=True, help="Keep Saturdays and Sundays in the report"),
        click.option("--include-holidays", is_flag=True, help="Keep holidays in the report"),
        click.option("--json", "as_json", is_flag=True, help="Output as JSON"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def _build_options(author: str | None, all_users: bool, **kwargs: Any) -> ReportOptions:
    return ReportOptions(
        author=author,
        issue_id=kwargs["issue_id"],
        start_date=kwargs["start_date"],
        end_date=kwargs["end_date"],
        expected_daily_minutes=kwargs["expected_minutes"],
        exclude_weekends=not kwargs["include_weekends"],
        exclude_holidays=not kwargs["include_holidays"],
        holidays=list(kwargs["holidays"]),
        pre_holidays=list(kwargs["pre_holidays"]),
        all_users=all_users,
    )


def _print_day(day: dict[str, Any]) -> None:
    mark = "OK" if day["difference"] == 0 else f"{day['difference']:+d}"
    click.echo(f"  {day['date']}  {day['actual_minutes']:>4}/{day['expected_minutes']:<4} {day['percent']:>6.1f}%  {mark}")


def _print_summary(summary: dict[str, Any]) -> None:
    click.echo(
        f"Logged {summary['total_hours']}h of {summary['expected_hours']}h expected "
        f"over {summary['work_days']} working days ({summary['average_hours_per_day']}h/day)"
    )


@click.group()
@click.version_option(version=__version__, prog_name="youtrack")
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None, help="JSON config file")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """YouTrack activity search and time reports."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def info(ctx: click.Context, as_json: bool) -> None:
    """Show the configuration in use and the token owner."""

    async def _info(client: YoutrackClient) -> dict[str, Any]:
        return {"configuration": redacted(client.config), "current_user": await client.get_current_user()}

    data = _run(ctx, as_json, _info)
    if as_json:
        _echo_json(data)
        return
    config = data["configuration"]
    user = data["current_user"]
    click.echo(f"YouTrack:    {config['base_url']}")
    click.echo(f"Token owner: {user.get('login')} ({user.get('name') or user.get('fullName') or '-'})")
    click.echo(f"Concurrency: {config['concurrency']}")


@cli.command("search-activity")
@click.argument("logins", nargs=-1, required=True)
@click.option("--start", "start_date", default=None, help="Window start (date, ISO timestamp, or epoch ms)")
@click.option("--end", "end_date", default=None, help="Window end; a bare date covers the whole day")
@click.option("--mode", type=click.Choice(SEARCH_MODES), default="fast", show_default=True)
@click.option("--limit", type=int, default=DEFAULT_LIMIT, show_default=True)
@click.option("--skip", type=int, default=0)
@click.option("--full", is_flag=True, help="Include issue descriptions")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search_activity(
    ctx: click.Context,
    logins: tuple[str, ...],
    start_date: str | None,
    end_date: str | None,
    mode: str,
    limit: int,
    skip: int,
    full: bool,
    as_json: bool,
) -> None:
    """Find issues the given users touched, newest first."""
    request = ActivitySearchRequest(
        user_logins=list(logins),
        start_date=start_date,
        end_date=end_date,
        mode=mode,
        brief_output=not full,
        limit=limit,
        skip=skip,
    )
    result = _run(ctx, as_json, lambda client: search_issues_by_user_activity(client, request))
    if as_json:
        _echo_json(result)
        return
    if not result["issues"]:
        click.echo("No issues found.")
    for issue in result["issues"]:
        when = issue.get("last_activity_date")
        prefix = f"{when}  " if when else ""
        click.echo(f"{prefix}{issue.get('idReadable')}  {issue.get('summary', '')}")
    for error in result.get("errors", []):
        click.echo(f"Warning: {error['issue_id']}: {error['error']}", err=True)


@cli.command()
@click.option("--author", default=None, help="Author login (default: token owner)")
@click.option("--all-users", is_flag=True, help="Report over every user's work items")
@report_options
@click.pass_context
def report(ctx: click.Context, author: str | None, all_users: bool, as_json: bool, **kwargs: Any) -> None:
    """Expected vs logged time per working day."""
    options = _build_options(author, all_users, **kwargs)
    result = _run(ctx, as_json, lambda client: generate_work_item_report(client, options))
    if as_json:
        _echo_json(result)
        return
    period = result["period"]
    click.echo(f"Period {period['start_date']} .. {period['end_date']}")
    for day in result["days"]:
        _print_day(day)
    _print_summary(result["summary"])
    if result["invalid_days"]:
        click.echo(f"{len(result['invalid_days'])} day(s) deviate from the expectation")


@cli.command("report-invalid")
@click.option("--author", default=None, help="Author login (default: token owner)")
@click.option("--all-users", is_flag=True, help="Report over every user's work items")
@report_options
@click.pass_context
def report_invalid(ctx: click.Context, author: str | None, all_users: bool, as_json: bool, **kwargs: Any) -> None:
    """Only the days whose logged time differs from the expectation."""
    options = _build_options(author, all_users, **kwargs)
    invalid_days = _run(ctx, as_json, lambda client: generate_invalid_work_item_report(client, options))
    if as_json:
        _echo_json(invalid_days)
        return
    if not invalid_days:
        click.echo("All days match the expectation.")
    for day in invalid_days:
        _print_day(day)


@cli.command("report-users")
@click.argument("logins", nargs=-1, required=True)
@report_options
@click.pass_context
def report_users(ctx: click.Context, logins: tuple[str, ...], as_json: bool, **kwargs: Any) -> None:
    """One independent report per user."""
    options = _build_options(None, False, **kwargs)
    result = _run(ctx, as_json, lambda client: generate_users_work_item_reports(client, list(logins), options))
    if as_json:
        _echo_json(result)
        return
    for user_report in result["reports"]:
        click.echo(f"{user_report['user_login']}:")
        _print_summary(user_report["summary"])
        for day in user_report["invalid_days"]:
            _print_day(day)
    for error in result.get("errors", []):
        click.echo(f"Error: {error['user_login']}: {error['error']}", err=True)
    if result.get("errors"):
        sys.exit(1)


if __name__ == "__main__":
    cli()
