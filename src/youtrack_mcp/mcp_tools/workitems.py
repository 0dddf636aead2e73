"""MCP tools for work items: listing, creation, deletion, and time reports."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import TextContent, Tool

from youtrack_mcp.batch import failures, successes
from youtrack_mcp.client import DEFAULT_PAGE_SIZE
from youtrack_mcp.mappers import map_work_item, map_work_items
from youtrack_mcp.mcp_tools.common import (
    DATE_SCHEMA,
    HOLIDAYS_SCHEMA,
    LOGINS_SCHEMA,
    _text,
    _validate_int_range,
    _validate_str,
    _validate_str_list,
)
from youtrack_mcp.reports import (
    DEFAULT_EXPECTED_MINUTES,
    ReportOptions,
    generate_invalid_work_item_report,
    generate_users_work_item_reports,
    generate_work_item_report,
)
from youtrack_mcp.types.api import UserReportError, UsersWorkItemsResponse, WorkItemPeriodResponse

_RECENT_DEFAULT = 50

_ISSUE_ID = {"type": "string", "description": "Issue ID (e.g. PROJ-123)"}
_MINUTES = {"type": "integer", "minimum": 1, "description": "Minutes spent"}

_REPORT_PROPERTIES: dict[str, Any] = {
    "author": {"type": "string", "description": "Author login (defaults to the token owner)"},
    "issue_id": _ISSUE_ID,
    "start_date": DATE_SCHEMA,
    "end_date": DATE_SCHEMA,
    "expected_daily_minutes": {"type": "integer", "minimum": 0, "default": DEFAULT_EXPECTED_MINUTES},
    "exclude_weekends": {"type": "boolean", "default": True},
    "exclude_holidays": {"type": "boolean", "default": True},
    "holidays": HOLIDAYS_SCHEMA,
    "pre_holidays": {**HOLIDAYS_SCHEMA, "description": "Days before a holiday; they expect 87.5% of the daily minutes"},
    "all_users": {"type": "boolean", "default": False, "description": "Report over every user's work items"},
}


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for work-item tools."""
    tools = [
        Tool(
            name="workitems_list",
            description="List work items, following pages until exhausted. Defaults to the token owner's items.",
            inputSchema={
                "type": "object",
                "properties": {
                    "author": {"type": "string", "description": "Author login"},
                    "issue_id": _ISSUE_ID,
                    "start_date": DATE_SCHEMA,
                    "end_date": DATE_SCHEMA,
                    "all_users": {"type": "boolean", "default": False},
                    "limit": {"type": "integer", "minimum": 1, "description": "Stop after this many items"},
                },
            },
        ),
        Tool(
            name="workitems_recent",
            description="Most recently updated work items for the given users (default: token owner), newest first.",
            inputSchema={
                "type": "object",
                "properties": {
                    "users": {**LOGINS_SCHEMA, "description": "User logins (defaults to the token owner)"},
                    "limit": {"type": "integer", "minimum": 1, "maximum": DEFAULT_PAGE_SIZE, "default": _RECENT_DEFAULT},
                },
            },
        ),
        Tool(
            name="workitems_for_users",
            description=(
                "All work items of each given user, fetched in parallel. "
                "Users whose items could not be fetched are listed under 'errors'."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "user_logins": LOGINS_SCHEMA,
                    "issue_id": _ISSUE_ID,
                    "start_date": DATE_SCHEMA,
                    "end_date": DATE_SCHEMA,
                },
                "required": ["user_logins"],
            },
        ),
        Tool(
            name="workitems_all_users",
            description="Work items of every user, following pages until exhausted.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_id": _ISSUE_ID,
                    "start_date": DATE_SCHEMA,
                    "end_date": DATE_SCHEMA,
                },
            },
        ),
        Tool(
            name="workitem_create",
            description="Log time on an issue for one day.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_id": _ISSUE_ID,
                    "date": DATE_SCHEMA,
                    "minutes": _MINUTES,
                    "summary": {"type": "string", "description": "Short text"},
                    "description": {"type": "string"},
                    "uses_markdown": {"type": "boolean"},
                },
                "required": ["issue_id", "date", "minutes"],
            },
        ),
        Tool(
            name="workitems_create_period",
            description=(
                "Log the same time on an issue for every working day of a period. "
                "Days that fail are listed under 'failed' with the reason; the rest are still created."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_id": _ISSUE_ID,
                    "start_date": DATE_SCHEMA,
                    "end_date": DATE_SCHEMA,
                    "minutes": {**_MINUTES, "description": "Minutes per day"},
                    "summary": {"type": "string"},
                    "description": {"type": "string"},
                    "exclude_weekends": {"type": "boolean", "default": True},
                    "exclude_holidays": {"type": "boolean", "default": True},
                    "holidays": HOLIDAYS_SCHEMA,
                },
                "required": ["issue_id", "start_date", "end_date", "minutes"],
            },
        ),
        Tool(
            name="workitem_create_idempotent",
            description="Log time unless a work item with the same description already exists on that day.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_id": _ISSUE_ID,
                    "date": DATE_SCHEMA,
                    "minutes": _MINUTES,
                    "description": {"type": "string", "description": "Text used to detect an existing item"},
                },
                "required": ["issue_id", "date", "minutes", "description"],
            },
        ),
        Tool(
            name="workitem_delete",
            description="Delete a work item from an issue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_id": _ISSUE_ID,
                    "work_item_id": {"type": "string", "description": "Work item ID"},
                },
                "required": ["issue_id", "work_item_id"],
            },
        ),
        Tool(
            name="workitems_report_summary",
            description=(
                "Daily expected-vs-actual time report. Weekends and holidays are skipped; "
                "a day is invalid when logged time differs from the expectation in either direction."
            ),
            inputSchema={"type": "object", "properties": _REPORT_PROPERTIES},
        ),
        Tool(
            name="workitems_report_invalid",
            description="Only the days whose logged time differs from the expectation.",
            inputSchema={"type": "object", "properties": _REPORT_PROPERTIES},
        ),
        Tool(
            name="workitems_report_users",
            description="One independent time report per user. Users whose items could not be fetched are listed under 'errors'.",
            inputSchema={
                "type": "object",
                "properties": {
                    "user_logins": LOGINS_SCHEMA,
                    **{k: v for k, v in _REPORT_PROPERTIES.items() if k not in ("author", "all_users")},
                },
                "required": ["user_logins"],
            },
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "workitems_list": _handle_workitems_list,
        "workitems_recent": _handle_workitems_recent,
        "workitems_for_users": _handle_workitems_for_users,
        "workitems_all_users": _handle_workitems_all_users,
        "workitem_create": _handle_workitem_create,
        "workitems_create_period": _handle_workitems_create_period,
        "workitem_create_idempotent": _handle_workitem_create_idempotent,
        "workitem_delete": _handle_workitem_delete,
        "workitems_report_summary": _handle_report_summary,
        "workitems_report_invalid": _handle_report_invalid,
        "workitems_report_users": _handle_report_users,
    }

    return tools, handlers


def _report_options(arguments: dict[str, Any]) -> tuple[ReportOptions | None, list[TextContent] | None]:
    """Build ReportOptions from tool arguments, or return a validation error."""
    expected = arguments.get("expected_daily_minutes", DEFAULT_EXPECTED_MINUTES)
    expected_err = _validate_int_range(expected, "expected_daily_minutes", min_val=0)
    if expected_err:
        return None, expected_err
    for key in ("holidays", "pre_holidays"):
        list_err = _validate_str_list(arguments.get(key), key)
        if list_err:
            return None, list_err
    options = ReportOptions(
        author=arguments.get("author"),
        issue_id=arguments.get("issue_id"),
        start_date=arguments.get("start_date"),
        end_date=arguments.get("end_date"),
        expected_daily_minutes=expected,
        exclude_weekends=bool(arguments.get("exclude_weekends", True)),
        exclude_holidays=bool(arguments.get("exclude_holidays", True)),
        holidays=list(arguments.get("holidays") or []),
        pre_holidays=list(arguments.get("pre_holidays") or []),
        all_users=bool(arguments.get("all_users", False)),
    )
    return options, None


def _validate_create(arguments: dict[str, Any], *required: str) -> list[TextContent] | None:
    for key in required:
        if arguments.get(key) is None:
            return _text({"error": f"{key} is required", "code": "validation_error"})
    issue_err = _validate_str(arguments.get("issue_id"), "issue_id", required=True)
    if issue_err:
        return issue_err
    return _validate_int_range(arguments.get("minutes"), "minutes", min_val=1)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_workitems_list(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    limit_err = _validate_int_range(arguments.get("limit"), "limit", min_val=1)
    if limit_err:
        return limit_err
    items = await _get_client().list_work_items(
        author=arguments.get("author"),
        issue_id=arguments.get("issue_id"),
        start_date=arguments.get("start_date"),
        end_date=arguments.get("end_date"),
        limit=arguments.get("limit"),
        all_users=bool(arguments.get("all_users", False)),
    )
    return _text({"work_items": map_work_items(items), "count": len(items)})


async def _handle_workitems_recent(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    limit = arguments.get("limit", _RECENT_DEFAULT)
    limit_err = _validate_int_range(limit, "limit", min_val=1, max_val=DEFAULT_PAGE_SIZE)
    if limit_err:
        return limit_err
    users_err = _validate_str_list(arguments.get("users"), "users")
    if users_err:
        return users_err
    items = await _get_client().list_recent_work_items(arguments.get("users"), limit=limit)
    return _text({"work_items": map_work_items(items), "count": len(items)})


async def _handle_workitems_for_users(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    logins_err = _validate_str_list(arguments.get("user_logins"), "user_logins", required=True)
    if logins_err:
        return logins_err
    results = await _get_client().get_work_items_for_users(
        arguments["user_logins"],
        issue_id=arguments.get("issue_id"),
        start_date=arguments.get("start_date"),
        end_date=arguments.get("end_date"),
    )
    items = [item for result in successes(results) for item in result.value]
    payload: UsersWorkItemsResponse = {"work_items": map_work_items(items), "count": len(items)}
    errors: list[UserReportError] = [{"user_login": r.item, "error": r.reason} for r in failures(results)]
    if errors:
        payload["errors"] = errors
    return _text(payload)


async def _handle_workitems_all_users(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    items = await _get_client().list_work_items(
        issue_id=arguments.get("issue_id"),
        start_date=arguments.get("start_date"),
        end_date=arguments.get("end_date"),
        all_users=True,
    )
    return _text({"work_items": map_work_items(items), "count": len(items)})


async def _handle_workitem_create(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    create_err = _validate_create(arguments, "issue_id", "date", "minutes")
    if create_err:
        return create_err
    item = await _get_client().create_work_item(
        arguments["issue_id"],
        arguments["date"],
        arguments["minutes"],
        summary=arguments.get("summary"),
        description=arguments.get("description"),
        uses_markdown=arguments.get("uses_markdown"),
    )
    return _text({"work_item": map_work_item(item)})


async def _handle_workitems_create_period(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    create_err = _validate_create(arguments, "issue_id", "start_date", "end_date", "minutes")
    if create_err:
        return create_err
    holidays_err = _validate_str_list(arguments.get("holidays"), "holidays")
    if holidays_err:
        return holidays_err
    created, failed = await _get_client().create_work_items_for_period(
        arguments["issue_id"],
        arguments["start_date"],
        arguments["end_date"],
        arguments["minutes"],
        summary=arguments.get("summary"),
        description=arguments.get("description"),
        exclude_weekends=bool(arguments.get("exclude_weekends", True)),
        exclude_holidays=bool(arguments.get("exclude_holidays", True)),
        holidays=arguments.get("holidays") or [],
    )
    payload: WorkItemPeriodResponse = {
        "created": map_work_items(created),
        "failed": failed,  # type: ignore[typeddict-item]
    }
    return _text(payload)


async def _handle_workitem_create_idempotent(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    create_err = _validate_create(arguments, "issue_id", "date", "minutes", "description")
    if create_err:
        return create_err
    desc_err = _validate_str(arguments.get("description"), "description", required=True)
    if desc_err:
        return desc_err
    item = await _get_client().create_work_item_idempotent(
        arguments["issue_id"],
        arguments["date"],
        arguments["minutes"],
        arguments["description"],
    )
    if item is None:
        return _text({"created": False, "reason": "A work item with this description already exists on that day"})
    return _text({"created": True, "work_item": map_work_item(item)})


async def _handle_workitem_delete(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    for key in ("issue_id", "work_item_id"):
        key_err = _validate_str(arguments.get(key), key, required=True)
        if key_err:
            return key_err
    return _text(await _get_client().delete_work_item(arguments["issue_id"], arguments["work_item_id"]))


async def _handle_report_summary(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    options, options_err = _report_options(arguments)
    if options_err:
        return options_err
    assert options is not None
    return _text(await generate_work_item_report(_get_client(), options))


async def _handle_report_invalid(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    options, options_err = _report_options(arguments)
    if options_err:
        return options_err
    assert options is not None
    invalid_days = await generate_invalid_work_item_report(_get_client(), options)
    return _text({"invalid_days": invalid_days, "count": len(invalid_days)})


async def _handle_report_users(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    logins_err = _validate_str_list(arguments.get("user_logins"), "user_logins", required=True)
    if logins_err:
        return logins_err
    options, options_err = _report_options(arguments)
    if options_err:
        return options_err
    assert options is not None
    return _text(await generate_users_work_item_reports(_get_client(), arguments["user_logins"], options))
