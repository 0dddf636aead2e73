"""MCP tools for reading issues, their comments and history, and activity search."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import TextContent, Tool

from youtrack_mcp.activity import DEFAULT_LIMIT, MAX_LIMIT, SEARCH_MODES, ActivitySearchRequest, search_issues_by_user_activity
from youtrack_mcp.batch import Failure, Success
from youtrack_mcp.dates import parse_date_input, parse_window_end
from youtrack_mcp.mappers import map_activities, map_comments, map_issue, map_issue_brief, map_issue_details
from youtrack_mcp.mcp_tools.common import (
    DATE_SCHEMA,
    LOGINS_SCHEMA,
    _text,
    _validate_int_range,
    _validate_str,
    _validate_str_list,
)
from youtrack_mcp.query import IssueListFilter
from youtrack_mcp.types.api import IssuesCommentsResponse, IssuesResponse, ItemError

_ISSUE_ID = {"type": "string", "description": "Issue ID (e.g. PROJ-123)"}
_ISSUE_IDS = {"type": "array", "items": {"type": "string"}, "minItems": 1, "description": "Issue IDs"}
_MAX_BATCH_IDS = 50


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for issue-domain tools."""
    tools = [
        Tool(
            name="issue_lookup",
            description="Get an issue with its description, project, parent, and assignee.",
            inputSchema={"type": "object", "properties": {"issue_id": _ISSUE_ID}, "required": ["issue_id"]},
        ),
        Tool(
            name="issue_details",
            description="Get an issue with timestamps, reporter, and last updater; optionally with custom fields.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_id": _ISSUE_ID,
                    "include_custom_fields": {"type": "boolean", "default": False},
                },
                "required": ["issue_id"],
            },
        ),
        Tool(
            name="issues_lookup",
            description=(
                f"Get up to {_MAX_BATCH_IDS} issues in one call. "
                "Ids that do not resolve to an issue are listed under 'errors'."
            ),
            inputSchema={"type": "object", "properties": {"issue_ids": _ISSUE_IDS}, "required": ["issue_ids"]},
        ),
        Tool(
            name="issues_details",
            description=(
                f"Get details for up to {_MAX_BATCH_IDS} issues in one call, optionally with custom fields. "
                "Ids that do not resolve to an issue are listed under 'errors'."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_ids": _ISSUE_IDS,
                    "include_custom_fields": {"type": "boolean", "default": False},
                },
                "required": ["issue_ids"],
            },
        ),
        Tool(
            name="issue_comments",
            description="Get all comments on an issue, each with a direct link.",
            inputSchema={"type": "object", "properties": {"issue_id": _ISSUE_ID}, "required": ["issue_id"]},
        ),
        Tool(
            name="issues_comments",
            description=(
                f"Get comments for up to {_MAX_BATCH_IDS} issues in one call. "
                "Issues whose comments could not be fetched are listed under 'errors'."
            ),
            inputSchema={"type": "object", "properties": {"issue_ids": _ISSUE_IDS}, "required": ["issue_ids"]},
        ),
        Tool(
            name="issue_activities",
            description="Get the change history of an issue (field changes and comments), optionally filtered by author and time.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_id": _ISSUE_ID,
                    "author": {"type": "string", "description": "Only changes made by this login"},
                    "start_date": DATE_SCHEMA,
                    "end_date": DATE_SCHEMA,
                    "categories": {"type": "string", "description": "Comma-separated activity categories"},
                },
                "required": ["issue_id"],
            },
        ),
        Tool(
            name="issues_list",
            description="List issues with structured filters. Filters of one kind are OR-ed; different kinds are AND-ed.",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_ids": {"type": "array", "items": {"type": "string"}, "description": "Project ids or short names"},
                    "created_after": DATE_SCHEMA,
                    "created_before": DATE_SCHEMA,
                    "updated_after": DATE_SCHEMA,
                    "updated_before": DATE_SCHEMA,
                    "statuses": {"type": "array", "items": {"type": "string"}, "description": "State names"},
                    "assignee_login": {"type": "string", "description": "Assignee login ('me' for the token owner)"},
                    "types": {"type": "array", "items": {"type": "string"}, "description": "Issue types"},
                    "sort_field": {"type": "string", "enum": ["created", "updated"], "default": "created"},
                    "sort_direction": {"type": "string", "enum": ["asc", "desc"], "default": "desc"},
                    "brief": {"type": "boolean", "default": True, "description": "Omit descriptions"},
                    "limit": {"type": "integer", "default": DEFAULT_LIMIT, "minimum": 1, "maximum": MAX_LIMIT},
                    "skip": {"type": "integer", "default": 0, "minimum": 0},
                },
            },
        ),
        Tool(
            name="issue_search_by_user_activity",
            description=(
                "Find issues that any of the given users touched in a period, newest first. "
                "'fast' matches on the issue's own updated time; 'precise' inspects comments, "
                "mentions, field changes and assignment history and reports last_activity_date."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "user_logins": LOGINS_SCHEMA,
                    "start_date": DATE_SCHEMA,
                    "end_date": DATE_SCHEMA,
                    "mode": {"type": "string", "enum": list(SEARCH_MODES), "default": "fast"},
                    "brief_output": {"type": "boolean", "default": True},
                    "limit": {"type": "integer", "default": DEFAULT_LIMIT, "minimum": 1, "maximum": MAX_LIMIT},
                    "skip": {"type": "integer", "default": 0, "minimum": 0},
                },
                "required": ["user_logins"],
            },
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "issue_lookup": _handle_issue_lookup,
        "issue_details": _handle_issue_details,
        "issues_lookup": _handle_issues_lookup,
        "issues_details": _handle_issues_details,
        "issue_comments": _handle_issue_comments,
        "issues_comments": _handle_issues_comments,
        "issue_activities": _handle_issue_activities,
        "issues_list": _handle_issues_list,
        "issue_search_by_user_activity": _handle_search_by_user_activity,
    }

    return tools, handlers


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_issue_lookup(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    issue_err = _validate_str(arguments.get("issue_id"), "issue_id", required=True)
    if issue_err:
        return issue_err
    issue = await _get_client().get_issue(arguments["issue_id"])
    return _text({"issue": map_issue(issue)})


async def _handle_issue_details(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    issue_err = _validate_str(arguments.get("issue_id"), "issue_id", required=True)
    if issue_err:
        return issue_err
    issue = await _get_client().get_issue_details(
        arguments["issue_id"],
        include_custom_fields=bool(arguments.get("include_custom_fields", False)),
    )
    return _text({"issue": map_issue_details(issue)})


def _validate_issue_ids(issue_ids: Any) -> list[TextContent] | None:
    ids_err = _validate_str_list(issue_ids, "issue_ids", required=True)
    if ids_err:
        return ids_err
    if len(issue_ids) > _MAX_BATCH_IDS:
        return _text({"error": f"issue_ids must contain at most {_MAX_BATCH_IDS} ids", "code": "validation_error"})
    return None


def _issues_payload(issues: list[dict[str, Any]], errors: list[ItemError]) -> list[TextContent]:
    payload: IssuesResponse = {"issues": issues}
    if errors:
        payload["errors"] = errors
    return _text(payload)


async def _handle_issues_lookup(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    ids_err = _validate_issue_ids(arguments.get("issue_ids"))
    if ids_err:
        return ids_err
    found, errors = await _get_client().get_issues_by_ids(arguments["issue_ids"])
    return _issues_payload([map_issue(issue) for issue in found], errors)


async def _handle_issues_details(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    ids_err = _validate_issue_ids(arguments.get("issue_ids"))
    if ids_err:
        return ids_err
    found, errors = await _get_client().get_issues_details(
        arguments["issue_ids"],
        include_custom_fields=bool(arguments.get("include_custom_fields", False)),
    )
    return _issues_payload([map_issue_details(issue) for issue in found], errors)


async def _handle_issue_comments(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    issue_err = _validate_str(arguments.get("issue_id"), "issue_id", required=True)
    if issue_err:
        return issue_err
    client = _get_client()
    issue_id = arguments["issue_id"]
    comments = await client.get_issue_comments(issue_id)
    return _text({"issue_id": issue_id, "comments": map_comments(comments, client.base_url, issue_id)})


async def _handle_issues_comments(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    issue_ids = arguments.get("issue_ids")
    ids_err = _validate_issue_ids(issue_ids)
    if ids_err:
        return ids_err

    client = _get_client()
    results = await client.get_issues_comments(issue_ids)
    comments_by_issue: dict[str, list[dict[str, Any]]] = {}
    errors: list[ItemError] = []
    for result in results:
        if isinstance(result, Success):
            comments_by_issue[result.item] = map_comments(result.value or [], client.base_url, result.item)
        elif isinstance(result, Failure):
            errors.append({"issue_id": result.item, "error": result.reason})
    payload: IssuesCommentsResponse = {"comments_by_issue": comments_by_issue}
    if errors:
        payload["errors"] = errors
    return _text(payload)


async def _handle_issue_activities(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    issue_err = _validate_str(arguments.get("issue_id"), "issue_id", required=True)
    if issue_err:
        return issue_err
    author_err = _validate_str(arguments.get("author"), "author")
    if author_err:
        return author_err

    kwargs: dict[str, Any] = {"author": arguments.get("author")}
    if arguments.get("start_date") is not None:
        kwargs["start"] = parse_date_input(arguments["start_date"])
    if arguments.get("end_date") is not None:
        kwargs["end"] = parse_window_end(arguments["end_date"])
    if arguments.get("categories"):
        kwargs["categories"] = arguments["categories"]
    activities = await _get_client().get_issue_activities(arguments["issue_id"], **kwargs)
    return _text({"issue_id": arguments["issue_id"], "activities": map_activities(activities)})


async def _handle_issues_list(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    limit = arguments.get("limit", DEFAULT_LIMIT)
    skip = arguments.get("skip", 0)
    limit_err = _validate_int_range(limit, "limit", min_val=1, max_val=MAX_LIMIT)
    if limit_err:
        return limit_err
    skip_err = _validate_int_range(skip, "skip", min_val=0)
    if skip_err:
        return skip_err
    for key in ("project_ids", "statuses", "types"):
        list_err = _validate_str_list(arguments.get(key), key)
        if list_err:
            return list_err
    sort_field = arguments.get("sort_field", "created")
    sort_direction = arguments.get("sort_direction", "desc")
    if sort_field not in ("created", "updated"):
        return _text({"error": "sort_field must be 'created' or 'updated'", "code": "validation_error"})
    if sort_direction not in ("asc", "desc"):
        return _text({"error": "sort_direction must be 'asc' or 'desc'", "code": "validation_error"})

    filters = IssueListFilter(
        project_ids=arguments.get("project_ids") or [],
        created_after=arguments.get("created_after"),
        created_before=arguments.get("created_before"),
        updated_after=arguments.get("updated_after"),
        updated_before=arguments.get("updated_before"),
        statuses=arguments.get("statuses") or [],
        assignee_login=arguments.get("assignee_login"),
        types=arguments.get("types") or [],
    )
    brief = bool(arguments.get("brief", True))
    result = await _get_client().list_issues(
        filters,
        sort_field=sort_field,
        sort_direction=sort_direction,
        brief=brief,
        limit=limit,
        skip=skip,
    )
    mapper = map_issue_brief if brief else map_issue
    result["issues"] = [mapper(issue) for issue in result["issues"]]
    return _text(result)


async def _handle_search_by_user_activity(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    logins_err = _validate_str_list(arguments.get("user_logins"), "user_logins", required=True)
    if logins_err:
        return logins_err
    request = ActivitySearchRequest(
        user_logins=arguments["user_logins"],
        start_date=arguments.get("start_date"),
        end_date=arguments.get("end_date"),
        mode=arguments.get("mode", "fast"),
        brief_output=bool(arguments.get("brief_output", True)),
        limit=arguments.get("limit", DEFAULT_LIMIT),
        skip=arguments.get("skip", 0),
    )
    return _text(await search_issues_by_user_activity(_get_client(), request))
