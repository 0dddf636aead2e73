"""MCP tools for service status, users, and projects."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import TextContent, Tool

from youtrack_mcp import __version__
from youtrack_mcp.config import redacted
from youtrack_mcp.mcp_tools.common import _text, _validate_str


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for meta-domain tools."""
    tools = [
        Tool(
            name="service_info",
            description="Show the YouTrack integration status: service version, redacted configuration, and the token owner.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="users_list",
            description="List YouTrack users (id, login, name, fullName, email).",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="user_current",
            description="Get the user who owns the configured token.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="user_get",
            description="Get a YouTrack user by login.",
            inputSchema={
                "type": "object",
                "properties": {"login": {"type": "string", "description": "User login ('me' for the token owner)"}},
                "required": ["login"],
            },
        ),
        Tool(
            name="projects_list",
            description="List YouTrack projects (id, shortName, name).",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "service_info": _handle_service_info,
        "users_list": _handle_users_list,
        "user_current": _handle_user_current,
        "user_get": _handle_user_get,
        "projects_list": _handle_projects_list,
    }

    return tools, handlers


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_service_info(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    client = _get_client()
    current_user = await client.get_current_user()
    return _text(
        {
            "service": {"name": "youtrack-mcp", "version": __version__},
            "configuration": redacted(client.config),
            "current_user": current_user,
        }
    )


async def _handle_users_list(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    users = await _get_client().list_users()
    return _text({"users": users, "count": len(users)})


async def _handle_user_current(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    return _text({"user": await _get_client().get_current_user()})


async def _handle_user_get(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    login = arguments.get("login")
    login_err = _validate_str(login, "login", required=True)
    if login_err:
        return login_err
    return _text({"user": await _get_client().resolve_user(login)})


async def _handle_projects_list(arguments: dict[str, Any]) -> list[TextContent]:
    from youtrack_mcp.mcp_server import _get_client

    projects = await _get_client().list_projects()
    return _text({"projects": projects, "count": len(projects)})
