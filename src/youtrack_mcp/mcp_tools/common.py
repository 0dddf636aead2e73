"""Pure helpers and constants shared across MCP tool modules.

This module has NO dependency on ``mcp_server`` module globals, so it can
be imported freely without triggering circular-import issues.
"""

from __future__ import annotations

import json
from typing import Any

from mcp.types import TextContent

from youtrack_mcp.errors import YoutrackClientError
from youtrack_mcp.types.api import ErrorResponse, RemoteErrorResponse

# Reused in several inputSchema definitions.
DATE_SCHEMA: dict[str, Any] = {
    "type": ["string", "integer"],
    "description": "Date as YYYY-MM-DD, ISO timestamp, or epoch milliseconds",
}
LOGINS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {"type": "string"},
    "minItems": 1,
    "description": "User logins",
}
HOLIDAYS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Holiday dates (YYYY-MM-DD)",
}


def _text(content: object) -> list[TextContent]:
    if isinstance(content, str):
        return [TextContent(type="text", text=content)]
    return [TextContent(type="text", text=json.dumps(content, indent=2, default=str))]


def _validation_error(message: str) -> list[TextContent]:
    data: ErrorResponse = {"error": message, "code": "validation_error"}
    return _text(data)


def _remote_error(exc: YoutrackClientError) -> list[TextContent]:
    data: RemoteErrorResponse = {
        "error": exc.message,
        "code": "not_found" if exc.status == 404 else "remote_error",
        "status": exc.status,
    }
    return _text(data)


def _validate_str(value: Any, name: str, *, required: bool = False) -> list[TextContent] | None:
    """Return a validation error if *value* is not a string (or missing when *required*)."""
    if value is None:
        return _validation_error(f"{name} is required") if required else None
    if not isinstance(value, str) or (required and not value.strip()):
        return _validation_error(f"{name} must be a non-empty string")
    return None


def _validate_int_range(
    value: Any,
    name: str,
    min_val: int | None = None,
    max_val: int | None = None,
) -> list[TextContent] | None:
    """Return a validation error if *value* is not ``None`` and outside range.

    When *value* is ``None`` it is considered optional and passes.
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        return _validation_error(f"{name} must be an integer")
    if min_val is not None and value < min_val:
        return _validation_error(f"{name} must be >= {min_val}")
    if max_val is not None and value > max_val:
        return _validation_error(f"{name} must be <= {max_val}")
    return None


def _validate_str_list(value: Any, name: str, *, required: bool = False) -> list[TextContent] | None:
    if value is None:
        return _validation_error(f"{name} is required") if required else None
    if not isinstance(value, list) or not all(isinstance(v, str) and v.strip() for v in value):
        return _validation_error(f"{name} must be a list of non-empty strings")
    if required and not value:
        return _validation_error(f"{name} must not be empty")
    return None

