"""MCP server exposing YouTrack issues, activity search, and time reports.

Primary interface for agents.  Talks to the YouTrack REST API over httpx.

Usage:
    youtrack-mcp                              # Configuration from YOUTRACK_URL / YOUTRACK_TOKEN
    youtrack-mcp --config ~/.youtrack.json    # Plus a JSON file (environment wins)
    youtrack-mcp --log-dir /tmp/yt-logs       # Override where youtrack-mcp.log is written
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from youtrack_mcp.client import YoutrackClient
from youtrack_mcp.config import load_config, redacted
from youtrack_mcp.errors import ConfigError, YoutrackClientError
from youtrack_mcp.mcp_tools import issues as _issues_tools
from youtrack_mcp.mcp_tools import meta as _meta_tools
from youtrack_mcp.mcp_tools import workitems as _workitems_tools
from youtrack_mcp.mcp_tools.common import _remote_error, _text, _validation_error

server = Server("youtrack-mcp")
client: YoutrackClient | None = None
_logger: logging.Logger | None = None


def _get_client() -> YoutrackClient:
    if client is None:
        msg = "YouTrack client not initialized"
        raise RuntimeError(msg)
    return client


def _collect_tools() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    tools: list[Tool] = []
    handlers: dict[str, Callable[..., Any]] = {}
    for module in (_meta_tools, _issues_tools, _workitems_tools):
        module_tools, module_handlers = module.register()
        tools.extend(module_tools)
        handlers.update(module_handlers)
    return tools, handlers


_TOOLS, _HANDLERS = _collect_tools()


@server.list_tools()  # type: ignore[untyped-decorator,no-untyped-call]
async def list_tools() -> list[Tool]:
    return list(_TOOLS)


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    t0 = time.monotonic()

    try:
        result = await _dispatch(name, arguments or {})
    except Exception:
        if _logger:
            _logger.error("tool_error", extra={"tool": name, "args_data": arguments}, exc_info=True)
        raise
    else:
        duration_ms = round((time.monotonic() - t0) * 1000, 1)
        if _logger:
            _logger.info("tool_call", extra={"tool": name, "args_data": arguments, "duration_ms": duration_ms})
        return result


async def _dispatch(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    handler = _HANDLERS.get(name)
    if handler is None:
        return _text({"error": f"Unknown tool: {name}", "code": "unknown_tool"})
    try:
        result: list[TextContent] = await handler(arguments)
    except ValueError as e:
        return _validation_error(str(e))
    except YoutrackClientError as e:
        if _logger:
            _logger.warning("remote_error", extra={"tool": name, "error": e.message})
        return _remote_error(e)
    return result


async def _run(config_path: Path | None, log_dir: Path | None) -> None:
    global client, _logger

    try:
        config = load_config(config_path=config_path)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    from youtrack_mcp.logging import setup_logging

    _logger = setup_logging(log_dir or config.log_dir)
    _logger.info("mcp_server_start", extra={"tool": "server", "args_data": redacted(config)})

    client = YoutrackClient(config)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await client.aclose()
        client = None


def main() -> None:
    import asyncio

    parser = argparse.ArgumentParser(description="YouTrack MCP server")
    parser.add_argument("--config", type=Path, default=None, help="JSON config file (environment variables win)")
    parser.add_argument("--log-dir", type=Path, default=None, help="Directory for youtrack-mcp.log")
    args = parser.parse_args()

    asyncio.run(_run(args.config, args.log_dir))


if __name__ == "__main__":
    main()
