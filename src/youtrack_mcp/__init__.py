"""youtrack-mcp: YouTrack exposed as MCP tools, with activity search and time reports."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("youtrack-mcp")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from youtrack_mcp.client import YoutrackClient, YoutrackClientError

__all__ = ["YoutrackClient", "YoutrackClientError", "__version__"]
