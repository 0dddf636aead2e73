"""Server configuration from the environment and an optional JSON file.

Environment variables win over the file:

    YOUTRACK_URL               base URL of the YouTrack instance (required)
    YOUTRACK_TOKEN             permanent token (required)
    YOUTRACK_MCP_LOG_DIR       directory for youtrack-mcp.log
    YOUTRACK_MCP_CONCURRENCY   default cap for batched remote calls
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TypedDict
from urllib.parse import urlparse

from youtrack_mcp.batch import DEFAULT_CONCURRENCY
from youtrack_mcp.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path.home() / ".youtrack-mcp"

_ENV_KEYS = {
    "base_url": "YOUTRACK_URL",
    "token": "YOUTRACK_TOKEN",
    "log_dir": "YOUTRACK_MCP_LOG_DIR",
    "concurrency": "YOUTRACK_MCP_CONCURRENCY",
}


class FileConfig(TypedDict, total=False):
    """Shape of the optional JSON config file."""

    base_url: str
    token: str
    log_dir: str
    concurrency: int


@dataclass(frozen=True)
class YoutrackConfig:
    base_url: str
    token: str
    log_dir: Path = DEFAULT_LOG_DIR
    concurrency: int = DEFAULT_CONCURRENCY


def read_config_file(path: Path | None) -> FileConfig:
    """Read a JSON config file. Returns an empty config if missing or corrupt."""
    if path is None or not path.exists():
        return FileConfig()
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, ignoring it: %s", path, exc)
        return FileConfig()
    if not isinstance(data, dict):
        logger.warning("Config file %s is not a JSON object, ignoring it", path)
        return FileConfig()
    result: FileConfig = data  # type: ignore[assignment]
    return result


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def load_config(env: Mapping[str, str] | None = None, config_path: Path | None = None) -> YoutrackConfig:
    """Build the configuration, raising ConfigError naming what is missing or invalid."""
    env = os.environ if env is None else env
    file_config = read_config_file(config_path)

    def _get(key: str) -> str | None:
        raw = env.get(_ENV_KEYS[key])
        if raw is not None and raw.strip():
            return raw.strip()
        value = file_config.get(key)  # type: ignore[misc]
        return str(value) if value not in (None, "") else None

    base_url = _get("base_url")
    token = _get("token")
    missing = [_ENV_KEYS[k] for k, v in (("base_url", base_url), ("token", token)) if not v]
    if missing:
        msg = f"YouTrack configuration error: missing environment variables: {', '.join(missing)}"
        raise ConfigError(msg)
    assert base_url is not None and token is not None
    if not _is_http_url(base_url):
        msg = f"YouTrack configuration error: {_ENV_KEYS['base_url']} must be an http(s) URL"
        raise ConfigError(msg)

    concurrency = DEFAULT_CONCURRENCY
    raw_concurrency = _get("concurrency")
    if raw_concurrency is not None:
        try:
            concurrency = int(raw_concurrency)
        except ValueError:
            msg = f"YouTrack configuration error: {_ENV_KEYS['concurrency']} must be an integer"
            raise ConfigError(msg) from None
        if concurrency <= 0:
            msg = f"YouTrack configuration error: {_ENV_KEYS['concurrency']} must be positive"
            raise ConfigError(msg)

    log_dir = _get("log_dir")
    return YoutrackConfig(
        base_url=base_url.rstrip("/"),
        token=token,
        log_dir=Path(log_dir).expanduser() if log_dir else DEFAULT_LOG_DIR,
        concurrency=concurrency,
    )


def redacted(config: YoutrackConfig) -> dict[str, object]:
    """Config view that is safe to return to callers."""
    return {"base_url": config.base_url, "has_token": bool(config.token), "concurrency": config.concurrency}
