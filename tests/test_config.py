"""Tests for configuration loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from youtrack_mcp.config import DEFAULT_LOG_DIR, load_config, read_config_file, redacted
from youtrack_mcp.errors import ConfigError


class TestLoadConfig:
    def test_from_environment(self, env: dict[str, str]) -> None:
        config = load_config(env={**env, "YOUTRACK_URL": "https://yt.example.com/"})
        assert config.base_url == "https://yt.example.com"
        assert config.token == "perm:test-token"
        assert config.log_dir == DEFAULT_LOG_DIR
        assert config.concurrency == 10

    def test_missing_variables_named(self) -> None:
        with pytest.raises(ConfigError, match="missing environment variables: YOUTRACK_URL, YOUTRACK_TOKEN"):
            load_config(env={})

    def test_blank_token_counts_as_missing(self, env: dict[str, str]) -> None:
        with pytest.raises(ConfigError, match="YOUTRACK_TOKEN"):
            load_config(env={**env, "YOUTRACK_TOKEN": "   "})

    def test_rejects_non_http_url(self, env: dict[str, str]) -> None:
        with pytest.raises(ConfigError, match="http"):
            load_config(env={**env, "YOUTRACK_URL": "ftp://yt.example.com"})

    @pytest.mark.parametrize("value", ["zero", "0", "-3"])
    def test_rejects_bad_concurrency(self, env: dict[str, str], value: str) -> None:
        with pytest.raises(ConfigError, match="YOUTRACK_MCP_CONCURRENCY"):
            load_config(env={**env, "YOUTRACK_MCP_CONCURRENCY": value})

    def test_config_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            load_config(env={})

    def test_file_fills_gaps_and_env_wins(self, tmp_path: Path) -> None:
        path = tmp_path / "youtrack.json"
        path.write_text(
            json.dumps(
                {
                    "base_url": "https://file.example.com",
                    "token": "perm:file",
                    "log_dir": str(tmp_path / "logs"),
                    "concurrency": 4,
                }
            )
        )
        config = load_config(env={"YOUTRACK_TOKEN": "perm:env"}, config_path=path)
        assert config.base_url == "https://file.example.com"
        assert config.token == "perm:env"
        assert config.log_dir == tmp_path / "logs"
        assert config.concurrency == 4


class TestReadConfigFile:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_config_file(tmp_path / "nope.json") == {}

    def test_corrupt_file_ignored(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        assert read_config_file(path) == {}
        assert "Failed to read" in caplog.text

    def test_non_object_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        assert read_config_file(path) == {}


def test_redacted_hides_token(env: dict[str, str]) -> None:
    view = redacted(load_config(env=env))
    assert view == {"base_url": "https://yt.example.com", "has_token": True, "concurrency": 10}
    assert "perm:test-token" not in json.dumps(view)
