"""Shared pytest fixtures for youtrack-mcp tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from tests._fake_youtrack import FakeYoutrack
from youtrack_mcp.client import YoutrackClient
from youtrack_mcp.config import YoutrackConfig

BASE_URL = "https://yt.example.com"


@pytest.fixture
def config(tmp_path: Path) -> YoutrackConfig:
    return YoutrackConfig(base_url=BASE_URL, token="perm:test-token", log_dir=tmp_path / "logs", concurrency=3)


@pytest.fixture
def fake() -> FakeYoutrack:
    """Fresh fake server; ``/api/users/me`` answers as alice."""
    return FakeYoutrack()


@pytest.fixture
async def client(config: YoutrackConfig, fake: FakeYoutrack) -> AsyncIterator[YoutrackClient]:
    async with YoutrackClient(config, transport=fake.transport) as c:
        yield c


@pytest.fixture
def env() -> dict[str, str]:
    """Environment with the two required variables set."""
    return {"YOUTRACK_URL": BASE_URL, "YOUTRACK_TOKEN": "perm:test-token"}


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
