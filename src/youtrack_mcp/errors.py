"""Exception types shared by the client and the negotiation layer."""

from __future__ import annotations

from typing import Any


class YoutrackClientError(Exception):
    """A transport or remote-API failure, normalised.

    ``status`` is the HTTP status when the remote answered, ``None`` for
    transport errors.  ``details`` carries the decoded error body, if any.
    """

    def __init__(self, message: str, status: int | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details


class ConfigError(ValueError):
    """Missing or invalid server configuration."""
