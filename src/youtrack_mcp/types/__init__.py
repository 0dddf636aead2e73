# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from client.py, activity.py or reports.py; they import from here.
"""Typed shapes for remote YouTrack records and youtrack-mcp payloads."""

from __future__ import annotations

from youtrack_mcp.types.core import (
    ActivityItem,
    Comment,
    Issue,
    IssueDetails,
    Project,
    User,
    WorkItem,
)

__all__ = [
    "ActivityItem",
    "Comment",
    "Issue",
    "IssueDetails",
    "Project",
    "User",
    "WorkItem",
]
