"""Convert raw YouTrack records into response-friendly dicts.

Epoch-millisecond fields become ISO strings; everything else is passed
through unchanged.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from youtrack_mcp.dates import to_iso_date, to_iso_datetime


def comment_url(base_url: str, issue_id: str, comment_id: str) -> str:
    return f"{base_url.rstrip('/')}/issue/{issue_id}#focus=Comments-{comment_id}.0-0"


def map_issue(issue: Mapping[str, Any]) -> dict[str, Any]:
    return dict(issue)


def map_issue_brief(issue: Mapping[str, Any]) -> dict[str, Any]:
    """Drop the description fields from a search result."""
    return {k: v for k, v in issue.items() if k not in ("description", "wikifiedDescription", "usesMarkdown")}


def map_issue_details(issue: Mapping[str, Any]) -> dict[str, Any]:
    mapped = dict(issue)
    for key in ("created", "updated", "resolved"):
        if key in mapped:
            mapped[key] = to_iso_datetime(mapped[key])
    return mapped


def map_work_item(item: Mapping[str, Any]) -> dict[str, Any]:
    mapped = dict(item)
    raw_date = item.get("date")
    mapped["date"] = to_iso_date(raw_date) if raw_date is not None else ""
    if "updated" in mapped:
        mapped["updated"] = to_iso_datetime(mapped["updated"])
    return mapped


def map_work_items(items: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [map_work_item(i) for i in items]


def map_comment(comment: Mapping[str, Any], base_url: str | None = None, issue_id: str | None = None) -> dict[str, Any]:
    mapped = dict(comment)
    mapped["created"] = to_iso_datetime(comment.get("created")) or ""
    if "updated" in mapped:
        mapped["updated"] = to_iso_datetime(mapped["updated"])
    if base_url and issue_id and comment.get("id"):
        mapped["comment_url"] = comment_url(base_url, issue_id, comment["id"])
    return mapped


def map_comments(comments: Sequence[Mapping[str, Any]], base_url: str | None = None, issue_id: str | None = None) -> list[dict[str, Any]]:
    return [map_comment(c, base_url, issue_id) for c in comments]


def map_activity(activity: Mapping[str, Any]) -> dict[str, Any]:
    mapped = dict(activity)
    mapped["timestamp"] = to_iso_datetime(activity.get("timestamp"))
    return mapped


def map_activities(activities: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [map_activity(a) for a in activities]
