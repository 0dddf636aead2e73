"""Shapes of records as the YouTrack REST API returns them.

Keys mirror the remote JSON (camelCase).  Every key is optional because the
``fields`` projection of each request decides what comes back.
"""

from __future__ import annotations

from typing import TypedDict


class User(TypedDict, total=False):
    id: str
    login: str
    name: str
    fullName: str
    email: str


class Project(TypedDict, total=False):
    id: str
    shortName: str
    name: str


class IssueRef(TypedDict, total=False):
    id: str
    idReadable: str


class Issue(TypedDict, total=False):
    id: str
    idReadable: str
    summary: str
    description: str
    wikifiedDescription: str
    usesMarkdown: bool
    project: Project
    parent: IssueRef
    assignee: User | None


class IssueDetails(Issue, total=False):
    created: int | None
    updated: int | None
    resolved: int | None
    reporter: User | None
    updater: User | None


class Comment(TypedDict, total=False):
    id: str
    text: str
    textPreview: str
    usesMarkdown: bool
    author: User | None
    created: int
    updated: int | None


class ActivityValue(TypedDict, total=False):
    id: str
    name: str
    login: str


class ActivityItem(TypedDict, total=False):
    id: str
    timestamp: int
    author: User | None
    category: dict[str, str]
    target: dict[str, str]
    added: list[ActivityValue] | None
    removed: list[ActivityValue] | None


class Duration(TypedDict, total=False):
    minutes: int
    presentation: str


class WorkItem(TypedDict, total=False):
    id: str
    date: int
    updated: int | None
    duration: Duration
    text: str
    textPreview: str
    usesMarkdown: bool
    description: str
    issue: IssueRef
    author: User
