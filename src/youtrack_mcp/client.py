"""Async client for the YouTrack REST API.

Every read goes through the negotiation layer so call sites never deal with
pagination-dialect or query-grammar differences between deployments.  Batched
per-item reads go through :func:`youtrack_mcp.batch.run_bounded`.

Lookups that rarely change (current user, users by login, projects by short
name) are memoised on the client instance and live exactly as long as it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any
from urllib.parse import quote

import httpx

from youtrack_mcp.batch import (
    HEAVY_CONCURRENCY,
    LIGHT_CONCURRENCY,
    Failure,
    JobResult,
    Success,
    failures,
    raise_first_failure,
    run_bounded,
    successes,
)
from youtrack_mcp.config import YoutrackConfig
from youtrack_mcp.dates import (
    DateInput,
    day_bounds,
    enumerate_date_range,
    filter_working_days,
    parse_date_input,
    to_iso_date,
    validate_date_range,
)
from youtrack_mcp.errors import YoutrackClientError
from youtrack_mcp.negotiation import negotiate_pagination, negotiate_query, unbrace
from youtrack_mcp.query import IssueListFilter, build_issue_query, issue_id_query
from youtrack_mcp.types.api import ItemError
from youtrack_mcp.types.core import ActivityItem, Comment, Issue, IssueDetails, Project, User, WorkItem

__all__ = ["DEFAULT_FIELDS", "DEFAULT_PAGE_SIZE", "YoutrackClient", "YoutrackClientError"]

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200
DEFAULT_TIMEOUT = 30.0
ACTIVITY_CATEGORIES = "CustomFieldCategory,CommentsCategory"

_ISSUE_BASE = [
    "id",
    "idReadable",
    "summary",
    "project(id,shortName,name)",
    "parent(id,idReadable)",
    "assignee(id,login,name)",
    "watchers(hasStar)",
]
_DESCRIPTION = ["description", "wikifiedDescription", "usesMarkdown"]
_WORK_ITEM = (
    "id,date,updated,duration(minutes,presentation),text,textPreview,usesMarkdown,"
    "description,issue(id,idReadable),author(id,login,name,email)"
)

DEFAULT_FIELDS: dict[str, str] = {
    "issue": ",".join(_ISSUE_BASE[:3] + _DESCRIPTION + _ISSUE_BASE[3:]),
    "issue_brief": ",".join(_ISSUE_BASE),
    "issue_details": ",".join(
        _ISSUE_BASE[:3]
        + _DESCRIPTION
        + ["created", "updated", "resolved"]
        + _ISSUE_BASE[3:6]
        + ["reporter(id,login,name)", "updater(id,login,name)", "watchers(hasStar)"]
    ),
    "issue_details_light": "id,idReadable,updated,updater(login)",
    "custom_fields": "customFields(id,name,value(id,name,presentation),$type,possibleEvents(id,presentation))",
    "comments": "id,text,textPreview,usesMarkdown,author(id,login,name),created,updated",
    "comments_light": "id,author(login),created,text",
    "activities": "id,timestamp,author(id,login,name),category(id),target(text),added(name,id,login),removed(name,id,login),$type",
    "work_item": _WORK_ITEM,
    "users": "id,login,name,fullName,email",
    "projects": "id,shortName,name",
}


def normalize_error(response: httpx.Response) -> YoutrackClientError:
    """Build a YoutrackClientError from an error response body."""
    details: Any = None
    message: str | None = None
    try:
        details = response.json()
    except ValueError:
        details = response.text or None
    if isinstance(details, dict):
        for key in ("error_description", "message", "error"):
            if isinstance(details.get(key), str) and details[key]:
                message = details[key]
                break
    if message is None:
        message = f"HTTP {response.status_code} {response.reason_phrase}".strip()
    return YoutrackClientError(f"YouTrack API error: {message}", response.status_code, details)


def _path_id(value: str) -> str:
    return quote(value, safe="")


class YoutrackClient:
    """Thin async wrapper over the YouTrack REST API."""

    def __init__(
        self,
        config: YoutrackConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.config = config
        self.concurrency = config.concurrency
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "Authorization": f"Bearer {config.token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )
        self.current_user: User | None = None
        self.users_by_login: dict[str, User] = {}
        self.projects_by_short_name: dict[str, Project] = {}

    @property
    def base_url(self) -> str:
        return self.config.base_url

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> YoutrackClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._http.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            raise YoutrackClientError(f"YouTrack API error: {exc}") from exc
        if response.is_error:
            error = normalize_error(response)
            logger.debug("%s %s -> %s: %s", method, path, response.status_code, error.message)
            raise error
        if not response.content:
            return None
        return response.json()

    async def _send(self, path: str, params: dict[str, Any]) -> JobResult:
        """GET as a tagged result, for the negotiation strategies."""
        try:
            value = await self._request("GET", path, params=params)
        except YoutrackClientError as exc:
            return Failure(item=path, reason=exc.message, error=exc)
        return Success(item=path, value=value)

    async def get(self, path: str, params: dict[str, Any]) -> Any:
        """GET with pagination-dialect negotiation."""
        return (await negotiate_pagination(self._send, path, params)).unwrap()

    async def search(
        self,
        path: str,
        params: dict[str, Any],
        relax: Callable[[str], str] = unbrace,
    ) -> Any:
        """GET with query-grammar negotiation on ``params["query"]``."""
        return (await negotiate_query(self._send, path, params, relax)).unwrap()

    # ------------------------------------------------------------------
    # Users and projects
    # ------------------------------------------------------------------

    async def get_current_user(self) -> User:
        if self.current_user is not None:
            return self.current_user
        user = await self.get("/api/users/me", {"fields": DEFAULT_FIELDS["users"]})
        self.current_user = user
        if user.get("login"):
            self.users_by_login[user["login"]] = user
        return user

    async def get_user_by_login(self, login: str) -> User | None:
        if login in self.users_by_login:
            return self.users_by_login[login]
        users = await self.search(
            "/api/users",
            {"fields": DEFAULT_FIELDS["users"], "query": f"login: {{{login}}}", "$top": 1},
        )
        user = users[0] if users else None
        if user and user.get("login"):
            self.users_by_login[user["login"]] = user
        return user

    async def resolve_user(self, login: str) -> User:
        """Resolve a login (``me`` for the token owner), raising if unknown."""
        if login == "me":
            return await self.get_current_user()
        user = await self.get_user_by_login(login)
        if user is None:
            msg = f"User with login '{login}' not found"
            raise YoutrackClientError(msg, 404)
        return user

    async def list_users(self) -> list[User]:
        users: list[User] = await self.get(
            "/api/users", {"fields": DEFAULT_FIELDS["users"], "$top": DEFAULT_PAGE_SIZE}
        )
        for user in users:
            if user.get("login"):
                self.users_by_login[user["login"]] = user
        return users

    async def list_projects(self) -> list[Project]:
        projects: list[Project] = []
        skip = 0
        while True:
            page = await self.get(
                "/api/admin/projects",
                {"fields": DEFAULT_FIELDS["projects"], "$top": DEFAULT_PAGE_SIZE, "$skip": skip},
            )
            projects.extend(page)
            if len(page) < DEFAULT_PAGE_SIZE:
                break
            skip += len(page)
        for project in projects:
            if project.get("shortName"):
                self.projects_by_short_name[project["shortName"]] = project
        return projects

    async def get_project_by_short_name(self, short_name: str) -> Project | None:
        if short_name in self.projects_by_short_name:
            return self.projects_by_short_name[short_name]
        projects = await self.list_projects()
        return next((p for p in projects if p.get("shortName") == short_name), None)

    def _cached_project_by_id(self, project_id: str) -> Project | None:
        return next((p for p in self.projects_by_short_name.values() if p.get("id") == project_id), None)

    async def resolve_project(self, project_id: str) -> Project | None:
        """Find a project by internal id or short name."""
        project = self._cached_project_by_id(project_id)
        if project is not None:
            return project
        project = await self.get_project_by_short_name(project_id)
        if project is not None:
            return project
        # The short-name lookup refreshed the cache.
        return self._cached_project_by_id(project_id)

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    async def get_issue(self, issue_id: str) -> Issue:
        return await self.get(f"/api/issues/{_path_id(issue_id)}", {"fields": DEFAULT_FIELDS["issue"]})

    async def get_issue_details(self, issue_id: str, include_custom_fields: bool = False) -> IssueDetails:
        fields = DEFAULT_FIELDS["issue_details"]
        if include_custom_fields:
            fields = f"{fields},{DEFAULT_FIELDS['custom_fields']}"
        return await self.get(f"/api/issues/{_path_id(issue_id)}", {"fields": fields})

    async def get_issues_by_ids(
        self, issue_ids: Sequence[str], fields: str | None = None
    ) -> tuple[list[dict[str, Any]], list[ItemError]]:
        """Fetch many issues in one query; returns ``(found, errors)`` for missing ids."""
        if not issue_ids:
            return [], []
        found: list[dict[str, Any]] = await self.search(
            "/api/issues",
            {
                "fields": fields or DEFAULT_FIELDS["issue"],
                "query": issue_id_query(issue_ids),
                "$top": len(issue_ids),
            },
        )
        found_ids = {issue.get("idReadable") for issue in found}
        errors: list[ItemError] = [
            {"issue_id": i, "error": f"Issue '{i}' not found"} for i in issue_ids if i not in found_ids
        ]
        return found, errors

    async def get_issues_details(
        self, issue_ids: Sequence[str], include_custom_fields: bool = False
    ) -> tuple[list[dict[str, Any]], list[ItemError]]:
        fields = DEFAULT_FIELDS["issue_details"]
        if include_custom_fields:
            fields = f"{fields},{DEFAULT_FIELDS['custom_fields']}"
        return await self.get_issues_by_ids(issue_ids, fields)

    async def get_issues_details_light(self, issue_ids: Sequence[str]) -> list[dict[str, Any]]:
        """Only ``idReadable``, ``updated`` and ``updater.login`` per issue."""
        found, _ = await self.get_issues_by_ids(issue_ids, DEFAULT_FIELDS["issue_details_light"])
        return found

    async def get_issue_comments(self, issue_id: str, light: bool = False) -> list[Comment]:
        fields = DEFAULT_FIELDS["comments_light" if light else "comments"]
        return await self.get(f"/api/issues/{_path_id(issue_id)}/comments", {"fields": fields})

    async def get_issues_comments(self, issue_ids: Sequence[str], light: bool = False) -> list[JobResult]:
        """Comments for each issue, fetched under the concurrency cap; one result per id."""
        return await run_bounded(
            issue_ids,
            lambda issue_id: self.get_issue_comments(issue_id, light=light),
            self.concurrency,
        )

    async def get_issue_activities(
        self,
        issue_id: str,
        *,
        author: str | None = None,
        start: int | None = None,
        end: int | None = None,
        categories: str = ACTIVITY_CATEGORIES,
    ) -> list[ActivityItem]:
        params: dict[str, Any] = {"categories": categories, "fields": DEFAULT_FIELDS["activities"]}
        if author:
            params["author"] = author
        if start is not None:
            params["start"] = start
        if end is not None:
            params["end"] = end
        return await self.get(f"/api/issues/{_path_id(issue_id)}/activities", params)

    async def get_issues_activities(self, issue_ids: Sequence[str]) -> list[JobResult]:
        return await run_bounded(issue_ids, self.get_issue_activities, self.concurrency)

    async def search_issues(
        self,
        query: str,
        *,
        brief: bool = True,
        limit: int = DEFAULT_PAGE_SIZE,
        skip: int = 0,
        relax: Callable[[str], str] = unbrace,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "fields": DEFAULT_FIELDS["issue_brief" if brief else "issue"],
            "query": query,
            "$top": min(limit, DEFAULT_PAGE_SIZE),
        }
        if skip:
            params["$skip"] = skip
        return await self.search("/api/issues", params, relax)

    async def list_issues(
        self,
        filters: IssueListFilter,
        *,
        sort_field: str = "created",
        sort_direction: str = "desc",
        brief: bool = True,
        limit: int = DEFAULT_PAGE_SIZE,
        skip: int = 0,
    ) -> dict[str, Any]:
        built = await build_issue_query(filters, self.resolve_project)
        sort = f"sort by: {sort_field} {sort_direction}"
        query = f"{built.query} {sort}" if built.query else sort
        issues = await self.search_issues(query, brief=brief, limit=limit, skip=skip)
        return {
            "issues": issues,
            "query": query,
            "resolved_projects": built.resolved_projects,
            "pagination": {"returned": len(issues), "limit": limit, "skip": skip},
        }

    # ------------------------------------------------------------------
    # Work items
    # ------------------------------------------------------------------

    async def list_work_items(
        self,
        *,
        author: str | None = None,
        issue_id: str | None = None,
        start_date: DateInput | None = None,
        end_date: DateInput | None = None,
        limit: int | None = None,
        all_users: bool = False,
    ) -> list[WorkItem]:
        """All matching work items, following pages until exhausted or *limit* is met.

        Without *author* and *all_users*, only the token owner's items are returned.
        """
        params: dict[str, Any] = {"fields": DEFAULT_FIELDS["work_item"]}
        if issue_id:
            params["issueId"] = issue_id
        if start_date is not None:
            params["startDate"] = to_iso_date(start_date)
        if end_date is not None:
            params["endDate"] = to_iso_date(end_date)
        if not all_users:
            params["author"] = author or (await self.get_current_user())["login"]

        items: list[WorkItem] = []
        skip = 0
        while limit is None or len(items) < limit:
            page_size = DEFAULT_PAGE_SIZE if limit is None else min(limit - len(items), DEFAULT_PAGE_SIZE)
            page = await self.get("/api/workItems", {**params, "$top": page_size, "$skip": skip})
            items.extend(page)
            if len(page) < page_size:
                break
            skip += len(page)
        return items if limit is None else items[:limit]

    async def get_work_items_for_users(
        self,
        logins: Sequence[str],
        *,
        issue_id: str | None = None,
        start_date: DateInput | None = None,
        end_date: DateInput | None = None,
    ) -> list[JobResult]:
        return await run_bounded(
            logins,
            lambda login: self.list_work_items(
                author=login, issue_id=issue_id, start_date=start_date, end_date=end_date
            ),
            self.concurrency,
        )

    async def list_recent_work_items(self, users: Sequence[str] | None = None, limit: int = 50) -> list[WorkItem]:
        """Latest items across *users*, newest ``updated`` first.

        One failing user fails the call; there is nothing to show in its place.
        """
        logins = list(users) if users else [(await self.get_current_user())["login"]]

        async def _recent(login: str) -> list[WorkItem]:
            return await self.get(
                "/api/workItems",
                {"fields": DEFAULT_FIELDS["work_item"], "author": login, "$top": limit, "orderBy": "updated desc"},
            )

        results = await run_bounded(logins, _recent, LIGHT_CONCURRENCY)
        merged = [item for page in raise_first_failure(results) for item in page]
        merged.sort(key=lambda item: item.get("updated") or item.get("date") or 0, reverse=True)
        return merged[:limit]

    async def create_work_item(
        self,
        issue_id: str,
        date: DateInput,
        minutes: int,
        *,
        summary: str | None = None,
        description: str | None = None,
        uses_markdown: bool | None = None,
    ) -> WorkItem:
        if minutes <= 0:
            msg = "minutes must be positive"
            raise ValueError(msg)
        body: dict[str, Any] = {
            "date": parse_date_input(date),
            "duration": {"minutes": minutes},
            "text": summary if summary is not None else description,
            "description": description if description is not None else summary,
        }
        if uses_markdown is not None:
            body["usesMarkdown"] = uses_markdown
        return await self._request(
            "POST",
            f"/api/issues/{_path_id(issue_id)}/timeTracking/workItems",
            params={"fields": DEFAULT_FIELDS["work_item"]},
            json=body,
        )

    async def delete_work_item(self, issue_id: str, work_item_id: str) -> dict[str, Any]:
        await self._request("DELETE", f"/api/issues/{_path_id(issue_id)}/timeTracking/workItems/{_path_id(work_item_id)}")
        return {"issue_id": issue_id, "work_item_id": work_item_id, "deleted": True}

    async def create_work_items_for_period(
        self,
        issue_id: str,
        start_date: DateInput,
        end_date: DateInput,
        minutes: int,
        *,
        summary: str | None = None,
        description: str | None = None,
        uses_markdown: bool | None = None,
        exclude_weekends: bool = True,
        exclude_holidays: bool = True,
        holidays: Sequence[DateInput] = (),
    ) -> tuple[list[WorkItem], list[dict[str, str]]]:
        """One work item per working day; returns ``(created, failed)``.

        A failed day does not stop the others; it is reported with its reason.
        """
        validate_date_range(start_date, end_date)
        days = filter_working_days(
            enumerate_date_range(start_date, end_date),
            exclude_weekends=exclude_weekends,
            exclude_holidays=exclude_holidays,
            holidays=holidays,
        )
        results = await run_bounded(
            days,
            lambda day: self.create_work_item(
                issue_id, day, minutes, summary=summary, description=description, uses_markdown=uses_markdown
            ),
            min(self.concurrency, HEAVY_CONCURRENCY),
        )
        created = [r.value for r in successes(results)]
        failed = [{"date": r.item, "reason": r.reason} for r in failures(results)]
        return created, failed

    async def create_work_item_idempotent(
        self,
        issue_id: str,
        date: DateInput,
        minutes: int,
        description: str,
        *,
        uses_markdown: bool | None = None,
    ) -> WorkItem | None:
        """Create the item unless one with the same description exists that day.

        Returns ``None`` when an existing item was found.
        """
        start, end = day_bounds(date)
        existing = await self.list_work_items(issue_id=issue_id, start_date=start, end_date=end)
        for item in existing:
            same_day = start <= item.get("date", -1) <= end
            if same_day and description in (item.get("description"), item.get("text")):
                logger.info("Work item for %s on %s already exists; skipping", issue_id, to_iso_date(start))
                return None
        return await self.create_work_item(
            issue_id, date, minutes, summary=description, description=description, uses_markdown=uses_markdown
        )
