"""Find issues a set of users touched inside a time window.

Two modes:

``fast``
    One search query on the issue's own ``updated`` timestamp plus
    updater/mentions/reporter/assignee clauses.  Cheap, but blind to cases
    such as a user who was the assignee and has since been replaced.

``precise``
    Fetch a candidate page, then pull each candidate's comments, field-change
    history and last-updater metadata and correlate them per user.  Every
    match carries ``last_activity_date``, the newest qualifying timestamp.

The correlation itself (:func:`last_activity`, :func:`correlate`) is pure and
joins evidence to candidates by readable issue id.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from youtrack_mcp.batch import Failure, JobResult, Success
from youtrack_mcp.dates import DateInput, now_ms, parse_date_input, parse_window_end, to_iso_date, to_iso_datetime
from youtrack_mcp.mappers import map_issue, map_issue_brief
from youtrack_mcp.query import updated_range_clause, user_activity_clause, with_sort
from youtrack_mcp.types.core import ActivityItem, Comment, IssueDetails

if TYPE_CHECKING:
    from youtrack_mcp.client import YoutrackClient
    from youtrack_mcp.types.api import IssueSearchResponse, ItemError

logger = logging.getLogger(__name__)

SearchMode = Literal["fast", "precise"]
SEARCH_MODES: tuple[str, ...] = ("fast", "precise")
# Names the remote-facing tool used historically.
MODE_ALIASES = {"issue_updated": "fast", "user_activity": "precise"}

MAX_LIMIT = 200
DEFAULT_LIMIT = 100
CANDIDATE_PAGE_SIZE = 200


# ---------------------------------------------------------------------------
# Window and evidence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActivityWindow:
    """Closed interval ``[start_ms, end_ms]`` and the users searched for."""

    subjects: tuple[str, ...]
    start_ms: int = 0
    end_ms: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        if not self.subjects:
            msg = "At least one user login is required"
            raise ValueError(msg)
        if any(not isinstance(s, str) or not s.strip() for s in self.subjects):
            msg = "User logins must be non-empty strings"
            raise ValueError(msg)
        if self.start_ms > self.end_ms:
            msg = "startDate must be earlier than or equal to endDate"
            raise ValueError(msg)

    @classmethod
    def from_inputs(
        cls,
        subjects: Iterable[str],
        start: DateInput | None = None,
        end: DateInput | None = None,
    ) -> ActivityWindow:
        """Build a window from caller inputs; a date-only *end* covers that whole day."""
        start_ms = parse_date_input(start) if start is not None else 0
        end_ms = parse_window_end(end) if end is not None else now_ms()
        return cls(subjects=tuple(subjects), start_ms=start_ms, end_ms=end_ms)

    def contains(self, timestamp: Any) -> bool:
        if isinstance(timestamp, bool) or not isinstance(timestamp, int | float):
            return False
        return self.start_ms <= timestamp <= self.end_ms


@dataclass
class IssueEvidence:
    """Everything known about one candidate issue's activity."""

    details: IssueDetails | None = None
    comments: Sequence[Comment] = ()
    activities: Sequence[ActivityItem] = ()


@dataclass(frozen=True)
class ActivityMatch:
    issue: Mapping[str, Any]
    last_activity_ms: int

    @property
    def last_activity_date(self) -> str:
        return to_iso_datetime(self.last_activity_ms) or ""


def _login(user: Any) -> str | None:
    return user.get("login") if isinstance(user, Mapping) else None


def _carries(values: Any, subject: str) -> bool:
    return bool(values) and any(_login(v) == subject for v in values)


def _subject_timestamps(evidence: IssueEvidence, subject: str, window: ActivityWindow) -> Iterable[int]:
    mention = f"@{subject}"
    for comment in evidence.comments:
        created = comment.get("created")
        if not window.contains(created):
            continue
        if _login(comment.get("author")) == subject:
            yield created
        if mention in (comment.get("text") or ""):
            yield created

    for activity in evidence.activities:
        stamp = activity.get("timestamp")
        if not window.contains(stamp):
            continue
        if _login(activity.get("author")) == subject:
            yield stamp
        # Reassignment in either direction.
        if _carries(activity.get("added"), subject) or _carries(activity.get("removed"), subject):
            yield stamp

    details = evidence.details
    if details and _login(details.get("updater")) == subject and window.contains(details.get("updated")):
        yield details["updated"]


def last_activity(evidence: IssueEvidence, window: ActivityWindow) -> int | None:
    """Newest in-window timestamp at which any subject touched the issue, or None."""
    stamps = [int(ts) for subject in window.subjects for ts in _subject_timestamps(evidence, subject, window)]
    return max(stamps) if stamps else None


def correlate(
    candidates: Sequence[Mapping[str, Any]],
    evidence_by_id: Mapping[str, IssueEvidence],
    window: ActivityWindow,
) -> list[ActivityMatch]:
    """Keep candidates with in-window activity, newest first (stable on ties)."""
    matches: list[ActivityMatch] = []
    for issue in candidates:
        evidence = evidence_by_id.get(issue.get("idReadable", ""), IssueEvidence())
        stamp = last_activity(evidence, window)
        if stamp is not None:
            matches.append(ActivityMatch(issue=issue, last_activity_ms=stamp))
    matches.sort(key=lambda m: m.last_activity_ms, reverse=True)
    return matches


# ---------------------------------------------------------------------------
# Search orchestration
# ---------------------------------------------------------------------------


@dataclass
class ActivitySearchRequest:
    user_logins: list[str]
    start_date: DateInput | None = None
    end_date: DateInput | None = None
    mode: str = "fast"
    brief_output: bool = True
    limit: int = DEFAULT_LIMIT
    skip: int = 0

    def validate(self) -> tuple[SearchMode, ActivityWindow]:
        """Reject bad input before any request is made."""
        mode = MODE_ALIASES.get(self.mode, self.mode)
        if mode not in SEARCH_MODES:
            msg = f"mode must be one of {', '.join(SEARCH_MODES)}"
            raise ValueError(msg)
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or not 1 <= self.limit <= MAX_LIMIT:
            msg = f"limit must be between 1 and {MAX_LIMIT}"
            raise ValueError(msg)
        if isinstance(self.skip, bool) or not isinstance(self.skip, int) or self.skip < 0:
            msg = "skip must be >= 0"
            raise ValueError(msg)
        window = ActivityWindow.from_inputs(self.user_logins, self.start_date, self.end_date)
        return mode, window  # type: ignore[return-value]


def _period(request: ActivitySearchRequest) -> dict[str, str | None]:
    return {
        "start_date": to_iso_date(request.start_date) if request.start_date is not None else None,
        "end_date": to_iso_date(request.end_date) if request.end_date is not None else None,
    }


def _date_filter(request: ActivitySearchRequest) -> list[str]:
    if request.start_date is None and request.end_date is None:
        return []
    return [updated_range_clause(request.start_date, request.end_date)]


def _response(
    request: ActivitySearchRequest,
    mode: SearchMode,
    issues: list[dict[str, Any]],
    errors: list[ItemError] | None = None,
) -> IssueSearchResponse:
    payload: IssueSearchResponse = {
        "issues": issues,
        "user_logins": list(request.user_logins),
        "mode": mode,
        "period": _period(request),  # type: ignore[typeddict-item]
        "pagination": {"returned": len(issues), "limit": request.limit, "skip": request.skip},
    }
    if errors:
        payload["errors"] = errors
    return payload


async def search_issues_by_user_activity(client: YoutrackClient, request: ActivitySearchRequest) -> IssueSearchResponse:
    mode, window = request.validate()
    if mode == "fast":
        return await _search_fast(client, request)
    return await _search_precise(client, request, window)


async def _search_fast(client: YoutrackClient, request: ActivitySearchRequest) -> IssueSearchResponse:
    filters = [user_activity_clause(request.user_logins), *_date_filter(request)]
    page = await client.search_issues(
        with_sort(filters),
        brief=request.brief_output,
        limit=request.limit,
        skip=request.skip,
    )
    mapper = map_issue_brief if request.brief_output else map_issue
    return _response(request, "fast", [mapper(issue) for issue in page])


def _evidence_results(
    results: Sequence[JobResult],
    kind: str,
    errors: list[ItemError],
) -> dict[str, list[dict[str, Any]]]:
    collected: dict[str, list[dict[str, Any]]] = {}
    for result in results:
        if isinstance(result, Success):
            collected[result.item] = result.value or []
        elif isinstance(result, Failure):
            errors.append({"issue_id": result.item, "error": f"{kind}: {result.reason}"})
    return collected


async def gather_evidence(
    client: YoutrackClient,
    issue_ids: Sequence[str],
) -> tuple[dict[str, IssueEvidence], list[ItemError]]:
    """Fetch details, comments and activities for *issue_ids*, joined by id.

    Comment and activity fetches fail per issue and are reported; a failed
    details query fails the whole call.
    """
    details = await client.get_issues_details_light(issue_ids)
    comment_results = await client.get_issues_comments(issue_ids, light=True)
    activity_results = await client.get_issues_activities(issue_ids)

    errors: list[ItemError] = []
    details_by_id = {d.get("idReadable"): d for d in details}
    comments_by_id = _evidence_results(comment_results, "comments", errors)
    activities_by_id = _evidence_results(activity_results, "activities", errors)

    evidence = {
        issue_id: IssueEvidence(
            details=details_by_id.get(issue_id),
            comments=comments_by_id.get(issue_id, []),
            activities=activities_by_id.get(issue_id, []),
        )
        for issue_id in issue_ids
    }
    return evidence, errors


async def _search_precise(
    client: YoutrackClient,
    request: ActivitySearchRequest,
    window: ActivityWindow,
) -> IssueSearchResponse:
    date_filter = _date_filter(request)
    date_only_query = with_sort(date_filter)
    candidates = await client.search_issues(
        with_sort([user_activity_clause(request.user_logins), *date_filter]),
        brief=request.brief_output,
        limit=CANDIDATE_PAGE_SIZE,
        # The parser rejected the subject clauses: fall back to the window alone.
        relax=lambda _query: date_only_query,
    )
    if not candidates:
        return _response(request, "precise", [])

    issue_ids = [c["idReadable"] for c in candidates if c.get("idReadable")]
    evidence, errors = await gather_evidence(client, issue_ids)
    matches = correlate(candidates, evidence, window)
    logger.info(
        "Activity correlation: %d of %d candidates matched for %s",
        len(matches),
        len(candidates),
        ",".join(request.user_logins),
    )

    page = matches[request.skip : request.skip + request.limit]
    mapper = map_issue_brief if request.brief_output else map_issue
    issues = [{**mapper(dict(m.issue)), "last_activity_date": m.last_activity_date} for m in page]
    return _response(request, "precise", issues, errors)
