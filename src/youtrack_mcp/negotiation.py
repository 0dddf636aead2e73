"""Single-retry negotiation across incompatible remote dialects.

YouTrack deployments disagree on two things that every read request touches:

* pagination keys: newer servers take ``$top``/``$skip``, older ones only
  ``top``/``skip`` and answer 400 to the other pair;
* search-query grammar: some parsers reject braced values
  (``assignee: {jane}``) that others require for logins with punctuation.

Each negotiation is a two-step strategy over tagged results: run the
preferred attempt, and only if its :class:`Failure` matches the rejection
predicate run the alternative once.  Both are read-only, so retrying is safe.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from youtrack_mcp.batch import Failure, JobResult
from youtrack_mcp.errors import YoutrackClientError

logger = logging.getLogger(__name__)

Attempt = Callable[[], Awaitable[JobResult]]
Sender = Callable[[str, dict[str, Any]], Awaitable[JobResult]]

MODERN = ("$top", "$skip")
LEGACY = ("top", "skip")
_PAGINATION_KEYS = frozenset(MODERN + LEGACY)

_PARSE_REJECTION = "parse search query"
_BRACED = re.compile(r"\{([^{}]*)\}")


async def negotiate(
    primary: Attempt,
    fallback: Attempt,
    should_fallback: Callable[[Failure], bool],
) -> JobResult:
    """Run *primary*; run *fallback* once if *primary* failed in a way it covers.

    The fallback's outcome is returned as-is, success or failure.
    """
    first = await primary()
    if isinstance(first, Failure) and should_fallback(first):
        logger.debug("Primary attempt rejected (%s); retrying with fallback", first.reason)
        return await fallback()
    return first


# ---------------------------------------------------------------------------
# Pagination dialect
# ---------------------------------------------------------------------------


def has_pagination(params: Mapping[str, Any]) -> bool:
    return any(key in params for key in _PAGINATION_KEYS)


def to_dialect(params: Mapping[str, Any], dialect: tuple[str, str]) -> dict[str, Any]:
    """Return a copy of *params* with its pagination keys in *dialect*.

    Values are kept; an explicit key already in the target dialect wins over
    its counterpart.
    """
    top_key, skip_key = dialect
    out = dict(params)
    for source_top, source_skip in (MODERN, LEGACY):
        if (source_top, source_skip) == dialect:
            continue
        if source_top in out:
            value = out.pop(source_top)
            out.setdefault(top_key, value)
        if source_skip in out:
            value = out.pop(source_skip)
            out.setdefault(skip_key, value)
    return out


def is_dialect_rejection(failure: Failure) -> bool:
    """A 400 that is not the query parser complaining; those go to query negotiation."""
    error = failure.error
    return isinstance(error, YoutrackClientError) and error.status == 400 and not is_query_rejection(failure)


async def negotiate_pagination(send: Sender, path: str, params: Mapping[str, Any]) -> JobResult:
    """GET *path* with ``$top``/``$skip``, retrying with ``top``/``skip`` on a dialect rejection.

    Requests without pagination keys are sent once, unchanged.
    """
    if not has_pagination(params):
        return await send(path, dict(params))
    return await negotiate(
        lambda: send(path, to_dialect(params, MODERN)),
        lambda: send(path, to_dialect(params, LEGACY)),
        is_dialect_rejection,
    )


# ---------------------------------------------------------------------------
# Query grammar
# ---------------------------------------------------------------------------


def unbrace(query: str) -> str:
    """``updater: {jane.doe}`` -> ``updater: jane.doe``."""
    return _BRACED.sub(r"\1", query)


def is_query_rejection(failure: Failure) -> bool:
    error = failure.error
    message = error.message if isinstance(error, YoutrackClientError) else failure.reason
    return _PARSE_REJECTION in (message or "").lower()


async def negotiate_query(
    send: Sender,
    path: str,
    params: Mapping[str, Any],
    relax: Callable[[str], str] = unbrace,
) -> JobResult:
    """GET *path*; if the remote parser rejects ``params["query"]``, retry relaxed.

    Each attempt runs its own pagination negotiation.
    """
    strict = dict(params)
    query = strict.get("query")
    if not query:
        return await negotiate_pagination(send, path, strict)

    relaxed = dict(strict, query=relax(query))
    return await negotiate(
        lambda: negotiate_pagination(send, path, strict),
        lambda: negotiate_pagination(send, path, relaxed),
        is_query_rejection,
    )
