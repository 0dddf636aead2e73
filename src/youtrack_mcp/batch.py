"""Bounded-concurrency batch runner.

Runs one async operation per input item with at most ``limit`` operations in
flight.  Results come back index-aligned with the inputs; a failing item is
captured as a :class:`Failure` and never cancels its siblings.  Retry policy
belongs to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 10
# Caps for expensive writes and for small single-page reads.
HEAVY_CONCURRENCY = 5
LIGHT_CONCURRENCY = 20


@dataclass(frozen=True)
class Success(Generic[R]):
    """An operation that completed and produced ``value``."""

    item: Any
    value: R
    ok: Literal[True] = True

    def unwrap(self) -> R:
        return self.value


@dataclass(frozen=True)
class Failure:
    """An operation that raised; ``reason`` is the message, ``error`` the exception."""

    item: Any
    reason: str
    error: BaseException | None = None
    ok: Literal[False] = False

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        raise RuntimeError(self.reason)


JobResult = Union[Success[Any], Failure]


async def run_bounded(
    items: Iterable[T],
    operation: Callable[[T], Awaitable[R]],
    limit: int = DEFAULT_CONCURRENCY,
) -> list[JobResult]:
    """Run *operation* over *items* with at most *limit* in flight.

    Raises ValueError when *limit* is not positive.  Errors raised while
    enumerating *items* propagate; errors raised by *operation* do not.
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        msg = f"Concurrency limit must be a positive integer, got {limit!r}"
        raise ValueError(msg)

    pending = list(items)
    if not pending:
        return []

    slots = asyncio.Semaphore(limit)

    async def _run(item: T) -> JobResult:
        async with slots:
            try:
                value = await operation(item)
            except Exception as exc:
                logger.debug("Batch item %r failed: %s", item, exc)
                return Failure(item=item, reason=str(exc) or type(exc).__name__, error=exc)
            return Success(item=item, value=value)

    results = await asyncio.gather(*(_run(item) for item in pending))
    failed = sum(1 for r in results if not r.ok)
    if failed:
        logger.info("Batch finished: %d ok, %d failed", len(results) - failed, failed)
    return list(results)


def successes(results: Sequence[JobResult]) -> list[Success[Any]]:
    return [r for r in results if isinstance(r, Success)]


def failures(results: Sequence[JobResult]) -> list[Failure]:
    return [r for r in results if isinstance(r, Failure)]


def raise_first_failure(results: Sequence[JobResult]) -> list[Any]:
    """Return all values, or re-raise the first failure's exception.

    For callers with no per-item fallback, where one failure fails the batch.
    """
    for result in results:
        if isinstance(result, Failure):
            result.unwrap()
    return [r.value for r in results if isinstance(r, Success)]
