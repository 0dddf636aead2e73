"""Date helpers: input parsing, calendar enumeration and rounding.

All calendar arithmetic is done in UTC.  YouTrack stores work-item dates as
epoch milliseconds at UTC midnight; an ISO date ``YYYY-MM-DD`` maps to that
same instant.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

DateInput = str | int | float | date | datetime

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DIGITS = re.compile(r"^-?\d+$")
_DAY_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


def today_iso() -> str:
    return datetime.now(UTC).date().isoformat()


def parse_date_input(value: DateInput) -> int:
    """Convert an ISO string, epoch-ms number, ``date`` or ``datetime`` to epoch ms.

    Naive datetimes and ISO strings without an offset are read as UTC.
    Raises ValueError for anything unparseable.
    """
    if isinstance(value, bool):
        msg = f"Invalid date value: {value!r}"
        raise ValueError(msg)
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=UTC)
        return int(moment.timestamp() * 1000)
    if isinstance(value, date):
        return int(datetime.combine(value, time.min, tzinfo=UTC).timestamp() * 1000)
    if isinstance(value, int | float):
        if not math.isfinite(value):
            msg = "Date value must be a finite number"
            raise ValueError(msg)
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if _DIGITS.match(text):
            return int(text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            msg = f"Invalid date value: {value}"
            raise ValueError(msg) from None
        return parse_date_input(parsed)
    msg = f"Invalid date value: {value!r}"
    raise ValueError(msg)


def is_date_only(value: Any) -> bool:
    return isinstance(value, str) and bool(_DATE_ONLY.match(value.strip()))


def parse_window_end(value: DateInput) -> int:
    """Like :func:`parse_date_input`, but a bare ``YYYY-MM-DD`` means the end of that day."""
    if is_date_only(value) or (isinstance(value, date) and not isinstance(value, datetime)):
        return parse_date_input(value) + _DAY_MS - 1
    return parse_date_input(value)


def to_iso_date(value: DateInput) -> str:
    """Return the UTC calendar date of *value* as ``YYYY-MM-DD``."""
    ms = parse_date_input(value)
    return datetime.fromtimestamp(ms / 1000, tz=UTC).date().isoformat()


def to_iso_datetime(ms: int | None) -> str | None:
    """Epoch ms -> ``YYYY-MM-DDTHH:MM:SS.mmmZ``; ``None`` passes through."""
    if ms is None or isinstance(ms, bool) or not isinstance(ms, int | float) or not math.isfinite(ms):
        return None
    moment = datetime.fromtimestamp(ms / 1000, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_date_range(start: DateInput, end: DateInput) -> None:
    if parse_date_input(end) < parse_date_input(start):
        msg = "End date cannot be earlier than start date"
        raise ValueError(msg)


def enumerate_date_range(start: DateInput, end: DateInput) -> list[str]:
    """Every calendar day from *start* to *end* inclusive, as ISO dates.

    Raises ValueError when *end* falls on an earlier day than *start*.
    """
    first = date.fromisoformat(to_iso_date(start))
    last = date.fromisoformat(to_iso_date(end))
    if last < first:
        msg = "End date cannot be earlier than start date"
        raise ValueError(msg)
    return [(first + timedelta(days=offset)).isoformat() for offset in range((last - first).days + 1)]


def is_weekend(date_iso: str) -> bool:
    return date.fromisoformat(date_iso).weekday() >= 5


def filter_working_days(
    dates: Iterable[str],
    exclude_weekends: bool = True,
    exclude_holidays: bool = True,
    holidays: Iterable[DateInput] = (),
) -> list[str]:
    holiday_set = {to_iso_date(h) for h in holidays} if exclude_holidays else set()
    return [d for d in dates if not (exclude_weekends and is_weekend(d)) and d not in holiday_set]


def day_bounds(value: DateInput) -> tuple[int, int]:
    """First and last millisecond of the UTC day containing *value*."""
    start = parse_date_input(to_iso_date(value))
    return start, start + _DAY_MS - 1


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positives (``2.5 -> 3``), unlike ``round()``."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def minutes_to_hours(minutes: float) -> float:
    return round_half_up(minutes / 60, 2)
