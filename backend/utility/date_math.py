"""
Calendar arithmetic helpers for layer date handling.

All dates handled by the layer services are timezone-aware UTC datetimes.
Date construction follows the overflow rules of a JavaScript ``Date``
(month 13 rolls into January of the next year, 31 April becomes 1 May),
which is what layer configurations are authored against.
"""

import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import List, NamedTuple, Optional, Sequence, Union

DateLike = Union[datetime, date, str]

_FUTURE_TIME_RE = re.compile(r"^\s*(\d+)\s*([DMY])\s*$", re.IGNORECASE)


class UTCFields(NamedTuple):
    year: int
    month: int
    day: int
    hour: int
    minute: int


def to_utc(value: DateLike) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive datetimes and date-only strings are interpreted as UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_fields(value: datetime) -> UTCFields:
    value = to_utc(value)
    return UTCFields(value.year, value.month, value.day, value.hour, value.minute)


def utc_datetime(
    year: int, month: int, day: int = 1, hour: int = 0, minute: int = 0, second: int = 0
) -> datetime:
    """Build a UTC datetime, normalising out-of-range months, days and times.

    Months are 1-based. Any component may overflow or underflow, e.g.
    ``utc_datetime(2020, 13, 1)`` is 2021-01-01 and ``utc_datetime(2020, 3, 0)``
    is 2020-02-29.
    """
    carry_years, month_index = divmod(month - 1, 12)
    base = datetime(year + carry_years, month_index + 1, 1, tzinfo=timezone.utc)
    return base + timedelta(days=day - 1, hours=hour, minutes=minute, seconds=second)


def with_year(value: datetime, year: int) -> datetime:
    """Replace the UTC year, rolling 29 February over to 1 March when needed."""
    value = to_utc(value)
    return utc_datetime(year, value.month, value.day, value.hour, value.minute, value.second)


def year_diff(start: datetime, end: datetime) -> int:
    return to_utc(end).year - to_utc(start).year


def month_diff(start: datetime, end: datetime) -> int:
    start, end = to_utc(start), to_utc(end)
    months = (end.year - start.year) * 12 + end.month - start.month
    return max(months, 0)


def day_diff(start: datetime, end: datetime) -> int:
    seconds = abs((to_utc(end) - to_utc(start)).total_seconds())
    return math.ceil(seconds / 86400)


def add_periods(value: datetime, period: str, count: int) -> datetime:
    """Shift ``value`` by ``count`` units of ``period``, keeping the time of day.

    Sub-daily units are minutes.
    """
    value = to_utc(value)
    period = getattr(period, "value", period)
    if period == "yearly":
        return with_year(value, value.year + count)
    if period == "monthly":
        return utc_datetime(
            value.year, value.month + count, value.day, value.hour, value.minute, value.second
        )
    if period == "daily":
        return value + timedelta(days=count)
    if period == "subdaily":
        return value + timedelta(minutes=count)
    raise ValueError(f"Unknown period '{period}'")


def to_iso_seconds(value: datetime) -> str:
    """Format as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return to_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def clamp(value: float, minimum: float, maximum: float) -> float:
    if math.isnan(value):
        return value
    return max(minimum, min(maximum, value))


def parse_future_time(future_time: str, now: datetime) -> Optional[datetime]:
    """Resolve a ``futureTime`` duration such as ``3D``, ``2M`` or ``1Y`` from ``now``.

    Returns None when the duration is not understood.
    """
    if not future_time:
        return None
    match = _FUTURE_TIME_RE.match(str(future_time))
    if not match:
        return None
    amount, unit = int(match.group(1)), match.group(2).upper()
    period = {"D": "daily", "M": "monthly", "Y": "yearly"}[unit]
    return add_periods(now, period, amount)


def closest_to_index(dates: Sequence[datetime], target: datetime) -> Optional[int]:
    """Index of the date closest to ``target`` (first one wins on ties)."""
    best_index = None
    best_distance = None
    for index, candidate in enumerate(dates):
        distance = abs((candidate - target).total_seconds())
        if best_distance is None or distance < best_distance:
            best_index, best_distance = index, distance
    return best_index


def merge_dates(existing: List[datetime], new_dates: Sequence[datetime]) -> List[datetime]:
    """Merge two date sequences into one ascending list without duplicate instants."""
    return sorted(set(existing).union(new_dates))
