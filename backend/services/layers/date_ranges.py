"""
Available-date resolution for layers with periodic temporal coverage.

A layer declares one or more date ranges, each stepped every ``date_interval``
period units. Given a selected date, ``dates_in_date_ranges`` returns the
ascending, duplicate-free list of dates on which the layer has imagery.

Two modes:
- limited: a single range with interval 1 and no timeline limits only needs
  the previous, current and next dates around the selected date;
- full traversal: every range is walked, optionally clipped to the
  ``start_limit``/``end_limit`` window of a coverage panel.

Key functions:
- dates_in_date_ranges(layer, date, start_limit, end_limit, app_now)
- get_limited_date_range(layer, current_date)
- prev_date_in_date_range(layer, date, date_array)
- nearest_interval(layer, date)
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Dict, List, NamedTuple, Optional, Sequence

from core.config import SUBDAILY_WINDOW_MINUTES
from models.layer import DateRange, LayerDefinition, Period
from utility.date_math import (
    DateLike,
    UTCFields,
    closest_to_index,
    day_diff,
    merge_dates,
    month_diff,
    to_utc,
    utc_datetime,
    utc_fields,
    year_diff,
)

logger = logging.getLogger(__name__)


class ClosestDates(NamedTuple):
    previous: datetime
    next: Optional[datetime]


# ========== Limited (previous / current / next) mode ==========


def _break_max_date(period: str, range_end: datetime) -> Optional[datetime]:
    """First instant after the last unit of a range."""
    end = utc_fields(range_end)
    if period == Period.YEARLY:
        return utc_datetime(end.year + 1, end.month, end.day)
    if period == Period.MONTHLY:
        return utc_datetime(end.year, end.month + 1, end.day)
    if period == Period.DAILY:
        return utc_datetime(end.year, end.month, end.day + 1)
    return None


def _prev_current_next(period: str, current: UTCFields, start: UTCFields):
    if period == Period.YEARLY:
        return (
            utc_datetime(current.year - 1, start.month, start.day),
            utc_datetime(current.year, start.month, start.day),
            utc_datetime(current.year + 1, start.month, start.day),
        )
    if period == Period.MONTHLY:
        return (
            utc_datetime(current.year, current.month - 1, start.day),
            utc_datetime(current.year, current.month, start.day),
            utc_datetime(current.year, current.month + 1, start.day),
        )
    return (
        utc_datetime(current.year, current.month, current.day - 1),
        utc_datetime(current.year, current.month, current.day),
        utc_datetime(current.year, current.month, current.day + 1),
    )


def get_limited_date_range(layer: LayerDefinition, current_date: DateLike) -> List[datetime]:
    """
    Return the previous, current and next dates around ``current_date``.

    Only valid for layers with a single date range stepped every period. Each
    date is kept only when it falls within ``[startDate, breakMaxDate)`` where
    ``breakMaxDate`` is the range end advanced by one period.
    """
    date_range = layer.date_ranges[0]
    range_start = date_range.start_date
    break_max = _break_max_date(layer.period, date_range.end_date)
    current = to_utc(current_date)
    if break_max is None or not range_start <= current < break_max:
        return []

    before, zeroed, after = _prev_current_next(
        layer.period, utc_fields(current), utc_fields(range_start)
    )
    return [moment for moment in (before, zeroed, after) if range_start <= moment < break_max]


# ========== Period steppers ==========


def _revised_max_end(
    min_date: datetime, max_end: datetime, start_limit: datetime, end_limit: datetime
) -> datetime:
    """Narrow a range end to the timeline end limit when the limits overlap the range."""
    front_within = min_date <= start_limit <= max_end
    back_within = min_date <= end_limit <= max_end
    if front_within or back_within:
        return min(end_limit, max_end)
    return max_end


def _step(period: str, start: UTCFields, index: int, interval: int) -> datetime:
    if period == Period.MONTHLY:
        return utc_datetime(start.year, start.month + index * interval, start.day)
    return utc_datetime(start.year, start.month, start.day + index * interval)


def _min_start_date(
    steps: int, period: str, interval: int, start_limit: datetime, start: UTCFields
) -> Optional[datetime]:
    """Last stepped date at or before ``start_limit`` (partial coverage start)."""
    previous = None
    for i in range(steps + 2):
        unit = _step(period, start, i, interval)
        if unit > start_limit:
            return previous
        previous = unit
    return None


def _year_dates(
    current: datetime, min_date: datetime, max_date: datetime, interval: int
) -> List[datetime]:
    start = utc_fields(min_date)
    end = utc_fields(max_date)
    max_year_date = utc_datetime(end.year + interval, end.month, end.day)
    if not min_date <= current <= max_year_date:
        return []

    steps = year_diff(min_date, max_year_date)
    dates = []
    for i in range(steps + 2):
        year = utc_datetime(start.year + i * interval, start.month, start.day)
        if year < max_year_date:
            dates.append(year)
    return dates


def _month_or_day_dates(
    period: str,
    current: datetime,
    min_date: datetime,
    max_date: datetime,
    interval: int,
    start_limit: Optional[datetime],
    end_limit: Optional[datetime],
) -> List[datetime]:
    limits_provided = start_limit is not None and end_limit is not None
    start = utc_fields(min_date)
    end = utc_fields(max_date)
    if period == Period.MONTHLY:
        max_period_date = utc_datetime(end.year, end.month + interval, end.day)
    else:
        max_period_date = utc_datetime(end.year, end.month, end.day + interval)

    max_end = max_period_date
    if limits_provided:
        max_end = _revised_max_end(min_date, max_period_date, start_limit, end_limit)

    if not min_date <= current <= max_end:
        return []

    if period == Period.MONTHLY:
        span = month_diff(min_date, max_period_date)
    else:
        span = day_diff(min_date, max_end)
    # intervals that do not divide the span still need their last partial step
    steps = math.ceil(span / interval)

    min_start = None
    if limits_provided and steps:
        min_start = _min_start_date(steps, period, interval, start_limit, start)

    dates = []
    for i in range(steps + 2):
        unit = _step(period, start, i, interval)
        if unit >= max_end:
            continue
        if min_start is not None:
            within = min_start < unit < max_period_date
            if unit != min_start and not within:
                continue
        dates.append(unit)
    return dates


def _subdaily_dates(
    current: datetime,
    min_date: datetime,
    max_date: datetime,
    interval: int,
    start_limit: Optional[datetime],
    end_limit: Optional[datetime],
) -> List[datetime]:
    """
    Sub-daily dates stepped every ``interval`` minutes from the range start.

    Enumeration is restricted to a window of SUBDAILY_WINDOW_MINUTES around the
    selected time, or around the timeline limits when they are given, so a
    request never walks the whole history of a layer at minute granularity.
    """
    step = timedelta(minutes=interval)
    pad = timedelta(minutes=SUBDAILY_WINDOW_MINUTES)
    range_end = max_date.replace(second=0, microsecond=0) + step

    if start_limit is not None and end_limit is not None:
        window_start, window_end = start_limit - pad, end_limit + pad
    else:
        window_start, window_end = current - pad, current + pad

    lower = max(window_start, min_date)
    upper = min(window_end, range_end)
    if not lower <= current <= upper:
        return []

    offset = math.ceil((lower - min_date).total_seconds() / step.total_seconds())
    moment = min_date + step * max(offset, 0)
    dates = []
    while moment <= window_end and moment < range_end:
        dates.append(moment)
        moment += step
    return dates


def _range_dates(
    period: str,
    current: datetime,
    min_date: datetime,
    max_date: datetime,
    interval: int,
    start_limit: Optional[datetime],
    end_limit: Optional[datetime],
) -> List[datetime]:
    if period == Period.YEARLY:
        return _year_dates(current, min_date, max_date, interval)
    if period in (Period.MONTHLY, Period.DAILY):
        return _month_or_day_dates(
            period, current, min_date, max_date, interval, start_limit, end_limit
        )
    if period == Period.SUBDAILY:
        return _subdaily_dates(current, min_date, max_date, interval, start_limit, end_limit)
    logger.debug(f"Unsupported period '{period}', no dates resolved")
    return []


def _ordered_ranges(date_ranges: Sequence[DateRange]) -> List[DateRange]:
    ordered = sorted(date_ranges, key=lambda date_range: date_range.start_date)
    if ordered != list(date_ranges):
        logger.debug("Date ranges were not in chronological order; sorted by start date")
    return ordered


# ========== Entry points ==========


def dates_in_date_ranges(
    layer: LayerDefinition,
    date: DateLike,
    start_limit: Optional[DateLike] = None,
    end_limit: Optional[DateLike] = None,
    app_now: Optional[DateLike] = None,
) -> List[datetime]:
    """
    Return the dates on which ``layer`` has imagery, relative to ``date``.

    Args:
        layer: Layer definition (with any dynamic range adjustments applied)
        date: Currently selected date
        start_limit: Start of the timeline range for coverage display
        end_limit: End of the timeline range for coverage display
        app_now: Current application time; the ongoing last range ends here when
            limits are provided and the layer has no futureTime.

    Returns:
        Ascending list of UTC datetimes without duplicates
    """
    if not layer.date_ranges:
        return []

    limits_provided = start_limit is not None and end_limit is not None
    current = to_utc(date)
    if limits_provided:
        start_limit, end_limit = to_utc(start_limit), to_utc(end_limit)
    else:
        start_limit = end_limit = None
    period = layer.period
    date_ranges = _ordered_ranges(layer.date_ranges)
    last_index = len(date_ranges) - 1
    single_range_and_interval = (
        not limits_provided
        and len(date_ranges) == 1
        and date_ranges[0].date_interval == 1
        and period != Period.SUBDAILY
    )

    dates: List[datetime] = []
    # set once the start of a later range has been offered as the "next" date
    offered_next = False
    running_min_date = None

    for index, date_range in enumerate(date_ranges):
        min_date = date_range.start_date
        max_date = date_range.end_date
        last_date = dates[-1] if dates else None
        before_range = current < min_date

        if not limits_provided:
            if before_range and not offered_next:
                dates = merge_dates(dates, [min_date])
                offered_next = True
                continue
        else:
            if min_date == max_date:
                if start_limit <= min_date <= end_limit:
                    dates = merge_dates(dates, [min_date])
                continue

            # avoid walking a range from an earlier selected date than needed
            min_within_limits = start_limit < min_date < end_limit
            overlaps_previous = (
                running_min_date is not None and last_date is not None and last_date > min_date
            )
            if before_range and (min_within_limits or overlaps_previous):
                current = min_date

            # without app_now an ongoing range ends at its declared end
            if index == last_index and layer.ongoing and app_now is not None:
                max_date = date_range.end_date if layer.future_time else to_utc(app_now)

        if single_range_and_interval:
            return get_limited_date_range(layer, current)

        range_dates = _range_dates(
            period, current, min_date, max_date, date_range.date_interval, start_limit, end_limit
        )
        dates = merge_dates(dates, range_dates)
        running_min_date = min_date

    return dates


def prev_date_in_date_range(
    layer: LayerDefinition, date: DateLike, date_array: Optional[Sequence[datetime]]
) -> ClosestDates:
    """
    Find the closest available date at or before ``date`` and the one after it.

    Monthly layers on the first of a month and yearly layers on the first of
    January already sit on a period boundary and return ``date`` unchanged.
    """
    date = to_utc(date)
    first_day_of_month = date.day == 1
    first_month_of_year = date.month == 1
    if (
        not date_array
        or (layer.period == Period.MONTHLY and first_day_of_month)
        or (layer.period == Period.YEARLY and first_day_of_month and first_month_of_year)
    ):
        return ClosestDates(date, None)

    earlier = [candidate for candidate in date_array if candidate <= date]
    index = closest_to_index(earlier, date)
    if index is None:
        return ClosestDates(date, None)
    following = date_array[index + 1] if index + 1 < len(date_array) else None
    return ClosestDates(earlier[index], following)


def nearest_interval(layer: LayerDefinition, date: DateLike) -> datetime:
    """Round a sub-daily date down to the layer's minute interval.

    Assumes all ranges share the interval of the first one.
    """
    date = to_utc(date)
    if not layer.date_ranges:
        return date
    interval = layer.date_ranges[0].date_interval
    minutes = date.minute - date.minute % interval
    return date.replace(minute=minutes, second=0, microsecond=0)


def get_cache_options(period: str, date: DateLike, now: DateLike) -> Dict[str, datetime]:
    """Recent sub-daily imagery may still change; expire it ten minutes from now."""
    now = to_utc(now)
    recent = abs((now - to_utc(date)).total_seconds()) < 30 * 60
    if period != Period.SUBDAILY or not recent:
        return {}
    return {"expiration_absolute": now + timedelta(minutes=10)}
