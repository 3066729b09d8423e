"""Detection of overlapping date ranges within a layer definition."""

import logging
from datetime import timedelta
from typing import List, Sequence

from pydantic import BaseModel, Field

from models.layer import DateRange, Period
from utility.date_math import add_periods

logger = logging.getLogger(__name__)


class OverlapPair(BaseModel):
    previous: DateRange
    current: DateRange


class OverlapResult(BaseModel):
    overlap: bool = False
    ranges: List[OverlapPair] = Field(default_factory=list)


def _effective_end(period: str, date_range: DateRange):
    """Range end extended to cover the last interval step."""
    extra = date_range.date_interval - 1
    end = date_range.end_date
    if period == Period.DAILY:
        return end + timedelta(days=extra)
    if period in (Period.MONTHLY, Period.YEARLY):
        return add_periods(end, period, extra)
    return end


def date_overlap(period: str, date_ranges: Sequence[DateRange]) -> OverlapResult:
    """
    Report every pair of adjacent (by start date) ranges that overlap.

    The earlier range's end is extended by ``date_interval - 1`` period units
    before comparing it with the next range's start. The input sequence is
    not reordered.
    """
    result = OverlapResult()
    sorted_ranges = sorted(date_ranges, key=lambda date_range: date_range.start_date)
    for previous, current in zip(sorted_ranges, sorted_ranges[1:]):
        if _effective_end(period, previous) >= current.start_date:
            result.overlap = True
            result.ranges.append(OverlapPair(previous=previous, current=current))

    if result.overlap:
        logger.debug(f"Found {len(result.ranges)} overlapping {period} date range pair(s)")
    return result
