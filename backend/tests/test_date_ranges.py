"""
Tests for available-date resolution.

Tests cover:
1. Limited previous/current/next mode
2. Full traversal of multi-range and multi-interval layers
3. Timeline limits (coverage panel windows)
4. Sub-daily windowing
5. Closest-date lookup and interval rounding
"""

from datetime import timedelta

import pytest

from models.layer import LayerDefinition
from utility.date_math import add_periods
from services.layers.date_ranges import (
    dates_in_date_ranges,
    get_cache_options,
    get_limited_date_range,
    nearest_interval,
    prev_date_in_date_range,
)


def make_layer(period, ranges, **kwargs):
    date_ranges = [
        {"startDate": start, "endDate": end, "dateInterval": interval}
        for start, end, interval in ranges
    ]
    return LayerDefinition.model_validate(
        {"id": "test_layer", "period": period, "dateRanges": date_ranges, **kwargs}
    )


def assert_ascending_unique(dates):
    assert all(earlier < later for earlier, later in zip(dates, dates[1:]))


@pytest.mark.unit
class TestLimitedDateRange:
    """Single-range, interval-1 layers only resolve the neighbouring dates."""

    def test_monthly_previous_current_next(self, utc):
        """Mid-month request returns the first of the previous, current and next months."""
        layer = make_layer("monthly", [("2020-01-01", "2020-06-01", 1)])

        dates = dates_in_date_ranges(layer, "2020-03-15T00:00:00Z")

        assert dates == [utc(2020, 2, 1), utc(2020, 3, 1), utc(2020, 4, 1)]

    def test_yearly_anchored_on_range_start(self, utc):
        layer = make_layer("yearly", [("2000-07-01", "2010-07-01", 1)])

        dates = dates_in_date_ranges(layer, "2005-09-15T00:00:00Z")

        assert dates == [utc(2004, 7, 1), utc(2005, 7, 1), utc(2006, 7, 1)]

    def test_daily_zeroes_time(self, utc):
        layer = make_layer("daily", [("2020-01-01", "2020-12-31", 1)])

        dates = dates_in_date_ranges(layer, "2020-05-10T15:45:00Z")

        assert dates == [utc(2020, 5, 9), utc(2020, 5, 10), utc(2020, 5, 11)]

    def test_first_date_has_no_previous(self, utc):
        layer = make_layer("daily", [("2020-01-01", "2020-12-31", 1)])

        assert get_limited_date_range(layer, utc(2020, 1, 1)) == [
            utc(2020, 1, 1),
            utc(2020, 1, 2),
        ]

    def test_last_date_has_no_next(self, utc):
        """The next date is kept only before the range end advanced by one period."""
        layer = make_layer("daily", [("2020-01-01", "2020-12-31", 1)])

        assert get_limited_date_range(layer, utc(2020, 12, 31, 12)) == [
            utc(2020, 12, 30),
            utc(2020, 12, 31),
        ]

    def test_yearly_after_last_anniversary(self, utc):
        """Only dates inside the range survive when the current year has not started yet."""
        layer = make_layer("yearly", [("2000-07-01", "2010-07-01", 1)])

        assert get_limited_date_range(layer, utc(2011, 3, 1)) == [utc(2010, 7, 1)]

    def test_monthly_after_last_day_in_range(self, utc):
        layer = make_layer("monthly", [("2020-01-15", "2020-06-15", 1)])

        assert get_limited_date_range(layer, utc(2020, 7, 10)) == [utc(2020, 6, 15)]

    def test_daily_midday_range_start(self, utc):
        layer = make_layer("daily", [("2020-01-01T12:00:00Z", "2020-12-31", 1)])

        assert get_limited_date_range(layer, utc(2020, 1, 1, 13)) == [utc(2020, 1, 2)]

    @pytest.mark.parametrize(
        "period, start, end, current",
        [
            ("yearly", "2000-07-01", "2010-07-01", (2011, 3, 1)),
            ("monthly", "2020-01-15", "2020-06-15", (2020, 7, 10)),
            ("daily", "2020-01-01T12:00:00Z", "2020-12-31", (2020, 1, 1, 13)),
            ("daily", "2020-01-01", "2020-12-31", (2020, 12, 31, 23)),
        ],
    )
    def test_dates_within_break_max(self, utc, period, start, end, current):
        layer = make_layer(period, [(start, end, 1)])
        date_range = layer.date_ranges[0]
        break_max = add_periods(date_range.end_date, period, 1)

        dates = get_limited_date_range(layer, utc(*current))

        assert dates
        assert all(date_range.start_date <= date < break_max for date in dates)

    def test_outside_range_is_empty(self, utc):
        layer = make_layer("daily", [("2020-01-01", "2020-12-31", 1)])

        assert get_limited_date_range(layer, utc(2019, 6, 1)) == []
        assert get_limited_date_range(layer, utc(2021, 1, 1)) == []


@pytest.mark.unit
class TestFullTraversal:
    """Multi-range and multi-interval layers walk every range."""

    def test_daily_interval_steps(self, utc):
        """An 8-day product steps from the range start."""
        layer = make_layer("daily", [("2020-01-01", "2020-01-25", 8)])

        dates = dates_in_date_ranges(layer, utc(2020, 1, 10))

        assert dates == [utc(2020, 1, 1), utc(2020, 1, 9), utc(2020, 1, 17), utc(2020, 1, 25)]

    def test_later_range_offers_next_date(self, utc):
        """A range after the selected date only contributes its start date."""
        layer = make_layer(
            "daily",
            [("2020-01-01", "2020-01-10", 1), ("2020-02-01", "2020-02-10", 1)],
        )

        dates = dates_in_date_ranges(layer, utc(2020, 1, 5))

        assert len(dates) == 11
        assert dates[0] == utc(2020, 1, 1)
        assert dates[-2] == utc(2020, 1, 10)
        assert dates[-1] == utc(2020, 2, 1)

    def test_unordered_ranges_are_sorted(self, utc):
        """Ranges are processed by start date whatever their declared order."""
        ordered = make_layer(
            "daily",
            [("2020-01-01", "2020-01-10", 1), ("2020-02-01", "2020-02-10", 1)],
        )
        shuffled = make_layer(
            "daily",
            [("2020-02-01", "2020-02-10", 1), ("2020-01-01", "2020-01-10", 1)],
        )

        assert dates_in_date_ranges(shuffled, utc(2020, 1, 5)) == dates_in_date_ranges(
            ordered, utc(2020, 1, 5)
        )

    def test_overlapping_ranges_deduplicated(self, utc):
        layer = make_layer(
            "monthly",
            [("2020-01-01", "2020-06-01", 2), ("2020-03-01", "2020-09-01", 2)],
        )

        dates = dates_in_date_ranges(layer, utc(2020, 3, 15))

        assert_ascending_unique(dates)
        assert utc(2020, 3, 1) in dates
        assert dates.count(utc(2020, 5, 1)) == 1

    def test_no_ranges(self, utc):
        layer = LayerDefinition(id="static", period="daily")

        assert dates_in_date_ranges(layer, utc(2020, 1, 1)) == []

    def test_interval_not_dividing_span(self, utc):
        """The last partial step past the declared end is still offered."""
        layer = make_layer("daily", [("2020-01-01", "2020-03-01", 16)])

        dates = dates_in_date_ranges(layer, utc(2020, 2, 1))

        assert dates == [
            utc(2020, 1, 1),
            utc(2020, 1, 17),
            utc(2020, 2, 2),
            utc(2020, 2, 18),
            utc(2020, 3, 5),
        ]

    def test_repeatable(self, utc):
        """Identical inputs give identical output."""
        layer = make_layer("daily", [("2020-01-01", "2020-03-01", 16)])

        first = dates_in_date_ranges(layer, utc(2020, 2, 1))
        second = dates_in_date_ranges(layer, utc(2020, 2, 1))

        assert first == second


@pytest.mark.unit
class TestTimelineLimits:
    """Coverage panel windows clip the traversal."""

    def test_daily_window(self, utc):
        layer = make_layer("daily", [("2020-01-01", "2020-12-31", 1)])

        dates = dates_in_date_ranges(
            layer, utc(2020, 3, 3), start_limit=utc(2020, 3, 1), end_limit=utc(2020, 3, 5)
        )

        assert dates == [utc(2020, 3, 1), utc(2020, 3, 2), utc(2020, 3, 3), utc(2020, 3, 4)]

    def test_single_instant_range_inside_limits(self, utc):
        layer = make_layer(
            "daily",
            [("2020-01-01", "2020-01-01", 1), ("2020-06-01", "2020-06-01", 1)],
        )

        dates = dates_in_date_ranges(
            layer, utc(2020, 1, 1), start_limit=utc(2019, 12, 1), end_limit=utc(2020, 2, 1)
        )

        assert dates == [utc(2020, 1, 1)]

    def test_ongoing_range_ends_at_app_now(self, utc):
        layer = make_layer("daily", [("2020-01-01", "2020-01-03", 1)], ongoing=True)

        dates = dates_in_date_ranges(
            layer,
            utc(2020, 1, 2),
            start_limit=utc(2020, 1, 1),
            end_limit=utc(2020, 1, 10),
            app_now=utc(2020, 1, 5),
        )

        assert dates == [utc(2020, 1, d) for d in range(1, 6)]

    def test_ongoing_range_without_app_now_keeps_declared_end(self, utc):
        layer = make_layer("daily", [("2020-01-01", "2020-01-03", 1)], ongoing=True)

        dates = dates_in_date_ranges(
            layer, utc(2020, 1, 2), start_limit=utc(2020, 1, 1), end_limit=utc(2020, 1, 10)
        )

        assert dates == [utc(2020, 1, 1), utc(2020, 1, 2), utc(2020, 1, 3)]

    def test_partial_coverage_starts_at_last_step_before_limit(self, utc):
        """An 8-day product starts at the step covering the start limit."""
        layer = make_layer("daily", [("2020-01-01", "2020-12-31", 8)])

        dates = dates_in_date_ranges(
            layer, utc(2020, 1, 25), start_limit=utc(2020, 1, 20), end_limit=utc(2020, 2, 10)
        )

        assert dates == [utc(2020, 1, 17), utc(2020, 1, 25), utc(2020, 2, 2)]

    def test_later_range_walked_from_its_start(self, utc):
        """A range starting inside the limits is walked even when the selection precedes it."""
        layer = make_layer(
            "daily",
            [("2020-01-01", "2020-01-05", 1), ("2020-01-10", "2020-01-15", 1)],
        )

        dates = dates_in_date_ranges(
            layer, utc(2020, 1, 3), start_limit=utc(2020, 1, 1), end_limit=utc(2020, 1, 20)
        )

        assert dates == [utc(2020, 1, d) for d in range(1, 6)] + [
            utc(2020, 1, d) for d in range(10, 16)
        ]


@pytest.mark.unit
class TestDatesStayInRanges:
    """Every resolved date is ascending and belongs to one of the layer's ranges."""

    @pytest.mark.parametrize(
        "period, ranges, current, limits",
        [
            (
                "yearly",
                [("2000-01-01", "2004-01-01", 2), ("2006-01-01", "2010-01-01", 1)],
                (2007, 6, 1),
                None,
            ),
            (
                "monthly",
                [("2020-01-01", "2020-06-01", 3), ("2020-09-01", "2021-03-01", 2)],
                (2020, 10, 1),
                None,
            ),
            (
                "daily",
                [
                    ("2020-01-01", "2020-01-20", 5),
                    ("2020-02-01", "2020-02-10", 1),
                    ("2020-03-01", "2020-03-31", 10),
                ],
                (2020, 2, 5),
                None,
            ),
            (
                "daily",
                [
                    ("2020-01-01", "2020-01-20", 5),
                    ("2020-02-01", "2020-02-10", 1),
                    ("2020-03-01", "2020-03-31", 10),
                ],
                (2020, 2, 5),
                ((2020, 1, 10), (2020, 3, 15)),
            ),
        ],
    )
    def test_ascending_and_within_ranges(self, utc, period, ranges, current, limits):
        layer = make_layer(period, ranges)
        bounds = [
            (r.start_date, add_periods(r.end_date, period, r.date_interval))
            for r in layer.date_ranges
        ]
        start_limit, end_limit = (utc(*limits[0]), utc(*limits[1])) if limits else (None, None)

        dates = dates_in_date_ranges(
            layer, utc(*current), start_limit=start_limit, end_limit=end_limit
        )

        assert dates
        assert_ascending_unique(dates)
        for date in dates:
            assert any(start <= date < end for start, end in bounds), date


@pytest.mark.unit
class TestSubdaily:
    """Sub-daily layers are enumerated in a window around the request."""

    def test_window_around_requested_time(self, utc):
        layer = make_layer("subdaily", [("2021-01-01T00:00:00Z", "2021-12-31T00:00:00Z", 60)])
        requested = utc(2021, 6, 1, 12, 7)

        dates = dates_in_date_ranges(layer, requested)

        assert dates == [utc(2021, 6, 1, 12), utc(2021, 6, 1, 13)]
        for moment in dates:
            assert requested - timedelta(hours=1) <= moment <= requested + timedelta(hours=1)

    def test_grid_follows_range_start(self, utc):
        layer = make_layer("subdaily", [("2021-01-01T00:05:00Z", "2021-12-31T00:00:00Z", 10)])

        dates = dates_in_date_ranges(layer, utc(2021, 6, 1, 12, 0))

        assert dates
        assert all(moment.minute % 10 == 5 for moment in dates)

    def test_outside_range(self, utc):
        layer = make_layer("subdaily", [("2021-01-01T00:00:00Z", "2021-01-02T00:00:00Z", 10)])

        assert dates_in_date_ranges(layer, utc(2021, 3, 1)) == []


@pytest.mark.unit
class TestClosestDates:
    """Tests for prev_date_in_date_range and nearest_interval."""

    def test_previous_and_next(self, utc):
        layer = make_layer("daily", [("2020-01-01", "2020-12-31", 1)])
        available = [utc(2020, 1, 1), utc(2020, 1, 2), utc(2020, 1, 3)]

        closest = prev_date_in_date_range(layer, utc(2020, 1, 2, 12), available)

        assert closest.previous == utc(2020, 1, 2)
        assert closest.next == utc(2020, 1, 3)

    def test_monthly_on_first_of_month(self, utc):
        layer = make_layer("monthly", [("2020-01-01", "2020-12-01", 1)])

        closest = prev_date_in_date_range(layer, utc(2020, 3, 1), [utc(2020, 2, 1)])

        assert closest.previous == utc(2020, 3, 1)
        assert closest.next is None

    def test_no_available_dates(self, utc):
        layer = make_layer("daily", [("2020-01-01", "2020-12-31", 1)])

        closest = prev_date_in_date_range(layer, utc(2020, 3, 5), [])

        assert closest.previous == utc(2020, 3, 5)

    def test_nearest_interval(self, utc):
        layer = make_layer("subdaily", [("2021-01-01T00:00:00Z", "2021-12-31T00:00:00Z", 10)])

        assert nearest_interval(layer, utc(2021, 6, 1, 12, 37, 42)) == utc(2021, 6, 1, 12, 30)


@pytest.mark.unit
class TestCacheOptions:
    """Recent sub-daily imagery gets a short cache lifetime."""

    def test_recent_subdaily(self, utc):
        now = utc(2021, 6, 1, 12)

        options = get_cache_options("subdaily", utc(2021, 6, 1, 11, 50), now=now)

        assert options == {"expiration_absolute": now + timedelta(minutes=10)}

    def test_old_or_daily(self, utc):
        now = utc(2021, 6, 1, 12)

        assert get_cache_options("subdaily", utc(2021, 5, 1), now=now) == {}
        assert get_cache_options("daily", utc(2021, 6, 1, 11, 50), now=now) == {}
