"""Tests for Sunday-anchored week and month windows."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta

import pytest

from tally.rollups.time_windows import (
    TimeWindow,
    WeekRangeError,
    all_day_bounds,
    current_week,
    format_week_display,
    last_week,
    month_to_weeks,
    month_to_weeks_local,
    month_window,
    sunday_on_or_before,
    week_number_of,
    week_one_sunday,
    week_window,
    weeks_from_date_ranges,
)


class TestWeekWindow:
    """Week number → window."""

    @pytest.mark.parametrize("year", [2015, 2020, 2023, 2024, 2025, 2026])
    def test_week_one_starts_on_sunday_on_or_before_jan_1(self, year):
        window = week_window(1, year)

        assert window.start.weekday() == 6
        assert window.start <= date(year, 1, 1) <= window.end
        assert (date(year, 1, 1) - window.start).days < 7

    @pytest.mark.parametrize("week_number", [1, 10, 27, 52, 53])
    def test_every_week_spans_six_days(self, week_number):
        window = week_window(week_number, 2024)

        assert window.end - window.start == timedelta(days=6)
        assert window.length_days == 7
        assert window.end.weekday() == 5

    def test_week_one_2025_starts_in_previous_year(self):
        assert week_window(1, 2025) == TimeWindow(start=date(2024, 12, 29), end=date(2025, 1, 4))

    def test_week_ten_2024(self):
        assert week_window(10, 2024) == TimeWindow(start=date(2024, 3, 3), end=date(2024, 3, 9))

    @pytest.mark.parametrize("week_number", [0, 54, -1])
    def test_out_of_range_week_rejected(self, week_number):
        with pytest.raises(WeekRangeError):
            week_window(week_number, 2024)

    def test_non_integer_week_rejected(self):
        with pytest.raises(WeekRangeError):
            week_window("10", 2024)

    def test_week_range_error_is_value_error(self):
        assert issubclass(WeekRangeError, ValueError)


class TestWeekNumberOf:
    """Date → week number."""

    @pytest.mark.parametrize("year", [2023, 2024, 2025])
    def test_round_trip_for_every_week(self, year):
        for week_number in range(1, 54):
            window = week_window(week_number, year)
            assert week_number_of(window.start, year) == week_number
            assert week_number_of(window.end, year) == week_number

    def test_date_before_week_one_falls_back_to_previous_year(self):
        # Week 1 of 2024 starts Sunday Dec 31, 2023
        assert week_number_of(date(2023, 12, 30), 2024) == 52

    def test_week_one_sunday_in_previous_year(self):
        assert week_number_of(date(2023, 12, 31), 2024) == 1

    def test_late_december_of_context_year(self):
        assert week_number_of(date(2024, 12, 28), 2024) == 52

    def test_clamped_to_53(self):
        assert week_number_of(date(2025, 1, 10), 2024) == 53


class TestRelativeWeeks:
    """current_week and last_week."""

    def test_current_week_spanning_new_year_is_week_one(self):
        number, window = current_week(date(2024, 12, 31))

        assert number == 1
        assert window == TimeWindow(start=date(2024, 12, 29), end=date(2025, 1, 4))

    def test_last_week(self):
        number, window = last_week(date(2024, 3, 13))

        assert number == 10
        assert window.start == date(2024, 3, 3)

    def test_sunday_on_or_before(self):
        assert sunday_on_or_before(date(2024, 3, 3)) == date(2024, 3, 3)
        assert sunday_on_or_before(date(2024, 3, 9)) == date(2024, 3, 3)
        assert week_one_sunday(2023) == date(2023, 1, 1)


class TestMonthWindows:
    """Month → weeks."""

    def test_month_window(self):
        assert month_window(2, 2024) == TimeWindow(start=date(2024, 2, 1), end=date(2024, 2, 29))

    def test_invalid_month(self):
        with pytest.raises(ValueError, match="between 1 and 12"):
            month_window(13, 2024)

    def test_weeks_overlap_month_edges(self):
        weeks = month_to_weeks_local(3, 2024)

        assert [week.start for week in weeks] == [
            date(2024, 2, 25),
            date(2024, 3, 3),
            date(2024, 3, 10),
            date(2024, 3, 17),
            date(2024, 3, 24),
            date(2024, 3, 31),
        ]
        assert weeks[-1].end == date(2024, 4, 6)

    def test_month_of_exactly_four_weeks(self):
        # February 2015 starts on a Sunday and ends on a Saturday
        weeks = month_to_weeks_local(2, 2015)

        assert len(weeks) == 4
        assert weeks[0].start == date(2015, 2, 1)
        assert weeks[-1].end == date(2015, 2, 28)

    def test_weeks_from_date_ranges_sorts_and_dedupes(self):
        weeks = weeks_from_date_ranges(
            [
                {"start": "2024-03-10", "end": "2024-03-16"},
                {"start": "2024-03-03", "end": "2024-03-09"},
                {"start": "2024-03-10", "end": "2024-03-16"},
                {"start": None, "end": "2024-03-23"},
                ("2024-03-17", None),
            ]
        )

        assert [(week.start, week.end) for week in weeks] == [
            (date(2024, 3, 3), date(2024, 3, 9)),
            (date(2024, 3, 10), date(2024, 3, 16)),
            (date(2024, 3, 17), date(2024, 3, 17)),
        ]


class StaticCatalog:
    def __init__(self, weeks=None, error=None):
        self.weeks = weeks or []
        self.error = error

    async def weeks_for_month(self, month, year):
        if self.error:
            raise self.error
        return self.weeks


class TestMonthToWeeks:
    """Persisted relation preferred over local derivation."""

    def test_without_catalog_uses_local(self):
        weeks = asyncio.run(month_to_weeks(3, 2024))
        assert weeks == month_to_weeks_local(3, 2024)

    def test_persisted_weeks_win(self):
        persisted = [
            TimeWindow(start=date(2024, 3, 10), end=date(2024, 3, 16)),
            TimeWindow(start=date(2024, 3, 3), end=date(2024, 3, 9)),
        ]
        weeks = asyncio.run(month_to_weeks(3, 2024, StaticCatalog(persisted)))

        assert [week.start for week in weeks] == [date(2024, 3, 3), date(2024, 3, 10)]

    def test_empty_catalog_falls_back(self):
        weeks = asyncio.run(month_to_weeks(3, 2024, StaticCatalog([])))
        assert len(weeks) == 6

    def test_failing_catalog_falls_back(self):
        weeks = asyncio.run(month_to_weeks(3, 2024, StaticCatalog(error=RuntimeError("offline"))))
        assert weeks == month_to_weeks_local(3, 2024)


class TestFormatting:
    def test_format_week_display(self):
        assert format_week_display(12, week_window(12, 2024)) == "Week 12: Sun, Mar 17 -> Sat, Mar 23"

    def test_all_day_bounds_end_is_exclusive(self):
        assert all_day_bounds(date(2024, 3, 4)) == (date(2024, 3, 4), date(2024, 3, 5))
        assert all_day_bounds(date(2024, 3, 4), date(2024, 3, 6)) == (date(2024, 3, 4), date(2024, 3, 7))

    def test_all_day_bounds_rejects_reversed_range(self):
        with pytest.raises(ValueError):
            all_day_bounds(date(2024, 3, 6), date(2024, 3, 4))

    def test_window_rejects_start_after_end(self):
        with pytest.raises(ValueError):
            TimeWindow(start=date(2024, 3, 9), end=date(2024, 3, 3))

    def test_window_days_and_contains(self):
        window = week_window(10, 2024)

        assert window.contains(date(2024, 3, 3))
        assert window.contains(date(2024, 3, 9))
        assert not window.contains(date(2024, 3, 10))
        assert window.days()[0] == date(2024, 3, 3)
        assert len(window.days()) == 7
        assert window.to_dict() == {"start": "2024-03-03", "end": "2024-03-09"}
