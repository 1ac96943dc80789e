"""Tests for per-category aggregation."""

from __future__ import annotations

import math
from datetime import date, datetime

import pytest

from tally.core.models import SourceEvent
from tally.rollups.aggregator import (
    Aggregator,
    CategoryAggregate,
    average_blood_pressure,
    average_weight,
    clamp_hours,
)
from tally.rollups.time_windows import week_window

WEEK_10 = week_window(10, 2024)  # Sun Mar 3 - Sat Mar 9


def _event(category, day, hours=None, label="", **kwargs):
    return SourceEvent(
        category=category,
        occurred_on=date(2024, 3, day),
        duration_hours=hours,
        label=label,
        **kwargs,
    )


@pytest.fixture
def aggregator(registry):
    return Aggregator(registry)


class TestWorkout:
    def test_days_sessions_and_hours(self, aggregator):
        events = {
            "workout": [
                _event("workout", 4, 1.5, "Run"),
                _event("workout", 4, 1.0, "Lift"),
                _event("workout", 6, 2.0, "Ride"),
            ]
        }

        result = aggregator.aggregate(events, WEEK_10, ["workout"])
        workout = result.category("workout", "workout")

        assert workout.days == 2
        assert workout.sessions == 3
        assert workout.hours_total == 4.5

    def test_days_never_exceed_sessions(self, aggregator):
        events = {"workout": [_event("workout", day, 0.5) for day in (3, 3, 5, 7, 7, 7)]}

        workout = aggregator.aggregate(events, WEEK_10, ["workout"]).category("workout", "workout")

        assert workout.days <= workout.sessions
        assert (workout.days, workout.sessions) == (3, 6)

    def test_malformed_durations_count_as_zero(self, aggregator):
        events = {
            "workout": [
                _event("workout", 4, -2.0),
                _event("workout", 5, float("nan")),
                _event("workout", 6, None),
                _event("workout", 7, 1.25),
            ]
        }

        workout = aggregator.aggregate(events, WEEK_10, ["workout"]).category("workout", "workout")

        assert workout.hours_total == 1.25
        assert workout.sessions == 4

    def test_events_outside_window_ignored(self, aggregator):
        events = {"workout": [_event("workout", 2, 1.0), _event("workout", 10, 1.0), _event("workout", 9, 1.0)]}

        workout = aggregator.aggregate(events, WEEK_10, ["workout"]).category("workout", "workout")

        assert workout.sessions == 1

    def test_blocks_are_rendered(self, aggregator):
        events = {
            "workout": [
                SourceEvent(
                    category="workout",
                    occurred_on=date(2024, 3, 4),
                    label="Run",
                    duration_hours=1.0,
                    start_time=datetime(2024, 3, 4, 7),
                    end_time=datetime(2024, 3, 4, 8),
                )
            ]
        }

        workout = aggregator.aggregate(events, WEEK_10, ["workout"]).category("workout", "workout")

        assert workout.detail_blocks == "Mon:\nRun (7:00-8:00am)"


class TestEmptyAndZeroed:
    def test_no_events_yield_zeroes(self, aggregator, registry):
        result = aggregator.aggregate({}, WEEK_10, ["workout"])

        assert result.to_properties(registry) == {
            "workoutDays": 0,
            "workoutSessions": 0,
            "workoutHoursTotal": 0.0,
            "workoutBlocks": "",
        }

    def test_every_category_of_color_group_present(self, aggregator):
        result = aggregator.aggregate({}, WEEK_10, ["personalCalendar"])

        assert set(result.per_group["personalCalendar"].per_category) == {
            "personal",
            "interpersonal",
            "home",
            "physicalHealth",
            "mentalHealth",
            "ignore",
        }

    def test_only_selected_groups_computed(self, aggregator):
        result = aggregator.aggregate({"reading": [_event("reading", 4, 1.0)]}, WEEK_10, ["workout"])

        assert list(result.per_group) == ["workout"]

    def test_missing_category_lookup_is_empty(self, aggregator):
        result = aggregator.aggregate({}, WEEK_10, ["workout"])

        assert result.category("nope", "workout") == CategoryAggregate()


class TestRouting:
    def test_color_codes_split_personal_calendar(self, aggregator):
        events = {
            "personalCalendar": [
                _event("personalCalendar", 4, 1.0, color_id="3"),
                _event("personalCalendar", 5, 2.0, color_id="3"),
                _event("personalCalendar", 5, 0.5, color_id="5"),
                _event("personalCalendar", 6, 1.0, color_id="99"),
            ]
        }

        result = aggregator.aggregate(events, WEEK_10, ["personalCalendar"])

        assert result.category("personalCalendar", "interpersonal").sessions == 2
        assert result.category("personalCalendar", "interpersonal").hours_total == 3.0
        assert result.category("personalCalendar", "home").sessions == 1
        assert result.category("personalCalendar", "personal").sessions == 1

    def test_combined_sleep_group_ignores_all_day_events(self, aggregator):
        events = {
            "normalWakeUp": [
                _event("normalWakeUp", 4, 7.5),
                _event("normalWakeUp", 5, None, "Out of office", is_all_day=True),
            ],
            "sleepIn": [_event("sleepIn", 6, 9.0), _event("sleepIn", 7, 8.5)],
        }

        result = aggregator.aggregate(events, WEEK_10, ["sleep"])

        assert result.category("sleep", "normalWakeUp").days == 1
        assert result.category("sleep", "sleepIn").days == 2
        assert result.category("sleep", "sleepIn").hours_total == 17.5

    def test_properties_filtered_by_source_type(self, aggregator, registry):
        events = {"workPRs": [_event("workPRs", 4, label="Fix login")]}

        result = aggregator.aggregate(events, WEEK_10, ["workout", "workPRs"])

        personal = result.to_properties(registry, "personal")
        work = result.to_properties(registry, "work")

        assert "workPRsSessions" not in personal
        assert work == {"workPRsSessions": 1, "workPRsDetails": "Fix login (Mon)"}


class TestAverages:
    def test_body_weight_average(self, aggregator, registry):
        events = {
            "bodyWeight": [
                _event("bodyWeight", 4, label="Weight: 182.4 lbs"),
                _event("bodyWeight", 6, label="Weight: 180.0 lbs"),
                _event("bodyWeight", 7, label="no reading"),
            ]
        }

        result = aggregator.aggregate(events, WEEK_10, ["bodyWeight"])

        assert result.to_properties(registry) == {"bodyWeightAverage": 181.2}

    def test_body_weight_without_readings_is_none(self, aggregator, registry):
        result = aggregator.aggregate({}, WEEK_10, ["bodyWeight"])
        assert result.to_properties(registry) == {"bodyWeightAverage": None}

    def test_average_weight_parsing(self):
        events = [_event("bodyWeight", 4, label="180 lb"), _event("bodyWeight", 5, label="181 LBS")]
        assert average_weight(events) == 180.5

    def test_average_blood_pressure(self):
        events = [_event("bloodPressure", 4, label="BP: 120/80"), _event("bloodPressure", 5, label="bp: 130/90")]

        assert average_blood_pressure(events) == "125/85"
        assert average_blood_pressure([]) is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, 0.0),
        (-1.5, 0.0),
        (float("nan"), 0.0),
        (math.inf, 0.0),
        ("2.5", 2.5),
        ("abc", 0.0),
        (True, 0.0),
        (3, 3.0),
    ],
)
def test_clamp_hours(value, expected):
    assert clamp_hours(value) == expected


def test_result_to_dict(aggregator):
    result = aggregator.aggregate({"workout": [_event("workout", 4, 1.0)]}, WEEK_10, ["workout"])
    data = result.to_dict()

    assert data["window_start"] == "2024-03-03"
    assert data["per_group"]["workout"]["per_category"]["workout"]["sessions"] == 1
