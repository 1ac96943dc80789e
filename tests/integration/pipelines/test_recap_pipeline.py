"""Integration tests for weekly and monthly recap generation."""

from __future__ import annotations

import asyncio
import json
from datetime import date

import pytest

from tally.config.settings import ConfigError
from tally.core.models import SourceEvent
from tally.pipelines.event_sources import CalendarEventSource, EventSourceError, InMemoryEventSource
from tally.pipelines.recap_pipeline import create_recap_pipeline, month_recap_key, week_recap_key
from tally.rollups.time_windows import WeekRangeError
from tally.sync.calendar_events import InMemoryCalendarClient, all_day_payload
from tally.sync.destination import InMemoryDestinationStore
from tally.sync.week_catalog import DestinationWeekCatalog

pytestmark = pytest.mark.integration

WORKOUTS = [
    SourceEvent(category="workout", occurred_on=date(2024, 3, 4), label="Run", duration_hours=1.5),
    SourceEvent(category="workout", occurred_on=date(2024, 3, 4), label="Lift", duration_hours=1.0),
    SourceEvent(category="workout", occurred_on=date(2024, 3, 6), label="Ride", duration_hours=2.0),
    SourceEvent(category="workout", occurred_on=date(2024, 3, 12), label="Swim", duration_hours=1.0),
]


class FailingEventSource:
    async def list_events(self, bucket_id, window):
        raise EventSourceError(f"{bucket_id} unavailable")


@pytest.fixture
def store():
    return InMemoryDestinationStore()


def _pipeline(settings, registry, store, recording_sleep, event_source=None, **kwargs):
    return create_recap_pipeline(
        settings=settings,
        registry=registry,
        store=store,
        event_source=event_source or InMemoryEventSource({"workout": WORKOUTS}),
        sleep=recording_sleep,
        **kwargs,
    )


def test_recap_keys():
    assert week_recap_key(10, 2024) == "Week 10, 2024"
    assert month_recap_key(3, 2024) == "March 2024"


class TestWeeklyRecap:
    def test_creates_then_updates_same_record(self, settings, registry, store, recording_sleep):
        pipeline = _pipeline(settings, registry, store, recording_sleep)

        first = asyncio.run(pipeline.run_week(10, 2024, groups=["workout"]))
        second = asyncio.run(pipeline.run_week(10, 2024, groups=["workout"]))

        assert first.success and first.created
        assert not second.created
        assert second.record_id == first.record_id

        records = store.records("personal-week-recap-db")
        assert len(records) == 1
        assert records[0].properties["Name"] == "Week 10, 2024"
        assert records[0].properties["Date Range"] == {"start": "2024-03-03", "end": "2024-03-09"}
        assert records[0].properties["workoutDays"] == 2
        assert records[0].properties["workoutSessions"] == 3
        assert records[0].properties["workoutHoursTotal"] == 4.5

    def test_default_groups_cover_recap_type(self, settings, registry, store, recording_sleep):
        pipeline = _pipeline(settings, registry, store, recording_sleep)

        result = asyncio.run(pipeline.run_week(10, 2024))

        assert result.properties["workoutDays"] == 2
        # Groups with no events still report zeroes
        assert result.properties["earlyWakeupDays"] == 0
        assert result.properties["bodyWeightAverage"] is None
        assert "workPRsSessions" not in result.properties

    def test_work_recap(self, settings, registry, store, recording_sleep):
        source = InMemoryEventSource(
            {"workPRs": [SourceEvent(category="workPRs", occurred_on=date(2024, 3, 4), label="Fix login")]}
        )
        pipeline = _pipeline(settings, registry, store, recording_sleep, event_source=source)

        result = asyncio.run(pipeline.run_week(10, 2024, groups=["workPRs"], source_type="work"))

        assert result.properties["workPRsSessions"] == 1
        assert result.properties["workPRsDetails"] == "Fix login (Mon)"
        assert len(store.records("work-week-recap-db")) == 1

    def test_logs_jsonl(self, settings, registry, store, recording_sleep, tmp_path):
        log_path = tmp_path / "recap.jsonl"
        pipeline = _pipeline(settings, registry, store, recording_sleep, log_path=log_path)

        result = asyncio.run(pipeline.run_week(10, 2024, groups=["workout"]))

        entries = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
        assert [entry["event_type"] for entry in entries] == ["pipeline_started", "pipeline_completed"]
        assert entries[0]["pipeline"] == "recap"
        assert entries[1]["record_id"] == result.record_id

    def test_dry_run_writes_nothing(self, settings, registry, store, recording_sleep):
        pipeline = _pipeline(settings, registry, store, recording_sleep, dry_run=True)

        result = asyncio.run(pipeline.run_week(10, 2024, groups=["workout"]))

        assert result.success and result.created
        assert result.record_id is None
        assert result.properties["workoutDays"] == 2
        assert store.records("personal-week-recap-db") == []

    def test_read_failure_writes_nothing(self, settings, registry, store, recording_sleep):
        pipeline = _pipeline(settings, registry, store, recording_sleep, event_source=FailingEventSource())

        result = asyncio.run(pipeline.run_week(10, 2024, groups=["workout"]))

        assert not result.success
        assert result.errors == ["EventSourceError: workout unavailable"]
        assert result.record_id is None
        assert store.records("personal-week-recap-db") == []


class TestRecapConfig:
    def test_group_of_other_type(self, settings, registry, store, recording_sleep):
        pipeline = _pipeline(settings, registry, store, recording_sleep)

        with pytest.raises(ConfigError, match="work recaps"):
            asyncio.run(pipeline.run_week(10, 2024, groups=["workPRs"]))

    def test_unknown_group(self, settings, registry, store, recording_sleep):
        pipeline = _pipeline(settings, registry, store, recording_sleep)

        with pytest.raises(ConfigError, match="nope"):
            asyncio.run(pipeline.run_week(10, 2024, groups=["nope"]))

    def test_missing_recap_collection(self, settings, registry, store, recording_sleep):
        del settings.env["PERSONAL_WEEK_RECAP_DATABASE_ID"]
        pipeline = _pipeline(settings, registry, store, recording_sleep)

        with pytest.raises(ConfigError, match="PERSONAL_WEEK_RECAP_DATABASE_ID"):
            asyncio.run(pipeline.run_week(10, 2024, groups=["workout"]))

    @pytest.mark.parametrize("week", [0, 54])
    def test_week_out_of_range(self, settings, registry, store, recording_sleep, week):
        pipeline = _pipeline(settings, registry, store, recording_sleep)

        with pytest.raises(WeekRangeError):
            asyncio.run(pipeline.run_week(week, 2024, groups=["workout"]))

    def test_month_out_of_range(self, settings, registry, store, recording_sleep):
        pipeline = _pipeline(settings, registry, store, recording_sleep)

        with pytest.raises(ValueError):
            asyncio.run(pipeline.run_month(13, 2024, groups=["workout"]))


class TestMonthlyRecap:
    def test_window_spans_weeks_of_month(self, settings, registry, store, recording_sleep):
        pipeline = _pipeline(settings, registry, store, recording_sleep)

        result = asyncio.run(pipeline.run_month(3, 2024, groups=["workout"]))

        assert result.key == "March 2024"
        assert (result.window_start, result.window_end) == (date(2024, 2, 25), date(2024, 4, 6))
        assert result.properties["workoutSessions"] == 4
        assert [r.properties["Name"] for r in store.records("personal-month-recap-db")] == ["March 2024"]

    def test_persisted_weeks_preferred(self, settings, registry, store, recording_sleep):
        weeks = InMemoryDestinationStore(
            {
                "weeks": [
                    {"Name": "Week 10", "Date Range": {"start": "2024-03-03", "end": "2024-03-09"}},
                    {"Name": "Week 11", "Date Range": {"start": "2024-03-10", "end": "2024-03-16"}},
                ]
            }
        )
        pipeline = _pipeline(
            settings, registry, store, recording_sleep, week_catalog=DestinationWeekCatalog(weeks, "weeks")
        )

        result = asyncio.run(pipeline.run_month(3, 2024, groups=["workout"]))

        assert (result.window_start, result.window_end) == (date(2024, 3, 3), date(2024, 3, 16))
        assert result.properties["workoutSessions"] == 4


class TestCalendarEventSource:
    def test_reads_calendars_and_task_database(self, settings, registry, store, recording_sleep):
        calendar = InMemoryCalendarClient()
        asyncio.run(calendar.create_event("cal-sober", all_day_payload("Sober", date(2024, 3, 4))))
        asyncio.run(calendar.create_event("cal-sober", all_day_payload("Sober", date(2024, 3, 5))))
        tasks = InMemoryDestinationStore(
            {"tasks-db": [{"Task": "Taxes", "Type": "🏠 Home", "Due Date": "2024-03-05", "Status": "🟢 Done"}]}
        )
        source = CalendarEventSource(calendar, registry, settings.env, store=tasks)
        pipeline = _pipeline(settings, registry, store, recording_sleep, event_source=source)

        result = asyncio.run(pipeline.run_week(10, 2024, groups=["drinkingDays", "tasks"]))

        assert result.success
        assert result.properties["soberDays"] == 2
        assert result.properties["drinkingDays"] == 0
        assert result.properties["homeTasksComplete"] == 1
        assert result.properties["homeTaskDetails"] == "Taxes (Tue)"

    def test_database_bucket_without_store(self, settings, registry, store, recording_sleep):
        source = CalendarEventSource(InMemoryCalendarClient(), registry, settings.env)
        pipeline = _pipeline(settings, registry, store, recording_sleep, event_source=source)

        result = asyncio.run(pipeline.run_week(10, 2024, groups=["tasks"]))

        assert not result.success
        assert "no store is configured" in result.errors[0]
