"""Tests for integration transforms, calendar payloads and fetch clients."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta

import pytest

from tally.integrations import (
    GitHubIntegration,
    JsonFileFetchClient,
    OuraIntegration,
    StaticFetchClient,
    SteamIntegration,
    StravaIntegration,
    TaskReader,
    TransformError,
    WithingsIntegration,
    create_integration,
)
from tally.integrations.base import format_date_long, round_or_none
from tally.integrations.clients import FetchError
from tally.integrations.withings import decode_measure
from tally.rollups.blocks import MAX_TEXT_LENGTH, TRUNCATION_MARKER
from tally.rollups.time_windows import week_window
from tally.sync.destination import InMemoryDestinationStore, Record


def _record(properties, record_id="rec-1"):
    return Record(id=record_id, collection_id="db", properties=properties)


class TestOura:
    RAW = {
        "id": "sleep-1",
        "day": "2024-01-15",
        "bedtime_start": "2024-01-14T22:45:00-05:00",
        "bedtime_end": "2024-01-15T06:30:00-05:00",
        "total_sleep_duration": 27000,
        "deep_sleep_duration": 5400,
        "rem_sleep_duration": 6000,
        "light_sleep_duration": 15600,
        "efficiency": 91,
    }

    def test_record_dated_night_before(self):
        item = OuraIntegration().transform(self.RAW)

        assert item.natural_key == "sleep-1"
        assert item.occurred_on == date(2024, 1, 14)
        assert item.properties["Night of"] == "Sunday, January 14, 2024"
        assert item.properties["Night of Date"] == "2024-01-14"
        assert item.properties["Oura Date"] == "2024-01-15"
        assert item.properties["Sleep Duration"] == 7.5
        assert item.properties["Deep Sleep"] == 90
        assert item.properties["Calendar Created"] is False

    def test_wake_category_written_for_routing(self):
        early = OuraIntegration().transform(self.RAW)
        late = OuraIntegration().transform({**self.RAW, "bedtime_end": "2024-01-15T09:10:00-05:00"})

        assert early.properties["Google Calendar"] == "Normal Wake Up"
        assert late.properties["Google Calendar"] == "Sleep In"

    def test_custom_threshold(self):
        item = OuraIntegration(wake_threshold_hour=6).transform(self.RAW)
        assert item.properties["Google Calendar"] == "Sleep In"

    def test_missing_id_is_transform_error(self):
        with pytest.raises(TransformError, match="id"):
            OuraIntegration().transform({"day": "2024-01-15"})

    def test_timed_payload_from_bedtime_to_wake(self):
        integration = OuraIntegration()
        payload = integration.calendar_payload(_record(integration.transform(self.RAW).properties))

        assert payload.summary == "Sleep - 7.5hrs (91% efficiency)"
        assert payload.start == datetime.fromisoformat("2024-01-14T22:45:00-05:00")
        assert payload.end == datetime.fromisoformat("2024-01-15T06:30:00-05:00")
        assert "Deep: 90 min" in payload.description

    def test_all_day_payload_without_times(self):
        payload = OuraIntegration().calendar_payload(
            _record({"Night of Date": "2024-01-14", "Sleep Duration": 7})
        )

        assert payload.is_all_day
        assert payload.start == date(2024, 1, 14)


class TestStrava:
    RAW = {
        "id": 98765,
        "name": "Morning Run",
        "type": "Run",
        "start_date_local": "2024-03-04T07:00:00",
        "moving_time": 3600,
        "distance": 5000,
    }

    def test_units_converted(self):
        item = StravaIntegration().transform(self.RAW)

        assert item.natural_key == "98765"
        assert item.occurred_on == date(2024, 3, 4)
        assert item.properties["Duration"] == 60
        assert item.properties["Distance"] == 3.11

    def test_timed_payload_in_civil_timezone(self):
        integration = StravaIntegration()
        payload = integration.calendar_payload(_record(integration.transform(self.RAW).properties))

        assert payload.summary == "Morning Run"
        assert payload.start.utcoffset() == timedelta(hours=-5)
        assert payload.end - payload.start == timedelta(hours=1)

    def test_all_day_without_duration(self):
        payload = StravaIntegration().calendar_payload(_record({"Name": "Yoga", "Date": "2024-03-05"}))

        assert payload.is_all_day
        assert payload.to_dict()["end"] == {"date": "2024-03-06"}


class TestGitHub:
    RAW = {
        "repository": "tally",
        "date": "2024-03-10T03:30:00Z",
        "commits": 3,
        "additions": 120,
        "deletions": 7,
        "pr_title": "Add recaps",
        "pr_number": 42,
        "project_type": "Work",
    }

    def test_natural_key_uses_civil_date_and_pull_request(self):
        item = GitHubIntegration().transform(self.RAW)

        assert item.natural_key == "tally-2024-03-09-PR42"
        assert item.properties["Date"] == "2024-03-09"
        assert item.properties["Name"] == "tally - Add recaps (#42)"
        assert item.properties["Project Type"] == "Work"

    def test_payload_counts_commits(self):
        integration = GitHubIntegration()
        payload = integration.calendar_payload(_record(integration.transform(self.RAW).properties))

        assert payload.summary == "tally - Add recaps (#42) (3 commits)"
        assert payload.start == date(2024, 3, 9)

    def test_project_type_defaults_to_personal(self):
        item = GitHubIntegration().transform({"repository": "notes", "date": "2024-03-05T15:00:00Z"})
        assert item.properties["Project Type"] == "Personal"

    def test_pull_requests_on_same_day_keyed_separately(self):
        integration = GitHubIntegration()
        first = integration.transform({**self.RAW, "pr_number": 1})
        second = integration.transform({**self.RAW, "pr_number": 2})

        assert first.natural_key == "tally-2024-03-09-PR1"
        assert second.natural_key == "tally-2024-03-09-PR2"

    def test_long_text_fields_truncated(self):
        item = GitHubIntegration().transform({**self.RAW, "commit_messages": "m" * 5000, "pr_title": "t" * 2500})

        assert len(item.properties["Commit Messages"]) <= MAX_TEXT_LENGTH
        assert item.properties["Commit Messages"].endswith(TRUNCATION_MARKER)
        assert len(item.properties["PR Titles"]) <= MAX_TEXT_LENGTH


class TestSteam:
    def test_playtime_and_sessions(self):
        item = SteamIntegration().transform(
            {
                "game_name": "Hades",
                "date": "2024-03-06",
                "hours": 1,
                "minutes": 30,
                "sessions": [
                    {"start_time": "2024-03-06T20:00:00-05:00", "end_time": "2024-03-06T21:30:00-05:00"},
                ],
            }
        )

        assert item.natural_key == "Hades-2024-03-06"
        assert item.properties["Hours Played"] == 1.5
        assert item.properties["Minutes Played"] == 90
        assert item.properties["Session Count"] == 1

    def test_payload_timed_when_sessions_known(self):
        integration = SteamIntegration()
        item = integration.transform(
            {
                "game_name": "Hades",
                "date": "2024-03-06",
                "minutes": 45,
                "sessions": [{"start_time": "2024-03-06T20:00:00-05:00", "end_time": "2024-03-06T20:45:00-05:00"}],
            }
        )

        payload = integration.calendar_payload(_record(item.properties))

        assert not payload.is_all_day
        assert payload.summary == "Hades - 0.75 hours"


class TestWithings:
    RAW = {
        "grpid": 555,
        "date": 1709553600,
        "measures": [
            {"type": 1, "value": 80000, "unit": -3},
            {"type": 6, "value": 215, "unit": -1},
        ],
    }

    def test_kg_converted_to_pounds(self):
        item = WithingsIntegration().transform(self.RAW)

        assert item.natural_key == "555"
        assert item.occurred_on == date(2024, 3, 4)
        assert item.properties["Name"] == "March 4, 2024"
        assert item.properties["Weight"] == 176.4
        assert item.properties["Fat Percentage"] == 21.5
        assert item.properties["Muscle Mass"] is None

    def test_iso_timestamp_accepted(self):
        item = WithingsIntegration().transform({**self.RAW, "date": "2024-03-05T07:00:00Z"})

        assert item.occurred_on == date(2024, 3, 5)
        assert item.properties["Name"] == "March 5, 2024"
        assert item.properties["Measurement Time"] == "2024-03-05T02:00:00-05:00"

    def test_digit_string_timestamp_accepted(self):
        item = WithingsIntegration().transform({**self.RAW, "date": "1709553600"})

        assert item.occurred_on == date(2024, 3, 4)
        assert item.properties["Measurement Time"] == "2024-03-04T07:00:00-05:00"

    def test_payload_label_parses_as_weight(self):
        integration = WithingsIntegration()
        payload = integration.calendar_payload(_record(integration.transform(self.RAW).properties))

        assert payload.summary == "Weight: 176.4 lbs"
        assert payload.start == date(2024, 3, 4)

    def test_decode_measure(self):
        assert decode_measure([{"type": 1, "value": 7250, "unit": -2}], 1) == pytest.approx(72.5)
        assert decode_measure([], 1) is None


class TestTaskReader:
    def test_reads_completed_tasks_by_bucket(self):
        store = InMemoryDestinationStore(
            {
                "tasks-db": [
                    {"Task": "Taxes", "Type": "🏠 Home", "Due Date": "2024-03-05", "Status": "🟢 Done"},
                    {
                        "Task": "Mockup review",
                        "Type": {"name": "💼 Work"},
                        "Work Category": {"name": "🎨 Design"},
                        "Due Date": {"start": "2024-03-06"},
                        "Status": {"name": "🟢 Done"},
                    },
                    {"Task": "Pending", "Type": "🏠 Home", "Due Date": "2024-03-05", "Status": "🔴 To Do"},
                    {"Task": "Old", "Type": "🏠 Home", "Due Date": "2024-03-01", "Status": "🟢 Done"},
                ]
            }
        )

        events = asyncio.run(TaskReader().read(store, "tasks-db", week_window(10, 2024)))

        assert [event.label for event in events["tasks"]] == ["Taxes"]
        assert events["tasks"][0].properties == {"Category": "🏠 Home"}
        work = events["workTasks"][0]
        assert work.label == "Mockup review"
        assert work.occurred_on == date(2024, 3, 6)
        assert work.properties["Work Category"] == "🎨 Design"


class TestFetchClients:
    def test_static_client_filters_by_window(self):
        client = StaticFetchClient(
            [{"day": "2024-03-04"}, {"day": "2024-03-12"}, {"day": None}],
            date_of=lambda item: date.fromisoformat(item["day"]),
        )

        items = asyncio.run(client.fetch(week_window(10, 2024)))

        # Undatable items are kept so they surface as transform errors
        assert items == [{"day": "2024-03-04"}, {"day": None}]
        assert client.calls == 1

    def test_static_client_error(self):
        client = StaticFetchClient(error=FetchError("upstream down"))

        with pytest.raises(FetchError):
            asyncio.run(client.fetch(week_window(10, 2024)))

    def test_json_file_client(self, tmp_path):
        path = tmp_path / "strava.json"
        path.write_text('{"items": [{"id": 1}, "junk"]}', encoding="utf-8")

        assert asyncio.run(JsonFileFetchClient(path).fetch(week_window(10, 2024))) == [{"id": 1}]
        assert asyncio.run(JsonFileFetchClient(tmp_path / "none.json").fetch(week_window(10, 2024))) == []

    def test_json_file_client_rejects_scalar(self, tmp_path):
        path = tmp_path / "strava.json"
        path.write_text("42", encoding="utf-8")

        with pytest.raises(FetchError):
            asyncio.run(JsonFileFetchClient(path).fetch(week_window(10, 2024)))


def test_create_integration():
    integration = create_integration("withings", civil_timezone="UTC")

    assert isinstance(integration, WithingsIntegration)
    assert integration.civil_timezone == "UTC"
    with pytest.raises(KeyError, match="available"):
        create_integration("fitbit")


def test_helpers():
    assert format_date_long(date(2024, 3, 4)) == "Monday, March 4, 2024"
    assert round_or_none("") is None
    assert round_or_none("2.567", 2) == 2.57
    assert round_or_none(59.6) == 60
