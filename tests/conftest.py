"""Shared fixtures for tally tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tally.config.settings import Settings
from tally.registry.loader import load_registry

ROUTING_ENV = {
    # Destination collections
    "NOTION_SLEEP_DATABASE_ID": "sleep-db",
    "NOTION_WORKOUTS_DATABASE_ID": "workouts-db",
    "NOTION_PRS_DATABASE_ID": "prs-db",
    "NOTION_VIDEO_GAMES_DATABASE_ID": "games-db",
    "NOTION_BODY_WEIGHT_DATABASE_ID": "weight-db",
    "PERSONAL_WEEK_RECAP_DATABASE_ID": "personal-week-recap-db",
    "WORK_WEEK_RECAP_DATABASE_ID": "work-week-recap-db",
    "PERSONAL_MONTHLY_RECAP_DATABASE_ID": "personal-month-recap-db",
    "WORK_MONTHLY_RECAP_DATABASE_ID": "work-month-recap-db",
    "TASKS_DATABASE_ID": "tasks-db",
    # Calendars
    "NORMAL_WAKE_UP_CALENDAR_ID": "cal-normal-wake",
    "SLEEP_IN_CALENDAR_ID": "cal-sleep-in",
    "WORKOUT_CALENDAR_ID": "cal-workout",
    "SOBER_CALENDAR_ID": "cal-sober",
    "DRINKING_CALENDAR_ID": "cal-drinking",
    "READING_CALENDAR_ID": "cal-reading",
    "MEDITATION_CALENDAR_ID": "cal-meditation",
    "ART_CALENDAR_ID": "cal-art",
    "CODING_CALENDAR_ID": "cal-coding",
    "MUSIC_CALENDAR_ID": "cal-music",
    "VIDEO_GAMES_CALENDAR_ID": "cal-games",
    "BODY_WEIGHT_CALENDAR_ID": "cal-weight",
    "BLOOD_PRESSURE_CALENDAR_ID": "cal-bp",
    "PERSONAL_PRS_CALENDAR_ID": "cal-personal-prs",
    "WORK_PRS_CALENDAR_ID": "cal-work-prs",
    "PERSONAL_MAIN_CALENDAR_ID": "cal-personal",
    "WORK_MAIN_CALENDAR_ID": "cal-work",
}


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: pipeline, orchestrator and CLI tests against local stores")


@pytest.fixture(scope="session")
def registry():
    """Packaged source registry."""
    return load_registry()


@pytest.fixture
def routing_env():
    return dict(ROUTING_ENV)


@pytest.fixture
def settings(tmp_path, routing_env):
    """Settings with every routing target set and backoff configured."""
    return Settings(
        data_dir=tmp_path / "data",
        backoff_ms={"oura": 200, "strava": 200, "withings": 1000, "notion": 350, "googleCalendar": 350},
        env=routing_env,
    )


class RecordingSleep:
    """Awaitable sleep replacement recording requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
