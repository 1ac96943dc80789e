"""Calendar boundary: event payloads and local calendar clients.

All-day payloads use an exclusive end date (the day after the last day), the
convention of calendar APIs. Timed payloads carry ISO-8601 timestamps.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from ..core.json_io import read_json, write_json_atomic
from ..core.models import SourceEvent
from ..core.time import parse_calendar_date, parse_timestamp
from ..observability.loguru_config import get_logger
from ..rollups.time_windows import all_day_bounds

if TYPE_CHECKING:
    from ..rollups.time_windows import TimeWindow

__all__ = [
    "CalendarClient",
    "CalendarError",
    "CalendarEvent",
    "CalendarEventPayload",
    "InMemoryCalendarClient",
    "JsonFileCalendarClient",
    "all_day_payload",
    "timed_payload",
]

logger = get_logger("sync")


class CalendarError(Exception):
    """Raised when a calendar operation fails."""


@dataclass(frozen=True)
class CalendarEventPayload:
    """Event to create on a calendar.

    Attributes
    ----------
    summary : str
        Event title
    start : date | datetime
        Start date (all-day) or timestamp
    end : date | datetime
        Exclusive end date (all-day) or end timestamp
    description : str
        Event body
    color_id : str | None
        Calendar color code
    """

    summary: str
    start: date | datetime
    end: date | datetime
    description: str = ""
    color_id: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.start, datetime) != isinstance(self.end, datetime):
            raise ValueError("start and end must both be dates or both be timestamps")
        if self.end < self.start:
            raise ValueError(f"Event end {self.end} precedes start {self.start}")

    @property
    def is_all_day(self) -> bool:
        return not isinstance(self.start, datetime)

    def to_dict(self) -> dict[str, Any]:
        """Calendar API body."""
        key = "date" if self.is_all_day else "dateTime"
        body: dict[str, Any] = {
            "summary": self.summary,
            "description": self.description,
            "start": {key: self.start.isoformat()},
            "end": {key: self.end.isoformat()},
        }
        if self.color_id is not None:
            body["colorId"] = str(self.color_id)
        return body


def all_day_payload(
    summary: str,
    first_day: date,
    last_day: date | None = None,
    *,
    description: str = "",
    color_id: str | None = None,
) -> CalendarEventPayload:
    """All-day payload covering ``first_day..last_day`` inclusive."""
    start, end = all_day_bounds(first_day, last_day)
    return CalendarEventPayload(summary=summary, start=start, end=end, description=description, color_id=color_id)


def timed_payload(
    summary: str,
    start: datetime,
    end: datetime,
    *,
    description: str = "",
    color_id: str | None = None,
) -> CalendarEventPayload:
    return CalendarEventPayload(summary=summary, start=start, end=end, description=description, color_id=color_id)


@dataclass
class CalendarEvent:
    """An event stored on a calendar."""

    id: str
    calendar_id: str
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def first_day(self) -> date:
        start = self.body.get("start", {})
        return parse_calendar_date(start.get("date") or start.get("dateTime"))

    def to_source_event(self, category: str) -> SourceEvent:
        """Normalize into a SourceEvent attributed to a bucket."""
        start = self.body.get("start", {})
        end = self.body.get("end", {})

        if "date" in start:
            return SourceEvent(
                category=category,
                occurred_on=parse_calendar_date(start["date"]),
                label=self.body.get("summary", ""),
                is_all_day=True,
                color_id=self._color_id(),
            )

        start_time = parse_timestamp(start["dateTime"])
        end_time = parse_timestamp(end["dateTime"]) if end.get("dateTime") else start_time
        return SourceEvent(
            category=category,
            # Reported on the wall-clock date of its own offset
            occurred_on=start_time.date(),
            label=self.body.get("summary", ""),
            duration_hours=(end_time - start_time).total_seconds() / 3600,
            start_time=start_time,
            end_time=end_time,
            color_id=self._color_id(),
        )

    def _color_id(self) -> str | None:
        color = self.body.get("colorId")
        return str(color) if color is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "calendar_id": self.calendar_id, "body": dict(self.body)}


class CalendarClient(Protocol):
    """Async calendar wrapper."""

    async def create_event(self, calendar_id: str, payload: CalendarEventPayload) -> CalendarEvent: ...

    async def list_events(self, calendar_id: str, window: TimeWindow) -> list[CalendarEvent]: ...


class InMemoryCalendarClient:
    """Calendar held in process memory."""

    def __init__(self) -> None:
        self._calendars: dict[str, list[CalendarEvent]] = {}

    def events(self, calendar_id: str) -> list[CalendarEvent]:
        return list(self._calendars.get(calendar_id, []))

    def _store(self, event: CalendarEvent) -> None:
        self._calendars.setdefault(event.calendar_id, []).append(event)

    async def create_event(self, calendar_id: str, payload: CalendarEventPayload) -> CalendarEvent:
        event = CalendarEvent(id=str(uuid.uuid4()), calendar_id=calendar_id, body=payload.to_dict())
        self._store(event)
        logger.debug("Calendar event created", calendar=calendar_id, summary=payload.summary)
        return event

    async def list_events(self, calendar_id: str, window: TimeWindow) -> list[CalendarEvent]:
        return [event for event in self._calendars.get(calendar_id, []) if window.contains(event.first_day)]

    def to_dict(self) -> dict[str, Any]:
        return {
            calendar_id: [event.to_dict() for event in events] for calendar_id, events in self._calendars.items()
        }


class JsonFileCalendarClient(InMemoryCalendarClient):
    """Calendar persisted to a JSON file after every write."""

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)

        document = read_json(self.path, default={})
        if not isinstance(document, dict):
            raise CalendarError(f"Calendar file {self.path} must contain a JSON object")

        for calendar_id, items in document.get("calendars", {}).items():
            for item in items:
                self._store(CalendarEvent(id=str(item["id"]), calendar_id=calendar_id, body=dict(item["body"])))

    async def create_event(self, calendar_id: str, payload: CalendarEventPayload) -> CalendarEvent:
        event = await super().create_event(calendar_id, payload)
        write_json_atomic(self.path, {"calendars": self.to_dict()})
        return event
