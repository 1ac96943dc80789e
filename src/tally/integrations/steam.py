"""Daily Steam playtime per game → video game records → gaming calendar events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from ..core.time import parse_timestamp
from ..sync.calendar_events import all_day_payload, timed_payload
from .base import BaseIntegration, TransformedItem, plain_value

if TYPE_CHECKING:
    from ..sync.calendar_events import CalendarEventPayload
    from ..sync.destination import Record

__all__ = ["SteamIntegration"]


class SteamIntegration(BaseIntegration):
    """Per-game daily playtime keyed by ``Activity ID`` (``<game>-<date>``)."""

    id = "steam"
    natural_key_property = "Activity ID"

    def transform(self, raw: Mapping[str, Any]) -> TransformedItem:
        game = str(self.require(raw, "game_name"))
        day = self.raw_date(raw)
        activity_id = f"{game}-{day.isoformat()}"

        total_minutes = int(raw.get("hours") or 0) * 60 + int(raw.get("minutes") or 0)
        sessions = [session for session in raw.get("sessions") or [] if session.get("start_time")]

        properties = {
            "Name": game,
            "Activity ID": activity_id,
            "Date": day.isoformat(),
            "Hours Played": round(total_minutes / 60, 2),
            "Minutes Played": total_minutes,
            "Session Count": len(sessions),
            "Start Time": sessions[0]["start_time"] if sessions else "",
            "End Time": (sessions[-1].get("end_time") or "") if sessions else "",
            self.calendar_created_property: False,
        }
        return TransformedItem(natural_key=activity_id, properties=properties, occurred_on=day)

    def calendar_payload(self, record: Record) -> CalendarEventPayload:
        props = record.properties
        game = plain_value(props.get("Name")) or "Video games"
        hours = props.get("Hours Played") or 0
        summary = f"{game} - {hours} hours"
        description = f"🎮 {game}\n⏱️ {props.get('Minutes Played', 0)} minutes"

        start = plain_value(props.get("Start Time"))
        end = plain_value(props.get("End Time"))
        if start and end:
            return timed_payload(summary, parse_timestamp(start), parse_timestamp(end), description=description)
        return all_day_payload(summary, self.record_date(record), description=description)
