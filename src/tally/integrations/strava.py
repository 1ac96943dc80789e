"""Strava activities → workouts database records → workout calendar events."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Mapping

from ..sync.calendar_events import all_day_payload, timed_payload
from .base import BaseIntegration, TransformedItem, plain_value, round_or_none

if TYPE_CHECKING:
    from ..sync.calendar_events import CalendarEventPayload
    from ..sync.destination import Record

__all__ = ["METERS_PER_MILE", "StravaIntegration"]

METERS_PER_MILE = 1609.34


class StravaIntegration(BaseIntegration):
    """Activities keyed by ``Activity ID``.

    Moving time is stored in minutes and distance in miles. The date is the
    date part of the athlete's local start time.
    """

    id = "strava"
    natural_key_property = "Activity ID"
    raw_date_key = "start_date_local"

    def transform(self, raw: Mapping[str, Any]) -> TransformedItem:
        activity_id = str(self.require(raw, "id"))
        day = self.raw_date(raw)
        distance = raw.get("distance")

        properties = {
            "Name": raw.get("name") or "Workout",
            "Activity ID": activity_id,
            "Date": day.isoformat(),
            "Type": raw.get("type") or "",
            "Start Time": raw.get("start_date_local") or "",
            "Duration": round_or_none((raw.get("moving_time") or 0) / 60),
            "Distance": round(float(distance) / METERS_PER_MILE, 2) if distance else None,
            "Average Heartrate": raw.get("average_heartrate"),
            "Calories": raw.get("calories"),
            self.calendar_created_property: False,
        }
        return TransformedItem(natural_key=activity_id, properties=properties, occurred_on=day)

    def calendar_payload(self, record: Record) -> CalendarEventPayload:
        props = record.properties
        name = plain_value(props.get("Name")) or "Workout"
        activity_type = props.get("Type") or "Workout"
        duration = props.get("Duration")

        description = f"🏃‍♂️ {name}\n⏱️ Duration: {duration or 'N/A'} minutes\n📊 Activity Type: {activity_type}"

        start_raw = plain_value(props.get("Start Time"))
        if not start_raw or not duration:
            return all_day_payload(name, self.record_date(record), description=description)

        start = self.localize(datetime.fromisoformat(str(start_raw).replace("Z", "+00:00")))
        end = start + timedelta(minutes=float(duration))
        return timed_payload(name, start, end, description=description)
