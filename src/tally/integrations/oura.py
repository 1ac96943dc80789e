"""Oura sleep sessions → sleep database records → wake-up calendar events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from ..core.time import parse_calendar_date, parse_timestamp
from ..rollups.source_dates import NORMAL_WAKE_CATEGORY, classify_wake
from ..sync.calendar_events import all_day_payload, timed_payload
from .base import BaseIntegration, TransformedItem, format_date_long, plain_value, round_or_none

if TYPE_CHECKING:
    from ..sync.calendar_events import CalendarEventPayload
    from ..sync.destination import Record

__all__ = ["WAKE_LABELS", "OuraIntegration"]

# Select option written to the "Google Calendar" property per wake category
WAKE_LABELS = {NORMAL_WAKE_CATEGORY: "Normal Wake Up", "sleepIn": "Sleep In"}


def _minutes(seconds: Any) -> int:
    return round_or_none((seconds or 0) / 60) or 0


class OuraIntegration(BaseIntegration):
    """Sleep sessions keyed by ``Sleep ID``.

    Raw items carry the wake-up ``day``; the record is dated the night before.
    Whether the wake-up was late is read from ``bedtime_end`` in its own offset.
    """

    id = "oura"
    natural_key_property = "Sleep ID"
    date_property = "Night of Date"
    title_property = "Night of"
    raw_date_key = "day"

    def transform(self, raw: Mapping[str, Any]) -> TransformedItem:
        sleep_id = str(self.require(raw, "id"))
        night = self.raw_date(raw)
        wake_time = raw.get("bedtime_end") or ""

        category = classify_wake(wake_time, self.wake_threshold_hour) if wake_time else NORMAL_WAKE_CATEGORY
        duration_seconds = raw.get("total_sleep_duration")

        properties = {
            "Night of": format_date_long(night),
            "Night of Date": night.isoformat(),
            "Oura Date": parse_calendar_date(raw["day"]).isoformat(),
            "Bedtime": raw.get("bedtime_start") or "",
            "Wake Time": wake_time,
            "Sleep Duration": round(duration_seconds / 3600, 1) if duration_seconds else 0,
            "Deep Sleep": _minutes(raw.get("deep_sleep_duration")),
            "REM Sleep": _minutes(raw.get("rem_sleep_duration")),
            "Light Sleep": _minutes(raw.get("light_sleep_duration")),
            "Efficiency": raw.get("efficiency"),
            "Heart Rate Avg": raw.get("average_heart_rate"),
            "HRV": raw.get("average_hrv"),
            "Google Calendar": WAKE_LABELS[category],
            "Sleep ID": sleep_id,
            "Type": raw.get("type") or "Sleep",
            self.calendar_created_property: False,
        }
        return TransformedItem(natural_key=sleep_id, properties=properties, occurred_on=night)

    def calendar_payload(self, record: Record) -> CalendarEventPayload:
        props = record.properties
        bedtime = plain_value(props.get("Bedtime"))
        wake_time = plain_value(props.get("Wake Time"))

        hours = props.get("Sleep Duration") or 0
        efficiency = props.get("Efficiency")
        summary = f"Sleep - {hours}hrs"
        if efficiency is not None:
            summary += f" ({efficiency}% efficiency)"

        description = (
            "Sleep Session\n\n"
            "Sleep Stages:\n"
            f"• Deep: {props.get('Deep Sleep', 'N/A')} min\n"
            f"• REM: {props.get('REM Sleep', 'N/A')} min\n"
            f"• Light: {props.get('Light Sleep', 'N/A')} min\n\n"
            "Metrics:\n"
            f"• Avg Heart Rate: {props.get('Heart Rate Avg') or 'N/A'} bpm\n"
            f"• HRV: {props.get('HRV') or 'N/A'} ms"
        )
        if not bedtime or not wake_time:
            return all_day_payload(summary, self.record_date(record), description=description)
        return timed_payload(summary, parse_timestamp(bedtime), parse_timestamp(wake_time), description=description)
