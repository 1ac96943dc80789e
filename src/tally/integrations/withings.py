"""Withings body-scale measurements → body weight records → all-day weight events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Sequence

from ..core.time import to_civil_datetime
from ..sync.calendar_events import all_day_payload
from .base import BaseIntegration, TransformedItem, plain_value

if TYPE_CHECKING:
    from ..sync.calendar_events import CalendarEventPayload
    from ..sync.destination import Record

__all__ = ["KG_TO_LBS", "MEASURE_TYPES", "WithingsIntegration", "decode_measure"]

KG_TO_LBS = 2.20462

# Withings measure type codes
MEASURE_TYPES = {
    "weight": 1,
    "fat_free_mass": 5,
    "fat_ratio": 6,
    "fat_mass": 8,
    "muscle_mass": 76,
    "hydration": 77,
    "bone_mass": 88,
}

_MASS_TYPES = ("weight", "fat_free_mass", "fat_mass", "muscle_mass", "bone_mass")


def decode_measure(measures: Sequence[Mapping[str, Any]], measure_type: int) -> float | None:
    """Decode ``value * 10**unit`` for the first measure of a type."""
    for measure in measures:
        if measure.get("type") == measure_type and measure.get("value") is not None:
            return float(measure["value"]) * 10 ** int(measure.get("unit", 0))
    return None


def _lbs(kg: float | None) -> float | None:
    return round(kg * KG_TO_LBS, 1) if kg is not None else None


class WithingsIntegration(BaseIntegration):
    """Measurement groups keyed by ``Measurement ID``; dates from unix seconds in the civil timezone."""

    id = "withings"
    natural_key_property = "Measurement ID"

    def transform(self, raw: Mapping[str, Any]) -> TransformedItem:
        measurement_id = str(self.require(raw, "grpid"))
        day = self.raw_date(raw)
        measures = raw.get("measures") or []

        decoded = {name: decode_measure(measures, code) for name, code in MEASURE_TYPES.items()}
        for name in _MASS_TYPES:
            decoded[name] = _lbs(decoded[name])

        measured_at = to_civil_datetime(raw["date"], self.civil_timezone)

        properties = {
            "Name": f"{measured_at:%B} {measured_at.day}, {measured_at.year}",
            "Measurement ID": measurement_id,
            "Date": day.isoformat(),
            "Weight": decoded["weight"],
            "Fat Free Mass": decoded["fat_free_mass"],
            "Fat Percentage": round(decoded["fat_ratio"], 1) if decoded["fat_ratio"] is not None else None,
            "Fat Mass": decoded["fat_mass"],
            "Muscle Mass": decoded["muscle_mass"],
            "Bone Mass": decoded["bone_mass"],
            "Body Water Percentage": round(decoded["hydration"], 1) if decoded["hydration"] is not None else None,
            "Measurement Time": measured_at.isoformat(),
            self.calendar_created_property: False,
        }
        return TransformedItem(natural_key=measurement_id, properties=properties, occurred_on=day)

    def calendar_payload(self, record: Record) -> CalendarEventPayload:
        props = record.properties
        weight = plain_value(props.get("Weight"))
        summary = f"Weight: {weight} lbs" if weight is not None else "Weight: N/A"

        lines = [f"⚖️ {summary}"]
        if props.get("Fat Percentage") is not None:
            lines.append(f"Body Fat: {props['Fat Percentage']}%")
        if props.get("Muscle Mass") is not None:
            lines.append(f"Muscle Mass: {props['Muscle Mass']} lbs")

        return all_day_payload(summary, self.record_date(record), description="\n".join(lines))
