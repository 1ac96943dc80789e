"""Normalized event model produced by transformers and consumed by the aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping

from .time import parse_calendar_date, parse_timestamp

__all__ = ["SourceEvent"]


@dataclass(frozen=True)
class SourceEvent:
    """A normalized, immutable record from any origin.

    Attributes
    ----------
    category : str
        Bucket the event was fetched from, or the category assigned by its
        transformer
    occurred_on : date
        Reportable calendar date (after any per-source offset)
    label : str
        Human-readable title
    duration_hours : float | None
        Duration in hours; may be malformed upstream (negative, NaN)
    is_all_day : bool
        All-day calendar event
    start_time : datetime | None
        Start timestamp in its original offset
    end_time : datetime | None
        End timestamp in its original offset
    color_id : str | None
        Externally assigned color code (routing signal)
    properties : Mapping[str, Any]
        Free-form properties (routing signal for property-based rules)
    """

    category: str
    occurred_on: date
    label: str = ""
    duration_hours: float | None = None
    is_all_day: bool = False
    start_time: datetime | None = None
    end_time: datetime | None = None
    color_id: str | None = None
    properties: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, category: str | None = None) -> SourceEvent:
        """Build an event from a plain mapping (JSON exports, fixtures).

        Recognized keys: ``category``, ``date``/``occurred_on``, ``label``/``summary``,
        ``duration_hours``, ``is_all_day``, ``start``, ``end``, ``color_id``,
        ``properties``.
        """
        occurred = data.get("occurred_on") or data.get("date")
        start = data.get("start")
        end = data.get("end")
        is_all_day = bool(data.get("is_all_day", False))

        if occurred is None and start is not None:
            occurred = start

        color_id = data.get("color_id")

        return cls(
            category=category or str(data.get("category", "")),
            occurred_on=parse_calendar_date(occurred),
            label=str(data.get("label") or data.get("summary") or ""),
            duration_hours=data.get("duration_hours"),
            is_all_day=is_all_day,
            start_time=parse_timestamp(start) if start and not is_all_day else None,
            end_time=parse_timestamp(end) if end and not is_all_day else None,
            color_id=str(color_id) if color_id is not None else None,
            properties=dict(data.get("properties") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "category": self.category,
            "date": self.occurred_on.isoformat(),
            "label": self.label,
            "duration_hours": self.duration_hours,
            "is_all_day": self.is_all_day,
            "start": self.start_time.isoformat() if self.start_time else None,
            "end": self.end_time.isoformat() if self.end_time else None,
            "color_id": self.color_id,
            "properties": dict(self.properties),
        }
