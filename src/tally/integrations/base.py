"""Base types for source integrations.

An integration turns raw items fetched from an external API into destination
record properties keyed by a natural key, and turns destination records back
into calendar payloads. Unit conversions and per-source date offsets happen
here, never in the orchestrator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Mapping

from ..core.time import DEFAULT_CIVIL_TIMEZONE, get_timezone, parse_calendar_date
from ..rollups.source_dates import DEFAULT_WAKE_THRESHOLD_HOUR, source_date_offset

if TYPE_CHECKING:
    from ..sync.calendar_events import CalendarEventPayload
    from ..sync.destination import Record

__all__ = [
    "CALENDAR_CREATED_PROPERTY",
    "BaseIntegration",
    "TransformError",
    "TransformedItem",
    "format_date_long",
    "plain_value",
    "round_or_none",
]

# Checkbox written on every new record; flipped once exported to the calendar
CALENDAR_CREATED_PROPERTY = "Calendar Created"


class TransformError(ValueError):
    """Raised when a raw item cannot be turned into destination properties."""


@dataclass(frozen=True)
class TransformedItem:
    """Destination-ready item.

    Attributes
    ----------
    natural_key : str
        Stable upstream identifier used for the existence check
    properties : dict
        Destination properties (natural key property included)
    occurred_on : date
        Reportable date after the source's offset rule
    """

    natural_key: str
    properties: dict[str, Any] = field(default_factory=dict)
    occurred_on: date | None = None


def plain_value(value: Any) -> Any:
    """Unwrap select-style (``{"name": ...}``) and date-style (``{"start": ...}``) values."""
    if isinstance(value, Mapping):
        if "name" in value:
            return value["name"]
        if "start" in value:
            return value["start"]
    return value


def round_or_none(value: Any, digits: int = 0) -> float | int | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if digits == 0:
        return int(round(number))
    return round(number, digits)


def format_date_long(day: date) -> str:
    """``"Sunday, January 14, 2024"``."""
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


class BaseIntegration(ABC):
    """Integration base class.

    Parameters
    ----------
    civil_timezone
        IANA timezone for UTC and unix timestamps
    wake_threshold_hour
        Late-wake threshold (sleep integrations)

    Attributes
    ----------
    id : str
        Integration id (matches the registry)
    natural_key_property : str
        Destination property holding the natural key
    date_property : str
        Destination date property used for window filters
    title_property : str
        Destination title property
    """

    id: str = ""
    natural_key_property: str = ""
    raw_date_key: str = "date"
    date_property: str = "Date"
    title_property: str = "Name"
    calendar_created_property: str = CALENDAR_CREATED_PROPERTY

    def __init__(
        self,
        *,
        civil_timezone: str = DEFAULT_CIVIL_TIMEZONE,
        wake_threshold_hour: float = DEFAULT_WAKE_THRESHOLD_HOUR,
    ) -> None:
        self.civil_timezone = civil_timezone
        self.wake_threshold_hour = wake_threshold_hour

    @abstractmethod
    def transform(self, raw: Mapping[str, Any]) -> TransformedItem:
        """Turn one raw API item into destination properties.

        Raises
        ------
        TransformError
            If required fields are missing or malformed
        """

    @abstractmethod
    def calendar_payload(self, record: Record) -> CalendarEventPayload:
        """Calendar event for a synced destination record."""

    def raw_id(self, raw: Mapping[str, Any], index: int) -> str:
        """Best-effort identifier for an item that failed to transform."""
        for key in ("id", "grpid", "sleep_id", "activity_id"):
            if raw.get(key) not in (None, ""):
                return str(raw[key])
        return f"{self.id}-item-{index}"

    def raw_date(self, raw: Mapping[str, Any]) -> date:
        """Reportable date of a raw item (per-source offset applied)."""
        return source_date_offset(self.id, self.require(raw, self.raw_date_key), civil_timezone=self.civil_timezone)

    def record_date(self, record: Record) -> date:
        """Reportable date of a destination record."""
        value = plain_value(record.properties.get(self.date_property))
        if not value:
            raise TransformError(f"Record {record.id} has no '{self.date_property}'")
        return parse_calendar_date(value)

    def localize(self, value: datetime) -> datetime:
        """Attach the civil timezone to a naive local timestamp."""
        if value.tzinfo is not None:
            return value
        return get_timezone(self.civil_timezone).localize(value)

    def require(self, raw: Mapping[str, Any], key: str) -> Any:
        value = raw.get(key)
        if value in (None, ""):
            raise TransformError(f"{self.id}: missing required field '{key}'")
        return value
