"""Core models, time helpers and JSON file I/O."""

from .json_io import JsonIOError, read_json, write_json_atomic
from .models import SourceEvent
from .time import (
    DEFAULT_CIVIL_TIMEZONE,
    day_abbreviation,
    get_timezone,
    parse_calendar_date,
    parse_timestamp,
    parse_utc_iso8601,
    to_civil_date,
    to_civil_datetime,
)

__all__ = [
    "SourceEvent",
    "DEFAULT_CIVIL_TIMEZONE",
    "day_abbreviation",
    "get_timezone",
    "parse_calendar_date",
    "parse_timestamp",
    "parse_utc_iso8601",
    "to_civil_date",
    "to_civil_datetime",
    "JsonIOError",
    "read_json",
    "write_json_atomic",
]
