"""Time and timezone helpers shared by calendar arithmetic and transformers.

Conventions:
- Calendar dates are plain ``datetime.date`` values (no time, no zone)
- Timestamps keep the offset they were recorded with
- Conversions to a civil timezone use IANA zones (pytz), never fixed offsets
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

import pytz

__all__ = [
    "DEFAULT_CIVIL_TIMEZONE",
    "day_abbreviation",
    "parse_calendar_date",
    "parse_timestamp",
    "parse_utc_iso8601",
    "to_civil_date",
    "to_civil_datetime",
    "get_timezone",
]

DEFAULT_CIVIL_TIMEZONE = "America/New_York"

_DATE_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


def get_timezone(timezone_name: str) -> Any:
    """Resolve an IANA timezone name.

    Parameters
    ----------
    timezone_name
        IANA timezone name (e.g., "America/New_York")

    Returns
    -------
    tzinfo
        pytz timezone

    Raises
    ------
    ValueError
        If timezone is unknown
    """
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError as exc:
        raise ValueError(f"Invalid timezone: {timezone_name}") from exc


def parse_calendar_date(value: date | datetime | str) -> date:
    """Extract a calendar date without any timezone conversion.

    Accepts ``date`` objects, datetimes (their own wall-clock date is used) and
    strings starting with ``YYYY-MM-DD`` (the rest of the string is ignored).

    Raises
    ------
    ValueError
        If the value carries no recognizable date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    match = _DATE_PREFIX.match(str(value).strip())
    if not match:
        raise ValueError(f"Cannot parse calendar date: {value!r}")

    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)


def parse_timestamp(value: datetime | str) -> datetime:
    """Parse an ISO-8601 timestamp, keeping its original offset.

    Naive values are assumed to be UTC.

    Parameters
    ----------
    value
        ISO-8601 string (``Z`` suffix allowed) or datetime

    Returns
    -------
    datetime
        Timezone-aware datetime in the offset it was recorded with

    Example
    -------
    >>> parse_timestamp("2025-01-05T06:30:00-05:00").hour
    6
    """
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt


def parse_utc_iso8601(value: datetime | str) -> datetime:
    """Parse an ISO-8601 timestamp and convert it to UTC."""
    return parse_timestamp(value).astimezone(timezone.utc)


def to_civil_date(value: datetime | str, timezone_name: str = DEFAULT_CIVIL_TIMEZONE) -> date:
    """Convert a timestamp to the calendar date observed in a civil timezone.

    DST is handled by the IANA zone rules, so a commit at 03:30 UTC lands on the
    previous civil day in both EST (-05:00) and EDT (-04:00).

    Parameters
    ----------
    value
        Timestamp (string or datetime)
    timezone_name
        IANA timezone name

    Returns
    -------
    date
        Civil date in the target timezone
    """
    tz = get_timezone(timezone_name)
    return parse_utc_iso8601(value).astimezone(tz).date()


def to_civil_datetime(
    value: datetime | str | int | float,
    timezone_name: str = DEFAULT_CIVIL_TIMEZONE,
) -> datetime:
    """Convert unix seconds or an ISO-8601 timestamp to civil wall-clock time.

    Parameters
    ----------
    value
        Unix seconds (number or digit string), ISO-8601 string or datetime
    timezone_name
        IANA timezone name

    Returns
    -------
    datetime
        Timezone-aware datetime in the civil timezone
    """
    tz = get_timezone(timezone_name)
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().isdigit()):
        return datetime.fromtimestamp(float(value), tz)
    return parse_utc_iso8601(value).astimezone(tz)


def day_abbreviation(value: date) -> str:
    """Three-letter English weekday name (``Mon`` .. ``Sun``)."""
    return ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")[value.weekday()]
