"""Per-source reportable-date rules and wake-time classification.

Each source records time differently:
- sleep tracker days are keyed by the wake-up morning ("night of" = day before)
- code-host timestamps are UTC and are reported in a civil timezone
- fitness tracker activities carry a local ISO start
- body scale measurements are unix timestamps
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Callable

from ..core.time import DEFAULT_CIVIL_TIMEZONE, parse_calendar_date, parse_timestamp, to_civil_date, to_civil_datetime

__all__ = [
    "DEFAULT_WAKE_THRESHOLD_HOUR",
    "NORMAL_WAKE_CATEGORY",
    "SLEEP_IN_CATEGORY",
    "SOURCE_DATE_RULES",
    "classify_wake",
    "is_late_wake",
    "night_of",
    "source_date_offset",
]

DEFAULT_WAKE_THRESHOLD_HOUR = 7

NORMAL_WAKE_CATEGORY = "normalWakeUp"
SLEEP_IN_CATEGORY = "sleepIn"

_WALL_CLOCK = re.compile(r"T(\d{2}):(\d{2})")

DateRule = Callable[[Any, str], date]


def night_of(wake_date: date | str) -> date:
    """Civil date on which a sleep session began (wake-up date minus one day)."""
    return parse_calendar_date(wake_date) - timedelta(days=1)


def _sleep_rule(raw: Any, timezone_name: str) -> date:
    return night_of(raw)


def _civil_timestamp_rule(raw: Any, timezone_name: str) -> date:
    return to_civil_date(raw, timezone_name)


def _local_iso_rule(raw: Any, timezone_name: str) -> date:
    # Local start strings already carry the athlete's wall-clock date
    return parse_calendar_date(raw)


def _unix_rule(raw: Any, timezone_name: str) -> date:
    return to_civil_datetime(raw, timezone_name).date()


SOURCE_DATE_RULES: dict[str, DateRule] = {
    "oura": _sleep_rule,
    "sleepTracker": _sleep_rule,
    "github": _civil_timestamp_rule,
    "codeHost": _civil_timestamp_rule,
    "strava": _local_iso_rule,
    "fitnessTracker": _local_iso_rule,
    "withings": _unix_rule,
    "bodyScale": _unix_rule,
}


def source_date_offset(
    source_id: str,
    raw_date: Any,
    *,
    civil_timezone: str = DEFAULT_CIVIL_TIMEZONE,
) -> date:
    """Transform a source's raw date into the reportable calendar date.

    Parameters
    ----------
    source_id
        Source identifier (``oura``/``sleepTracker``, ``github``/``codeHost``,
        ``strava``, ``withings``; anything else keeps the raw date part)
    raw_date
        Raw value as reported by the source (ISO string, date, datetime or
        unix seconds)
    civil_timezone
        IANA timezone used for UTC and unix timestamps

    Returns
    -------
    date
        Reportable calendar date

    Examples
    --------
    >>> source_date_offset("sleepTracker", "2024-01-15")
    datetime.date(2024, 1, 14)
    >>> source_date_offset("github", "2024-03-10T03:30:00Z")
    datetime.date(2024, 3, 9)
    """
    rule = SOURCE_DATE_RULES.get(source_id)
    if rule is None:
        return parse_calendar_date(raw_date)
    return rule(raw_date, civil_timezone)


def _wall_clock(wake_timestamp: datetime | str) -> tuple[int, int]:
    if isinstance(wake_timestamp, datetime):
        return wake_timestamp.hour, wake_timestamp.minute

    match = _WALL_CLOCK.search(wake_timestamp)
    if match:
        return int(match.group(1)), int(match.group(2))

    parsed = parse_timestamp(wake_timestamp)
    return parsed.hour, parsed.minute


def is_late_wake(wake_timestamp: datetime | str, threshold_hour: float = DEFAULT_WAKE_THRESHOLD_HOUR) -> bool:
    """Check whether a wake-up happened after the threshold hour.

    The hour and minute are read in the timestamp's own offset; the value is
    never converted to the process's local time.

    Parameters
    ----------
    wake_timestamp
        Wake-up timestamp, e.g. ``"2025-01-05T07:30:00-05:00"``
    threshold_hour
        Wake-ups strictly after ``threshold_hour:00`` are late

    Returns
    -------
    bool
        True for a late wake-up

    Examples
    --------
    >>> is_late_wake("2025-01-05T06:30:00-05:00", 7)
    False
    >>> is_late_wake("2025-01-05T07:30:00-05:00", 7)
    True
    """
    hour, minute = _wall_clock(wake_timestamp)
    return hour * 60 + minute > threshold_hour * 60


def classify_wake(wake_timestamp: datetime | str, threshold_hour: float = DEFAULT_WAKE_THRESHOLD_HOUR) -> str:
    """Category key for a wake-up: ``sleepIn`` when late, ``normalWakeUp`` otherwise."""
    return SLEEP_IN_CATEGORY if is_late_wake(wake_timestamp, threshold_hour) else NORMAL_WAKE_CATEGORY
