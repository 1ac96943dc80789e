"""Sunday-anchored week and month window arithmetic.

Weeks are closed, inclusive, 7-day intervals running Sunday to Saturday.
Week 1 of a year is the week containing January 1, so its Sunday may fall in
the previous year. ISO-8601 week numbering is never used.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Protocol

from ..core.time import parse_calendar_date
from ..observability.loguru_config import get_logger

__all__ = [
    "MAX_WEEK_NUMBER",
    "TimeWindow",
    "WeekCatalog",
    "WeekRangeError",
    "all_day_bounds",
    "current_week",
    "format_week_display",
    "last_week",
    "month_to_weeks",
    "month_to_weeks_local",
    "month_window",
    "sunday_on_or_before",
    "week_number_of",
    "week_one_sunday",
    "week_window",
    "weeks_from_date_ranges",
]

MAX_WEEK_NUMBER = 53

logger = get_logger("rollups")


class WeekRangeError(ValueError):
    """Raised when a week number falls outside ``[1, 53]``."""


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive date window.

    Attributes
    ----------
    start : date
        First day (inclusive)
    end : date
        Last day (inclusive)
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    def contains(self, day: date) -> bool:
        """Check if a date falls within the window (both ends inclusive)."""
        return self.start <= day <= self.end

    def days(self) -> list[date]:
        """All dates in the window, in order."""
        span = (self.end - self.start).days
        return [self.start + timedelta(days=offset) for offset in range(span + 1)]

    @property
    def length_days(self) -> int:
        return (self.end - self.start).days + 1

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


class WeekCatalog(Protocol):
    """Persisted month → weeks relation (source of truth for month views)."""

    async def weeks_for_month(self, month: int, year: int) -> list[TimeWindow]:
        ...


def sunday_on_or_before(day: date) -> date:
    """Get the Sunday that starts the week containing ``day``.

    Parameters
    ----------
    day
        Any date

    Returns
    -------
    date
        ``day`` itself when it is a Sunday, otherwise the previous Sunday
    """
    # weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_one_sunday(year: int) -> date:
    """Sunday on or before January 1 of ``year``."""
    return sunday_on_or_before(date(year, 1, 1))


def week_window(week_number: int, year: int) -> TimeWindow:
    """Compute the Sunday-Saturday window for a week number.

    Parameters
    ----------
    week_number
        Week number in ``[1, 53]``
    year
        Context year (week 1 contains January 1 of this year)

    Returns
    -------
    TimeWindow
        Inclusive window spanning exactly 7 days

    Raises
    ------
    WeekRangeError
        If ``week_number`` is outside ``[1, 53]``

    Examples
    --------
    >>> week_window(1, 2025)
    TimeWindow(start=datetime.date(2024, 12, 29), end=datetime.date(2025, 1, 4))
    """
    if not isinstance(week_number, int) or isinstance(week_number, bool):
        raise WeekRangeError(f"Week number must be an integer, got {week_number!r}")
    if not 1 <= week_number <= MAX_WEEK_NUMBER:
        raise WeekRangeError(f"Week number must be between 1 and {MAX_WEEK_NUMBER}, got {week_number}")

    start = week_one_sunday(year) + timedelta(weeks=week_number - 1)
    return TimeWindow(start=start, end=start + timedelta(days=6))


def week_number_of(day: date, context_year: int, _fallback: bool = False) -> int:
    """Inverse of :func:`week_window`.

    Dates before week-1-Sunday of ``context_year`` belong to the last week of
    the prior year, so the computation is retried once with
    ``context_year - 1``.

    Parameters
    ----------
    day
        Date to locate
    context_year
        Year whose week numbering is used

    Returns
    -------
    int
        Week number, clamped to at most 53
    """
    offset_days = (day - week_one_sunday(context_year)).days
    week_number = offset_days // 7 + 1

    if week_number < 1:
        assert not _fallback, f"{day} falls more than one year before week 1 of {context_year + 1}"
        return week_number_of(day, context_year - 1, _fallback=True)

    return min(week_number, MAX_WEEK_NUMBER)


def month_window(month: int, year: int) -> TimeWindow:
    """First-to-last-day window for a calendar month."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")

    last_day = calendar.monthrange(year, month)[1]
    return TimeWindow(start=date(year, month, 1), end=date(year, month, last_day))


def month_to_weeks_local(month: int, year: int) -> list[TimeWindow]:
    """Every Sunday-Saturday week overlapping a calendar month.

    The first week may start in the previous month and the last week may end
    in the next one, matching the rows of a month view in a calendar UI.

    Known limitation: this is a pure local recomputation. Week records kept in
    the destination store were generated with timezone-shifted dates, and near
    a fall-back DST transition the persisted relation can disagree with this
    result by one week. :func:`month_to_weeks` therefore prefers the persisted
    relation and only falls back to this function.

    Parameters
    ----------
    month
        Month number (1-12)
    year
        Year

    Returns
    -------
    list[TimeWindow]
        Week windows in chronological order
    """
    window = month_window(month, year)

    weeks = []
    start = sunday_on_or_before(window.start)
    while start <= window.end:
        weeks.append(TimeWindow(start=start, end=start + timedelta(days=6)))
        start += timedelta(weeks=1)

    return weeks


def weeks_from_date_ranges(ranges: Iterable[Mapping[str, Any] | tuple[Any, Any]]) -> list[TimeWindow]:
    """Derive week windows from persisted ``{start, end}`` date ranges.

    Ranges without a start are ignored; a missing end means a single day.
    Result is sorted by start date with duplicates removed.
    """
    by_start: dict[date, TimeWindow] = {}

    for item in ranges:
        if isinstance(item, Mapping):
            raw_start, raw_end = item.get("start"), item.get("end")
        else:
            raw_start, raw_end = item

        if not raw_start:
            continue

        start = parse_calendar_date(raw_start)
        end = parse_calendar_date(raw_end) if raw_end else start
        by_start.setdefault(start, TimeWindow(start=start, end=end))

    return [by_start[key] for key in sorted(by_start)]


async def month_to_weeks(
    month: int,
    year: int,
    catalog: WeekCatalog | None = None,
) -> list[TimeWindow]:
    """Weeks of a month, preferring the persisted relation.

    Parameters
    ----------
    month
        Month number (1-12)
    year
        Year
    catalog
        Persisted month → weeks relation; when missing, empty or failing the
        local derivation is used

    Returns
    -------
    list[TimeWindow]
        Week windows in chronological order
    """
    if catalog is None:
        return month_to_weeks_local(month, year)

    try:
        weeks = await catalog.weeks_for_month(month, year)
    except Exception as exc:
        logger.warning(
            "Week relation lookup failed, falling back to local derivation",
            month=month,
            year=year,
            error=str(exc),
        )
        return month_to_weeks_local(month, year)

    if not weeks:
        logger.warning("No persisted weeks for month, using local derivation", month=month, year=year)
        return month_to_weeks_local(month, year)

    return sorted(weeks, key=lambda week: week.start)


def current_week(today: date) -> tuple[int, TimeWindow]:
    """Week number and window containing ``today``.

    The week is numbered in the year of its Saturday, so the week spanning a
    New Year is week 1 of the new year.
    """
    start = sunday_on_or_before(today)
    window = TimeWindow(start=start, end=start + timedelta(days=6))
    return week_number_of(window.start, window.end.year), window


def last_week(today: date) -> tuple[int, TimeWindow]:
    """Week number and window of the week before the one containing ``today``."""
    return current_week(today - timedelta(weeks=1))


def format_week_display(week_number: int, window: TimeWindow) -> str:
    """Human-readable week label.

    Example
    -------
    >>> format_week_display(12, week_window(12, 2024))
    'Week 12: Sun, Mar 17 -> Sat, Mar 23'
    """

    def _fmt(day: date) -> str:
        return f"{day:%a}, {day:%b} {day.day}"

    return f"Week {week_number}: {_fmt(window.start)} -> {_fmt(window.end)}"


def all_day_bounds(first_day: date, last_day: date | None = None) -> tuple[date, date]:
    """Start and exclusive end dates for an all-day calendar event.

    Calendar APIs expect the end of an all-day event to be the day after the
    last day it covers.
    """
    last_day = last_day or first_day
    if last_day < first_day:
        raise ValueError(f"All-day event ends ({last_day}) before it starts ({first_day})")

    return first_day, last_day + timedelta(days=1)

