"""Human-readable text metrics: detail blocks, detail lists and truncation."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import TYPE_CHECKING

from ..core.time import day_abbreviation

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..core.models import SourceEvent

__all__ = [
    "MAX_TEXT_LENGTH",
    "TRUNCATION_MARKER",
    "format_clock",
    "format_details",
    "format_detail_blocks",
    "format_time_range",
    "truncate_text",
]

# Rich-text property limit of the destination store
MAX_TEXT_LENGTH = 2000
TRUNCATION_MARKER = "... (truncated)"
_TRUNCATION_HEADROOM = 20


def format_clock(value: datetime) -> tuple[str, str]:
    """Split a timestamp into a 12-hour clock string and its am/pm suffix.

    Example
    -------
    >>> format_clock(datetime(2024, 3, 4, 20, 0))
    ('8:00', 'pm')
    """
    hour = value.hour % 12 or 12
    suffix = "am" if value.hour < 12 else "pm"
    return f"{hour}:{value.minute:02d}", suffix


def format_time_range(start: datetime, end: datetime) -> str:
    """Compact time range, collapsing a shared am/pm suffix.

    Examples
    --------
    >>> format_time_range(datetime(2024, 3, 4, 20), datetime(2024, 3, 4, 21))
    '8:00-9:00pm'
    >>> format_time_range(datetime(2024, 3, 4, 11), datetime(2024, 3, 4, 13, 30))
    '11:00am-1:30pm'
    """
    start_clock, start_suffix = format_clock(start)
    end_clock, end_suffix = format_clock(end)

    if start_suffix == end_suffix:
        return f"{start_clock}-{end_clock}{end_suffix}"
    return f"{start_clock}{start_suffix}-{end_clock}{end_suffix}"


def _describe(event: SourceEvent) -> str:
    if event.is_all_day:
        return f"{event.label} (all day)"
    if event.start_time is not None and event.end_time is not None:
        return f"{event.label} ({format_time_range(event.start_time, event.end_time)})"
    return event.label


def _sort_key(event: SourceEvent) -> tuple[int, float]:
    # All-day events first, then timed events by start; untimed events last
    if event.is_all_day:
        return (0, 0.0)
    if event.start_time is not None:
        return (1, event.start_time.timestamp())
    return (2, 0.0)


def format_detail_blocks(events: Iterable[SourceEvent]) -> str:
    """Render events as per-day blocks.

    Format::

        Mon:
        Run (all day)
        Lifting (8:00-9:00pm)

        Tue:
        Yoga (7:00-8:00am)

    Days appear chronologically; within a day all-day events come first, then
    timed events by start time. Time ranges come only from the events'
    start/end timestamps.
    """
    by_day: dict = defaultdict(list)
    for event in events:
        by_day[event.occurred_on].append(event)

    blocks = []
    for day in sorted(by_day):
        lines = [f"{day_abbreviation(day)}:"]
        lines.extend(_describe(event) for event in sorted(by_day[day], key=_sort_key))
        blocks.append("\n".join(lines))

    return truncate_text("\n\n".join(blocks))


def format_details(events: Iterable[SourceEvent]) -> str:
    """Render events as ``"label (Ddd)"`` entries joined by ``", "``."""
    ordered = sorted(events, key=lambda event: (event.occurred_on, _sort_key(event)))
    return truncate_text(", ".join(f"{event.label} ({day_abbreviation(event.occurred_on)})" for event in ordered))


def truncate_text(text: str, limit: int = MAX_TEXT_LENGTH) -> str:
    """Truncate text exceeding the destination limit, with a visible marker.

    Parameters
    ----------
    text
        Text to fit
    limit
        Maximum length accepted by the destination

    Returns
    -------
    str
        ``text`` unchanged when it fits, otherwise its first
        ``limit - 20`` characters followed by ``"... (truncated)"``
    """
    if len(text) <= limit:
        return text
    return text[: limit - _TRUNCATION_HEADROOM] + TRUNCATION_MARKER
