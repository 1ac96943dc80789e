"""Tests for detail blocks, detail lists and truncation."""

from __future__ import annotations

from datetime import date, datetime

from tally.core.models import SourceEvent
from tally.rollups.blocks import (
    MAX_TEXT_LENGTH,
    TRUNCATION_MARKER,
    format_detail_blocks,
    format_details,
    format_time_range,
    truncate_text,
)


def _timed(label, start, end):
    return SourceEvent(category="workout", occurred_on=start.date(), label=label, start_time=start, end_time=end)


def test_time_range_shared_suffix():
    assert format_time_range(datetime(2024, 3, 4, 20), datetime(2024, 3, 4, 21)) == "8:00-9:00pm"


def test_time_range_different_suffixes():
    assert format_time_range(datetime(2024, 3, 4, 11), datetime(2024, 3, 4, 13, 30)) == "11:00am-1:30pm"


def test_time_range_midnight_and_noon():
    assert format_time_range(datetime(2024, 3, 4, 0, 15), datetime(2024, 3, 4, 12, 0)) == "12:15am-12:00pm"


def test_detail_blocks_order_all_day_first_then_by_start():
    events = [
        _timed("Lifting", datetime(2024, 3, 4, 20), datetime(2024, 3, 4, 21)),
        _timed("Yoga", datetime(2024, 3, 5, 7), datetime(2024, 3, 5, 8)),
        SourceEvent(category="workout", occurred_on=date(2024, 3, 4), label="Run", is_all_day=True),
        _timed("Swim", datetime(2024, 3, 4, 6), datetime(2024, 3, 4, 7)),
    ]

    assert format_detail_blocks(events) == (
        "Mon:\nRun (all day)\nSwim (6:00-7:00am)\nLifting (8:00-9:00pm)\n\nTue:\nYoga (7:00-8:00am)"
    )


def test_detail_blocks_untimed_event_has_bare_label():
    events = [SourceEvent(category="reading", occurred_on=date(2024, 3, 6), label="Dune")]
    assert format_detail_blocks(events) == "Wed:\nDune"


def test_detail_blocks_empty():
    assert format_detail_blocks([]) == ""


def test_details_list():
    events = [
        SourceEvent(category="tasks", occurred_on=date(2024, 3, 5), label="Taxes", is_all_day=True),
        SourceEvent(category="tasks", occurred_on=date(2024, 3, 3), label="Groceries", is_all_day=True),
    ]
    assert format_details(events) == "Groceries (Sun), Taxes (Tue)"


def test_truncate_short_text_unchanged():
    assert truncate_text("short") == "short"
    assert truncate_text("x" * MAX_TEXT_LENGTH) == "x" * MAX_TEXT_LENGTH


def test_truncate_long_text():
    text = truncate_text("a" * 2500)

    assert text.endswith(TRUNCATION_MARKER)
    assert len(text) <= MAX_TEXT_LENGTH
    assert text.startswith("a" * (MAX_TEXT_LENGTH - 20))
