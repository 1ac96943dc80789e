"""Time windows, per-source date rules and per-category aggregation."""

from .aggregator import (
    AggregateResult,
    Aggregator,
    CategoryAggregate,
    GroupAggregate,
    average_blood_pressure,
    average_weight,
    clamp_hours,
)
from .blocks import MAX_TEXT_LENGTH, TRUNCATION_MARKER, format_detail_blocks, format_details, truncate_text
from .source_dates import classify_wake, is_late_wake, night_of, source_date_offset
from .time_windows import (
    MAX_WEEK_NUMBER,
    TimeWindow,
    WeekCatalog,
    WeekRangeError,
    all_day_bounds,
    current_week,
    format_week_display,
    last_week,
    month_to_weeks,
    month_to_weeks_local,
    month_window,
    sunday_on_or_before,
    week_number_of,
    week_window,
    weeks_from_date_ranges,
)

__all__ = [
    # Time windows
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
    "week_window",
    "weeks_from_date_ranges",
    # Source dates
    "classify_wake",
    "is_late_wake",
    "night_of",
    "source_date_offset",
    # Text metrics
    "MAX_TEXT_LENGTH",
    "TRUNCATION_MARKER",
    "format_detail_blocks",
    "format_details",
    "truncate_text",
    # Aggregation
    "AggregateResult",
    "Aggregator",
    "CategoryAggregate",
    "GroupAggregate",
    "average_blood_pressure",
    "average_weight",
    "clamp_hours",
]
