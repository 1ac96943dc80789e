"""Month → weeks relation persisted in the destination weeks collection."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from ..rollups.time_windows import TimeWindow, month_window, weeks_from_date_ranges
from .filters import window_filter

if TYPE_CHECKING:
    from .destination import DestinationStore

__all__ = ["DEFAULT_DATE_RANGE_PROPERTY", "DestinationWeekCatalog"]

DEFAULT_DATE_RANGE_PROPERTY = "Date Range"


class DestinationWeekCatalog:
    """Week catalog backed by week records of the destination store.

    Each week record carries a date-range property ``{"start": ..., "end": ...}``.
    A week belongs to a month when its range overlaps the month.

    Parameters
    ----------
    store
        Destination store
    collection_id
        Weeks collection
    date_range_property
        Property holding the week's date range
    """

    def __init__(
        self,
        store: DestinationStore,
        collection_id: str,
        *,
        date_range_property: str = DEFAULT_DATE_RANGE_PROPERTY,
    ) -> None:
        self.store = store
        self.collection_id = collection_id
        self.date_range_property = date_range_property

    async def weeks_for_month(self, month: int, year: int) -> list[TimeWindow]:
        month_span = month_window(month, year)

        # Weeks starting up to 6 days before the month still overlap it
        records = await self.store.query(
            self.collection_id,
            window_filter(self.date_range_property, month_span.start - timedelta(days=6), month_span.end),
        )

        ranges: list[Any] = []
        for record in records:
            value = record.properties.get(self.date_range_property)
            if isinstance(value, dict):
                ranges.append(value)

        return [
            week
            for week in weeks_from_date_ranges(ranges)
            if week.end >= month_span.start and week.start <= month_span.end
        ]
