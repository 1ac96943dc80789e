"""Destination and calendar boundaries, query filters and the sync orchestrator."""

from .calendar_events import (
    CalendarClient,
    CalendarError,
    CalendarEvent,
    CalendarEventPayload,
    InMemoryCalendarClient,
    JsonFileCalendarClient,
    all_day_payload,
    timed_payload,
)
from .destination import (
    DestinationStore,
    InMemoryDestinationStore,
    JsonFileDestinationStore,
    Record,
    StoreError,
    create_destination_store,
)
from .filters import And, DateRange, Filter, PropertyEquals, and_, date_range, property_equals, window_filter
from .orchestrator import (
    CalendarSyncResult,
    ItemState,
    RecapWrite,
    SyncOrchestrator,
    SyncRecord,
    SyncRunResult,
    SyncRunState,
    SyncStatus,
)
from .week_catalog import DestinationWeekCatalog

__all__ = [
    # Filters
    "And",
    "DateRange",
    "Filter",
    "PropertyEquals",
    "and_",
    "date_range",
    "property_equals",
    "window_filter",
    # Destination store
    "DestinationStore",
    "InMemoryDestinationStore",
    "JsonFileDestinationStore",
    "Record",
    "StoreError",
    "create_destination_store",
    # Calendar
    "CalendarClient",
    "CalendarError",
    "CalendarEvent",
    "CalendarEventPayload",
    "InMemoryCalendarClient",
    "JsonFileCalendarClient",
    "all_day_payload",
    "timed_payload",
    # Orchestration
    "CalendarSyncResult",
    "DestinationWeekCatalog",
    "ItemState",
    "RecapWrite",
    "SyncOrchestrator",
    "SyncRecord",
    "SyncRunResult",
    "SyncRunState",
    "SyncStatus",
]
