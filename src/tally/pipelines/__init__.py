"""Thin orchestration pipelines: source sync, calendar export and recaps."""

from .event_sources import (
    CalendarEventSource,
    EventSource,
    EventSourceError,
    InMemoryEventSource,
    JsonFileEventSource,
)
from .recap_pipeline import (
    RecapPipeline,
    RecapPipelineConfig,
    RecapPipelineResult,
    create_recap_pipeline,
    month_recap_key,
    week_recap_key,
)
from .sync_pipeline import (
    CalendarPipelineResult,
    SyncPipeline,
    SyncPipelineConfig,
    SyncPipelineResult,
    create_sync_pipeline,
)

__all__ = [
    # Event sources
    "CalendarEventSource",
    "EventSource",
    "EventSourceError",
    "InMemoryEventSource",
    "JsonFileEventSource",
    # Recaps
    "RecapPipeline",
    "RecapPipelineConfig",
    "RecapPipelineResult",
    "create_recap_pipeline",
    "month_recap_key",
    "week_recap_key",
    # Sync
    "CalendarPipelineResult",
    "SyncPipeline",
    "SyncPipelineConfig",
    "SyncPipelineResult",
    "create_sync_pipeline",
]
