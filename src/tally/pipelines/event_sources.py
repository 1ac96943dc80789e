"""Event sources feeding recaps: where each bucket's events are read from."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Mapping, Protocol, Sequence

from ..core.json_io import read_json
from ..core.models import SourceEvent
from ..integrations.tasks import TaskReader
from ..observability.loguru_config import get_logger

if TYPE_CHECKING:
    from ..registry.sources import SourceRegistry
    from ..rollups.time_windows import TimeWindow
    from ..sync.calendar_events import CalendarClient
    from ..sync.destination import DestinationStore

__all__ = [
    "CalendarEventSource",
    "EventSource",
    "EventSourceError",
    "InMemoryEventSource",
    "JsonFileEventSource",
]

logger = get_logger("pipeline")


class EventSourceError(Exception):
    """Raised when a bucket's events cannot be read."""


class EventSource(Protocol):
    """Async reader of one bucket's events within a window."""

    async def list_events(self, bucket_id: str, window: TimeWindow) -> list[SourceEvent]: ...


class InMemoryEventSource:
    """Events held in memory, keyed by bucket."""

    def __init__(self, events_by_bucket: Mapping[str, Sequence[SourceEvent]] | None = None) -> None:
        self.events_by_bucket = {bucket: list(events) for bucket, events in (events_by_bucket or {}).items()}

    async def list_events(self, bucket_id: str, window: TimeWindow) -> list[SourceEvent]:
        return [event for event in self.events_by_bucket.get(bucket_id, []) if window.contains(event.occurred_on)]


class JsonFileEventSource:
    """Read exported events from ``<events_dir>/<bucket>.json``.

    Each file holds a list of event mappings (see :meth:`SourceEvent.from_dict`).
    Missing files mean no events.
    """

    def __init__(self, events_dir: Path | str) -> None:
        self.events_dir = Path(events_dir)

    async def list_events(self, bucket_id: str, window: TimeWindow) -> list[SourceEvent]:
        path = self.events_dir / f"{bucket_id}.json"
        document = read_json(path, default=[])
        if not isinstance(document, list):
            raise EventSourceError(f"{path} must contain a list of events")

        events = []
        for item in document:
            try:
                event = SourceEvent.from_dict(item, category=item.get("category") or bucket_id)
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed event", bucket=bucket_id, error=str(exc))
                continue
            if window.contains(event.occurred_on):
                events.append(event)
        return events


class CalendarEventSource:
    """Read calendar buckets from their calendars and database buckets from the task database.

    Parameters
    ----------
    calendar
        Calendar client
    registry
        Source registry (bucket origin and routing env var)
    env
        Environment resolving calendar and database IDs
    store
        Destination store holding the task database
    task_reader
        Task record reader
    """

    def __init__(
        self,
        calendar: CalendarClient,
        registry: SourceRegistry,
        env: Mapping[str, str],
        *,
        store: DestinationStore | None = None,
        task_reader: TaskReader | None = None,
    ) -> None:
        self.calendar = calendar
        self.registry = registry
        self.env = env
        self.store = store
        self.task_reader = task_reader or TaskReader()

    async def list_events(self, bucket_id: str, window: TimeWindow) -> list[SourceEvent]:
        bucket = self.registry.bucket(bucket_id)
        target = self.registry.resolve_target(self.env, bucket_id)

        if bucket.origin == "database":
            if self.store is None:
                raise EventSourceError(f"Bucket '{bucket_id}' reads a database but no store is configured")
            by_bucket = await self.task_reader.read(self.store, target, window)
            return by_bucket.get(bucket_id, [])

        events = await self.calendar.list_events(target, window)
        return [event.to_source_event(bucket_id) for event in events]
