"""Idempotent fetch → transform → check → write workflow.

Every item of a source run moves through
``FETCHING → TRANSFORMING → CHECKING → WRITING → DONE`` (or ``ERRORED``).
The existence check by natural key runs before every create, so re-running a
window never duplicates records. Writes within a run are strictly sequential
and each external call is followed by the service's fixed backoff delay.

Failure semantics:
- fetch failure: recorded as ``fetch_error``; the source contributes nothing
- per-item failure: recorded in ``errors`` with its natural key; the run continues
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping

from ..observability.loguru_config import get_logger
from .filters import and_, property_equals, window_filter

if TYPE_CHECKING:
    from ..integrations.base import BaseIntegration, TransformedItem
    from ..integrations.clients import FetchClient
    from ..rollups.time_windows import TimeWindow
    from .calendar_events import CalendarClient, CalendarEventPayload
    from .destination import DestinationStore, Record
    from .filters import Filter

__all__ = [
    "DESTINATION_SERVICE",
    "CALENDAR_SERVICE",
    "CalendarSyncResult",
    "ItemState",
    "RecapWrite",
    "SyncOrchestrator",
    "SyncRecord",
    "SyncRunResult",
    "SyncRunState",
    "SyncStatus",
]

logger = get_logger("sync")

# Backoff service names for the store and calendar boundaries
DESTINATION_SERVICE = "notion"
CALENDAR_SERVICE = "googleCalendar"

Sleep = Callable[[float], Awaitable[Any]]


class SyncStatus(str, Enum):
    """Outcome of one item."""

    CREATED = "created"
    SKIPPED = "skipped"
    ERRORED = "errored"


class ItemState(str, Enum):
    """Lifecycle of one item within a run."""

    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    CHECKING = "checking"
    WRITING = "writing"
    DONE = "done"
    ERRORED = "errored"


@dataclass
class SyncRecord:
    """Outcome of one source item.

    Attributes
    ----------
    external_id : str
        Natural key (or best-effort raw id when transformation failed)
    status : SyncStatus
        Created, skipped or errored
    destination_page_id : str | None
        Destination record created or found
    calendar_event_id : str | None
        Calendar event created for the record during export
    error : str | None
        Failure message for errored items
    """

    external_id: str
    status: SyncStatus
    destination_page_id: str | None = None
    calendar_event_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "status": self.status.value,
            "destination_page_id": self.destination_page_id,
            "calendar_event_id": self.calendar_event_id,
            "error": self.error,
        }


@dataclass
class SyncRunResult:
    """Result of syncing one source for one window."""

    source_id: str
    created: list[SyncRecord] = field(default_factory=list)
    skipped: list[SyncRecord] = field(default_factory=list)
    errors: list[SyncRecord] = field(default_factory=list)
    fetch_error: str | None = None
    dry_run: bool = False
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """True unless the fetch failed; per-item errors never fail a run."""
        return self.fetch_error is None

    @property
    def total(self) -> int:
        return len(self.created) + len(self.skipped) + len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "created": [record.to_dict() for record in self.created],
            "skipped": [record.to_dict() for record in self.skipped],
            "errors": [record.to_dict() for record in self.errors],
            "fetch_error": self.fetch_error,
            "dry_run": self.dry_run,
            "duration_ms": self.duration_ms,
        }


@dataclass
class SyncRunState:
    """Run-scoped queue of pending items and their outcomes.

    Owned by a single run; items are taken strictly in order.
    """

    source_id: str
    pending: deque = field(default_factory=deque)
    states: dict[str, ItemState] = field(default_factory=dict)
    result: SyncRunResult | None = None
    external_calls: int = 0

    def __post_init__(self) -> None:
        if self.result is None:
            self.result = SyncRunResult(source_id=self.source_id)

    def enqueue(self, items: list[Any]) -> None:
        self.pending.extend(enumerate(items, start=len(self.pending)))

    def next_item(self) -> tuple[int, Any] | None:
        return self.pending.popleft() if self.pending else None

    def advance(self, key: str, state: ItemState) -> None:
        self.states[key] = state

    def record(self, outcome: SyncRecord) -> None:
        assert self.result is not None
        self.advance(outcome.external_id, ItemState.ERRORED if outcome.status is SyncStatus.ERRORED else ItemState.DONE)
        if outcome.status is SyncStatus.CREATED:
            self.result.created.append(outcome)
        elif outcome.status is SyncStatus.SKIPPED:
            self.result.skipped.append(outcome)
        else:
            self.result.errors.append(outcome)


@dataclass
class CalendarSyncResult:
    """Result of exporting unsynced records to the calendar."""

    source_id: str
    created: list[SyncRecord] = field(default_factory=list)
    errors: list[SyncRecord] = field(default_factory=list)
    query_error: str | None = None

    @property
    def success(self) -> bool:
        return self.query_error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "created": [record.to_dict() for record in self.created],
            "errors": [record.to_dict() for record in self.errors],
            "query_error": self.query_error,
        }


@dataclass
class RecapWrite:
    """Outcome of a recap upsert."""

    record: Record | None
    created: bool
    dry_run: bool = False


class SyncOrchestrator:
    """Run idempotent syncs against a destination store.

    Parameters
    ----------
    store
        Destination store
    backoff_seconds
        Fixed delay after each external call, per service name
    sleep
        Awaitable sleep (injectable for tests)
    dry_run
        Check existence but never write

    Example
    -------
    >>> orchestrator = SyncOrchestrator(store, backoff_seconds={"strava": 0.2, "notion": 0.35})
    >>> result = await orchestrator.run(StravaIntegration(), client, "workouts-db", window)
    >>> len(result.created), len(result.skipped)
    (3, 0)
    """

    def __init__(
        self,
        store: DestinationStore,
        *,
        backoff_seconds: Mapping[str, float] | None = None,
        sleep: Sleep = asyncio.sleep,
        dry_run: bool = False,
    ) -> None:
        self.store = store
        self.backoff_seconds = dict(backoff_seconds or {})
        self.sleep = sleep
        self.dry_run = dry_run

    async def _pause(self, service: str, state: SyncRunState | None = None) -> None:
        if state is not None:
            state.external_calls += 1
        delay = self.backoff_seconds.get(service, 0.0)
        if delay > 0:
            await self.sleep(delay)

    async def run(
        self,
        integration: BaseIntegration,
        client: FetchClient,
        collection_id: str,
        window: TimeWindow,
        *,
        rate_limit_service: str | None = None,
    ) -> SyncRunResult:
        """Sync one source's items for a window.

        Parameters
        ----------
        integration
            Transformer for the source
        client
            Fetch client for the source API
        collection_id
            Destination collection
        window
            Inclusive date window to fetch
        rate_limit_service
            Backoff service for fetch calls (defaults to the integration id)

        Returns
        -------
        SyncRunResult
            Created, skipped and errored items; ``fetch_error`` when the fetch failed
        """
        start = time.time()
        state = SyncRunState(source_id=integration.id)
        assert state.result is not None
        state.result.dry_run = self.dry_run
        fetch_service = rate_limit_service or integration.id

        # FETCHING
        try:
            items = await client.fetch(window)
        except Exception as exc:
            state.result.fetch_error = f"{type(exc).__name__}: {exc}"
            state.result.duration_ms = (time.time() - start) * 1000
            logger.error("Fetch failed", source=integration.id, error=str(exc))
            return state.result
        finally:
            await self._pause(fetch_service, state)

        logger.info(
            "Fetched items",
            source=integration.id,
            items=len(items),
            window_start=window.start.isoformat(),
            window_end=window.end.isoformat(),
        )

        state.enqueue(list(items))
        while (entry := state.next_item()) is not None:
            index, raw = entry
            state.record(await self._sync_item(integration, collection_id, index, raw, state))

        state.result.duration_ms = (time.time() - start) * 1000
        logger.info(
            "Source sync finished",
            source=integration.id,
            created=len(state.result.created),
            skipped=len(state.result.skipped),
            errors=len(state.result.errors),
            dry_run=self.dry_run,
        )
        return state.result

    async def _sync_item(
        self,
        integration: BaseIntegration,
        collection_id: str,
        index: int,
        raw: Any,
        state: SyncRunState,
    ) -> SyncRecord:
        # TRANSFORMING
        external_id = integration.raw_id(raw, index) if isinstance(raw, Mapping) else f"{integration.id}-item-{index}"
        state.advance(external_id, ItemState.TRANSFORMING)
        try:
            if not isinstance(raw, Mapping):
                raise TypeError(f"Raw item must be a mapping, got {type(raw).__name__}")
            item: TransformedItem = integration.transform(raw)
        except Exception as exc:
            logger.warning("Transform failed", source=integration.id, item=external_id, error=str(exc))
            return SyncRecord(external_id=external_id, status=SyncStatus.ERRORED, error=f"transform: {exc}")

        key = item.natural_key

        # CHECKING
        state.advance(key, ItemState.CHECKING)
        try:
            existing = await self.store.query(collection_id, property_equals(integration.natural_key_property, key))
        except Exception as exc:
            logger.warning("Existence check failed", source=integration.id, item=key, error=str(exc))
            return SyncRecord(external_id=key, status=SyncStatus.ERRORED, error=f"check: {exc}")
        finally:
            await self._pause(DESTINATION_SERVICE, state)

        if existing:
            logger.debug("Already synced", source=integration.id, item=key)
            return SyncRecord(external_id=key, status=SyncStatus.SKIPPED, destination_page_id=existing[0].id)

        if self.dry_run:
            logger.info("Dry run: would create", source=integration.id, item=key)
            return SyncRecord(external_id=key, status=SyncStatus.CREATED)

        # WRITING
        state.advance(key, ItemState.WRITING)
        try:
            record = await self.store.create(collection_id, item.properties)
        except Exception as exc:
            logger.warning("Create failed", source=integration.id, item=key, error=str(exc))
            return SyncRecord(external_id=key, status=SyncStatus.ERRORED, error=f"create: {exc}")
        finally:
            await self._pause(DESTINATION_SERVICE, state)

        logger.debug("Created record", source=integration.id, item=key, record_id=record.id)
        return SyncRecord(external_id=key, status=SyncStatus.CREATED, destination_page_id=record.id)

    async def sync_to_calendar(
        self,
        integration: BaseIntegration,
        collection_id: str,
        calendar_id: str | Callable[[Record], str],
        calendar: CalendarClient,
        *,
        window: TimeWindow | None = None,
        to_payload: Callable[[Record], CalendarEventPayload] | None = None,
        synced_property: str | None = None,
    ) -> CalendarSyncResult:
        """Export records not yet on the calendar, then mark them synced.

        Parameters
        ----------
        integration
            Integration owning the records (payload and date property)
        collection_id
            Destination collection
        calendar_id
            Target calendar, or a callable choosing it per record
        calendar
            Calendar client
        window
            Only records dated within this window (all when None)
        to_payload
            Payload builder (defaults to ``integration.calendar_payload``)
        synced_property
            Checkbox marking exported records

        Returns
        -------
        CalendarSyncResult
            Exported records and per-record failures
        """
        synced_property = synced_property or integration.calendar_created_property
        build_payload = to_payload or integration.calendar_payload
        result = CalendarSyncResult(source_id=integration.id)

        conditions: list[Filter] = [property_equals(synced_property, False)]
        if window is not None:
            conditions.append(window_filter(integration.date_property, window.start, window.end))

        try:
            records = await self.store.query(collection_id, and_(*conditions))
        except Exception as exc:
            result.query_error = f"{type(exc).__name__}: {exc}"
            logger.error("Unsynced record query failed", source=integration.id, error=str(exc))
            return result
        finally:
            await self._pause(DESTINATION_SERVICE)

        for record in records:
            key = str(record.properties.get(integration.natural_key_property) or record.id)
            try:
                target = calendar_id(record) if callable(calendar_id) else calendar_id
                payload = build_payload(record)
            except Exception as exc:
                logger.warning("Calendar payload failed", source=integration.id, item=key, error=str(exc))
                result.errors.append(SyncRecord(external_id=key, status=SyncStatus.ERRORED, error=f"payload: {exc}"))
                continue

            if self.dry_run:
                logger.info("Dry run: would create calendar event", source=integration.id, item=key)
                result.created.append(SyncRecord(external_id=key, status=SyncStatus.CREATED))
                continue

            try:
                event = await calendar.create_event(target, payload)
            except Exception as exc:
                logger.warning("Calendar create failed", source=integration.id, item=key, error=str(exc))
                result.errors.append(SyncRecord(external_id=key, status=SyncStatus.ERRORED, error=f"calendar: {exc}"))
                continue
            finally:
                await self._pause(CALENDAR_SERVICE)

            try:
                await self.store.update(record.id, {synced_property: True})
            except Exception as exc:
                # Event exists while the record stays unsynced
                logger.warning(
                    "Mark synced failed", source=integration.id, item=key, event_id=event.id, error=str(exc)
                )
                result.errors.append(
                    SyncRecord(
                        external_id=key,
                        status=SyncStatus.ERRORED,
                        destination_page_id=record.id,
                        calendar_event_id=event.id,
                        error=f"mark synced: {exc} (calendar event {event.id} already created)",
                    )
                )
                continue
            finally:
                await self._pause(DESTINATION_SERVICE)

            result.created.append(
                SyncRecord(
                    external_id=key,
                    status=SyncStatus.CREATED,
                    destination_page_id=record.id,
                    calendar_event_id=event.id,
                )
            )

        logger.info(
            "Calendar sync finished",
            source=integration.id,
            created=len(result.created),
            errors=len(result.errors),
        )
        return result

    async def upsert_recap(
        self,
        collection_id: str,
        key_filter: Filter,
        properties: Mapping[str, Any],
    ) -> RecapWrite:
        """Update the recap record matching ``key_filter``, or create it.

        Raises
        ------
        Exception
            Store errors propagate; a recap write is all-or-nothing
        """
        existing = await self.store.query(collection_id, key_filter)
        await self._pause(DESTINATION_SERVICE)

        if self.dry_run:
            logger.info("Dry run: would write recap", collection=collection_id, update=bool(existing))
            return RecapWrite(record=existing[0] if existing else None, created=not existing, dry_run=True)

        if existing:
            if len(existing) > 1:
                logger.warning("Multiple recap records match, updating the first", collection=collection_id)
            record = await self.store.update(existing[0].id, properties)
            created = False
        else:
            record = await self.store.create(collection_id, properties)
            created = True
        await self._pause(DESTINATION_SERVICE)

        logger.info("Recap written", collection=collection_id, record_id=record.id, created=created)
        return RecapWrite(record=record, created=created)
