"""Sync Pipeline - thin orchestration fanning out source syncs.

Resolves each source's integration, destination collection and fetch client,
then runs the per-source orchestrator sequences concurrently. Each source's
writes stay strictly sequential; only independent sources overlap.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Mapping

from ..config.settings import ConfigError
from ..integrations import create_integration
from ..integrations.clients import JsonFileFetchClient
from ..observability.loguru_config import get_logger, timing_context
from ..registry.categorizer import Categorizer
from ..sync.orchestrator import CalendarSyncResult, SyncOrchestrator, SyncRunResult

if TYPE_CHECKING:
    from ..config.settings import Settings
    from ..integrations.base import BaseIntegration
    from ..integrations.clients import FetchClient
    from ..registry.sources import SourceRegistry
    from ..rollups.time_windows import TimeWindow
    from ..sync.calendar_events import CalendarClient
    from ..sync.destination import DestinationStore, Record

__all__ = [
    "CalendarPipelineResult",
    "SyncPipeline",
    "SyncPipelineConfig",
    "SyncPipelineResult",
    "create_sync_pipeline",
]


@dataclass
class SyncPipelineConfig:
    """Configuration for sync pipeline."""

    log_path: Path | None = None
    dry_run: bool = False


@dataclass
class SyncPipelineResult:
    """Result of a sync execution across sources."""

    success: bool
    results: dict[str, SyncRunResult]
    duration_ms: float
    trace_id: str
    errors: list[str] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(len(result.created) for result in self.results.values())

    @property
    def skipped(self) -> int:
        return sum(len(result.skipped) for result in self.results.values())

    @property
    def failed_items(self) -> int:
        return sum(len(result.errors) for result in self.results.values())

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "success": self.success,
            "results": {key: value.to_dict() for key, value in self.results.items()},
            "duration_ms": self.duration_ms,
            "trace_id": self.trace_id,
            "errors": self.errors,
        }


@dataclass
class CalendarPipelineResult:
    """Result of exporting synced records to calendars."""

    success: bool
    results: dict[str, CalendarSyncResult]
    duration_ms: float
    trace_id: str
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "success": self.success,
            "results": {key: value.to_dict() for key, value in self.results.items()},
            "duration_ms": self.duration_ms,
            "trace_id": self.trace_id,
            "errors": self.errors,
        }


@dataclass
class _SourcePlan:
    integration: BaseIntegration
    collection_id: str
    client: FetchClient
    rate_limit_service: str


class SyncPipeline:
    """Thin orchestration pipeline for source synchronization.

    Responsibilities:
    - Resolve and validate every source before any network call
    - Fan out independent sources with ``asyncio.gather``
    - Emit structured JSONL logs with trace IDs

    Example:
        >>> pipeline = create_sync_pipeline(settings=settings, registry=registry, store=store)
        >>> result = asyncio.run(pipeline.run(["oura", "strava"], window))
        >>> result.created
        12
    """

    def __init__(
        self,
        config: SyncPipelineConfig,
        *,
        settings: Settings,
        registry: SourceRegistry,
        store: DestinationStore,
        fetch_clients: Mapping[str, FetchClient] | None = None,
        calendar: CalendarClient | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        logger: Any = None,
    ) -> None:
        """Initialize sync pipeline.

        Parameters
        ----------
        config
            Pipeline configuration
        settings
            Runtime settings (routing targets, backoff, timezone)
        registry
            Source registry
        store
            Destination store
        fetch_clients
            Fetch client per source (default: JSON exports in the data dir)
        calendar
            Calendar client for calendar exports
        sleep
            Awaitable sleep used for backoff
        logger
            Optional structured logger
        """
        self.config = config
        self.settings = settings
        self.registry = registry
        self.store = store
        self.fetch_clients = dict(fetch_clients or {})
        self.calendar = calendar
        self.logger = logger or get_logger("pipeline")
        self.categorizer = Categorizer(registry)
        self.orchestrator = SyncOrchestrator(
            store,
            backoff_seconds={service: settings.backoff_seconds(service) for service in settings.backoff_ms},
            sleep=sleep,
            dry_run=config.dry_run,
        )

    def _plan(self, source_id: str) -> _SourcePlan:
        """Resolve a source; raises ConfigError for anything unset or unknown."""
        try:
            definition = self.registry.integration(source_id)
            integration = create_integration(
                source_id,
                civil_timezone=self.settings.timezone,
                wake_threshold_hour=self.settings.wake_threshold_hour,
            )
        except KeyError as exc:
            raise ConfigError(f"Unknown source '{source_id}': {exc.args[0]}") from exc

        collection_id = self.settings.require(definition.database_env_var, f"{definition.name} database")

        client = self.fetch_clients.get(source_id)
        if client is None:
            client = JsonFileFetchClient(self.settings.data_dir / f"{source_id}.json", date_of=integration.raw_date)

        return _SourcePlan(
            integration=integration,
            collection_id=collection_id,
            client=client,
            rate_limit_service=definition.rate_limit_service or source_id,
        )

    async def run(self, sources: list[str], window: TimeWindow) -> SyncPipelineResult:
        """Execute sync pipeline.

        Parameters
        ----------
        sources
            Source ids to sync
        window
            Inclusive date window

        Returns
        -------
        SyncPipelineResult
            Per-source results; ``success`` is False when any fetch failed

        Raises
        ------
        ConfigError
            If any source is unknown or its collection is not configured
        """
        trace_id = str(uuid.uuid4())
        start_time = time.time()

        plans = {source_id: self._plan(source_id) for source_id in dict.fromkeys(sources)}

        self._log_event(
            "pipeline_started",
            {
                "trace_id": trace_id,
                "sources": list(plans),
                "window_start": window.start.isoformat(),
                "window_end": window.end.isoformat(),
                "dry_run": self.config.dry_run,
            },
        )

        outcomes = await asyncio.gather(*(self._sync_source(plan, window, trace_id) for plan in plans.values()))
        results = dict(zip(plans, outcomes))

        errors = [f"{source_id}: {result.fetch_error}" for source_id, result in results.items() if result.fetch_error]
        duration_ms = (time.time() - start_time) * 1000

        result = SyncPipelineResult(
            success=not errors,
            results=results,
            duration_ms=duration_ms,
            trace_id=trace_id,
            errors=errors,
        )

        self._log_event(
            "pipeline_completed",
            {
                "trace_id": trace_id,
                "created": result.created,
                "skipped": result.skipped,
                "failed_items": result.failed_items,
                "duration_ms": duration_ms,
                "outcome": "success" if result.success else "partial_failure",
            },
        )

        return result

    async def _sync_source(self, plan: _SourcePlan, window: TimeWindow, trace_id: str) -> SyncRunResult:
        """Sync one source; unexpected failures become a fetch error on its result."""
        start_time = time.time()
        source_id = plan.integration.id

        with timing_context("sync_source", component="pipeline", trace_id=trace_id, source=source_id) as ctx:
            try:
                result = await self.orchestrator.run(
                    plan.integration,
                    plan.client,
                    plan.collection_id,
                    window,
                    rate_limit_service=plan.rate_limit_service,
                )
            except Exception as exc:
                result = SyncRunResult(source_id=source_id, fetch_error=f"{type(exc).__name__}: {exc}")
            ctx["created"] = len(result.created)

        self._log_event(
            "source_synced" if result.success else "source_sync_failed",
            {
                "trace_id": trace_id,
                "source": source_id,
                "created": len(result.created),
                "skipped": len(result.skipped),
                "errors": [record.to_dict() for record in result.errors],
                "duration_ms": (time.time() - start_time) * 1000,
                "outcome": "success" if result.success else "failure",
                **({"error": result.fetch_error} if result.fetch_error else {}),
            },
        )
        return result

    async def run_calendar(self, sources: list[str], window: TimeWindow | None = None) -> CalendarPipelineResult:
        """Export unsynced records of each source to its routed calendar.

        Raises
        ------
        ConfigError
            If no calendar client is configured, or a source's collection or
            calendar routing targets are unset
        """
        if self.calendar is None:
            raise ConfigError("No calendar client configured")

        trace_id = str(uuid.uuid4())
        start_time = time.time()

        plans = {source_id: self._plan(source_id) for source_id in dict.fromkeys(sources)}
        for source_id in plans:
            for bucket_id in self.registry.integration(source_id).calendar_routing:
                self.registry.resolve_target(self.settings.env, bucket_id)

        self._log_event("calendar_sync_started", {"trace_id": trace_id, "sources": list(plans)})

        calendar = self.calendar
        outcomes = await asyncio.gather(
            *(
                self.orchestrator.sync_to_calendar(
                    plan.integration,
                    plan.collection_id,
                    self._calendar_router(plan.integration.id),
                    calendar,
                    window=window,
                    synced_property=self.settings.synced_property,
                )
                for plan in plans.values()
            )
        )
        results = dict(zip(plans, outcomes))

        errors = [f"{source_id}: {result.query_error}" for source_id, result in results.items() if result.query_error]
        duration_ms = (time.time() - start_time) * 1000

        self._log_event(
            "calendar_sync_completed",
            {
                "trace_id": trace_id,
                "created": sum(len(result.created) for result in results.values()),
                "failed_items": sum(len(result.errors) for result in results.values()),
                "duration_ms": duration_ms,
                "outcome": "success" if not errors else "partial_failure",
            },
        )

        return CalendarPipelineResult(
            success=not errors,
            results=results,
            duration_ms=duration_ms,
            trace_id=trace_id,
            errors=errors,
        )

    def _calendar_router(self, source_id: str) -> Callable[[Record], str]:
        def route(record: Record) -> str:
            bucket_id = self.categorizer.target_bucket(source_id, record.properties)
            return self.registry.resolve_target(self.settings.env, bucket_id)

        return route

    def _log_event(self, event_type: str, data: dict[str, Any]) -> None:
        """Emit structured JSONL log entry.

        Parameters
        ----------
        event_type
            Type of log event
        data
            Event data (must be JSON-serializable)
        """
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "component": "pipeline",
            "pipeline": "sync",
            "event_type": event_type,
            **data,
        }

        if self.config.log_path:
            self.config.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")

        if data.get("outcome") == "failure":
            self.logger.error(f"{event_type}: {json.dumps(data, ensure_ascii=False)}")
        else:
            self.logger.info(f"{event_type}: {json.dumps(data, ensure_ascii=False)}")


def create_sync_pipeline(
    *,
    settings: Settings,
    registry: SourceRegistry,
    store: DestinationStore,
    fetch_clients: Mapping[str, FetchClient] | None = None,
    calendar: CalendarClient | None = None,
    sleep: Callable[[float], Any] = asyncio.sleep,
    logger: Any = None,
    log_path: Path | str | None = None,
    **config_kwargs: Any,
) -> SyncPipeline:
    """Factory function to create sync pipeline.

    Parameters
    ----------
    settings
        Runtime settings
    registry
        Source registry
    store
        Destination store
    fetch_clients
        Fetch client per source
    calendar
        Calendar client
    sleep
        Awaitable sleep used for backoff
    logger
        Optional logger instance
    log_path
        Optional path for JSONL logs
    **config_kwargs
        Additional configuration options

    Returns
    -------
    SyncPipeline
        Configured pipeline instance

    Example:
        >>> pipeline = create_sync_pipeline(
        ...     settings=settings,
        ...     registry=load_registry(),
        ...     store=JsonFileDestinationStore("data/store.json"),
        ...     dry_run=True,
        ...     log_path=Path("logs/pipelines/sync.jsonl"),
        ... )
    """
    if log_path:
        config_kwargs["log_path"] = Path(log_path)

    config = SyncPipelineConfig(**config_kwargs)

    return SyncPipeline(
        config,
        settings=settings,
        registry=registry,
        store=store,
        fetch_clients=fetch_clients,
        calendar=calendar,
        sleep=sleep,
        logger=logger,
    )
