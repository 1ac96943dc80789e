"""Recap Pipeline - aggregate a week or month and upsert its recap record.

The pipeline reads each selected group's buckets from an event source,
aggregates them over the window and writes one recap record per window,
updating the existing record on re-runs.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from ..config.settings import ConfigError
from ..observability.loguru_config import get_logger, timing_context
from ..rollups.aggregator import Aggregator
from ..rollups.time_windows import TimeWindow, month_to_weeks, month_window, week_window
from ..sync.filters import property_equals
from ..sync.orchestrator import SyncOrchestrator

if TYPE_CHECKING:
    from ..config.settings import Settings
    from ..core.models import SourceEvent
    from ..registry.sources import SourceRegistry
    from ..rollups.time_windows import WeekCatalog
    from ..sync.destination import DestinationStore
    from .event_sources import EventSource

__all__ = [
    "RECAP_DATE_RANGE_PROPERTY",
    "RECAP_TITLE_PROPERTY",
    "RecapPipeline",
    "RecapPipelineConfig",
    "RecapPipelineResult",
    "create_recap_pipeline",
    "month_recap_key",
    "week_recap_key",
]

RECAP_TITLE_PROPERTY = "Name"
RECAP_DATE_RANGE_PROPERTY = "Date Range"


def week_recap_key(week_number: int, year: int) -> str:
    """Title identifying a weekly recap record, e.g. ``"Week 12, 2024"``."""
    return f"Week {week_number}, {year}"


def month_recap_key(month: int, year: int) -> str:
    """Title identifying a monthly recap record, e.g. ``"March 2024"``."""
    return f"{date(year, month, 1):%B} {year}"


@dataclass
class RecapPipelineConfig:
    """Configuration for recap pipeline."""

    log_path: Path | None = None
    dry_run: bool = False


@dataclass
class RecapPipelineResult:
    """Result of recap generation."""

    success: bool
    period: str  # week, month
    window_start: date
    window_end: date
    key: str
    record_id: str | None
    created: bool
    properties: dict[str, Any]
    duration_ms: float
    trace_id: str
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "success": self.success,
            "period": self.period,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "key": self.key,
            "record_id": self.record_id,
            "created": self.created,
            "properties": self.properties,
            "duration_ms": self.duration_ms,
            "trace_id": self.trace_id,
            "errors": self.errors,
        }


class RecapPipeline:
    """Thin orchestration pipeline for weekly and monthly recaps.

    Responsibilities:
    - Resolve the recap collection and selected groups before reading events
    - Read every bucket of the selected groups from the event source
    - Aggregate and upsert one recap record per window
    - Emit structured JSONL logs with trace IDs

    Example:
        >>> pipeline = create_recap_pipeline(
        ...     settings=settings,
        ...     registry=registry,
        ...     store=store,
        ...     event_source=JsonFileEventSource("data/events"),
        ... )
        >>> result = asyncio.run(pipeline.run_week(10, 2024, groups=["workout"]))
        >>> result.properties["workoutDays"]
        2
    """

    def __init__(
        self,
        config: RecapPipelineConfig,
        *,
        settings: Settings,
        registry: SourceRegistry,
        store: DestinationStore,
        event_source: EventSource,
        aggregator: Aggregator | None = None,
        week_catalog: WeekCatalog | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        logger: Any = None,
    ) -> None:
        """Initialize recap pipeline.

        Parameters
        ----------
        config
            Pipeline configuration
        settings
            Runtime settings (recap collections, backoff)
        registry
            Source registry
        store
            Destination store holding recap records
        event_source
            Reader of bucket events
        aggregator
            Aggregator to use (built from ``registry`` when omitted)
        week_catalog
            Persisted month → weeks relation for monthly recaps
        sleep
            Awaitable sleep used for backoff
        logger
            Optional structured logger
        """
        self.config = config
        self.settings = settings
        self.registry = registry
        self.store = store
        self.event_source = event_source
        self.aggregator = aggregator or Aggregator(registry)
        self.week_catalog = week_catalog
        self.logger = logger or get_logger("pipeline")
        self.orchestrator = SyncOrchestrator(
            store,
            backoff_seconds={service: settings.backoff_seconds(service) for service in settings.backoff_ms},
            sleep=sleep,
            dry_run=config.dry_run,
        )

    async def run_week(
        self,
        week_number: int,
        year: int,
        *,
        groups: list[str] | None = None,
        source_type: str = "personal",
    ) -> RecapPipelineResult:
        """Create or update the recap for one week.

        Parameters
        ----------
        week_number
            Week number (1-53)
        year
            Year
        groups
            Summary group ids (default: every group of ``source_type``)
        source_type
            Recap type, ``personal`` or ``work``

        Raises
        ------
        WeekRangeError
            If ``week_number`` is outside 1-53
        ConfigError
            If the recap collection is unset or a group does not belong to
            ``source_type``
        """
        window = week_window(week_number, year)
        return await self._run(
            period="week",
            window=window,
            key=week_recap_key(week_number, year),
            groups=groups,
            source_type=source_type,
        )

    async def run_month(
        self,
        month: int,
        year: int,
        *,
        groups: list[str] | None = None,
        source_type: str = "personal",
    ) -> RecapPipelineResult:
        """Create or update the recap for one month.

        The window spans every week of the month (first Sunday through last
        Saturday), so a monthly recap equals the sum of its weekly recaps.

        Raises
        ------
        ValueError
            If ``month`` is outside 1-12
        ConfigError
            As for :meth:`run_week`
        """
        month_window(month, year)
        weeks = await month_to_weeks(month, year, self.week_catalog)
        window = TimeWindow(start=weeks[0].start, end=weeks[-1].end)

        return await self._run(
            period="month",
            window=window,
            key=month_recap_key(month, year),
            groups=groups,
            source_type=source_type,
        )

    def _select_groups(self, groups: list[str] | None, source_type: str) -> list[str]:
        """Selected group ids, validated against the recap type."""
        if not groups:
            selected = [group.id for group in self.registry.groups_for(source_type)]
            if not selected:
                raise ConfigError(f"No summary groups configured for {source_type} recaps")
            return selected

        selected = []
        for group_id in dict.fromkeys(groups):
            try:
                group = self.registry.group(group_id)
            except KeyError as exc:
                raise ConfigError(str(exc.args[0])) from exc
            if group.source_type != source_type:
                raise ConfigError(f"Summary group '{group_id}' belongs to {group.source_type} recaps, not {source_type}")
            selected.append(group_id)
        return selected

    async def _run(
        self,
        *,
        period: str,
        window: TimeWindow,
        key: str,
        groups: list[str] | None,
        source_type: str,
    ) -> RecapPipelineResult:
        """Read, aggregate and upsert one recap."""
        trace_id = str(uuid.uuid4())
        start_time = time.time()

        selected = self._select_groups(groups, source_type)
        collection_id = self.settings.require(
            self.settings.recap_env_var(source_type, period),
            f"{source_type} {period} recap database",
        )
        bucket_ids = list(dict.fromkeys(bucket for group_id in selected for bucket in self.registry.group(group_id).buckets))

        self._log_event(
            "pipeline_started",
            {
                "trace_id": trace_id,
                "period": period,
                "key": key,
                "groups": selected,
                "window_start": window.start.isoformat(),
                "window_end": window.end.isoformat(),
                "dry_run": self.config.dry_run,
            },
        )

        errors: list[str] = []
        properties: dict[str, Any] = {}
        record_id = None
        created = False

        try:
            with timing_context("read_events", component="pipeline", trace_id=trace_id, buckets=len(bucket_ids)):
                events_by_bucket = await self._read_events(bucket_ids, window)

            aggregate = self.aggregator.aggregate(events_by_bucket, window, selected)
            properties = {
                RECAP_TITLE_PROPERTY: key,
                RECAP_DATE_RANGE_PROPERTY: window.to_dict(),
                **aggregate.to_properties(self.registry, source_type),
            }

            write = await self.orchestrator.upsert_recap(
                collection_id,
                property_equals(RECAP_TITLE_PROPERTY, key),
                properties,
            )
            record_id = write.record.id if write.record is not None else None
            created = write.created
        except ConfigError:
            raise
        except Exception as exc:
            errors.append(f"{type(exc).__name__}: {exc}")

        duration_ms = (time.time() - start_time) * 1000
        result = RecapPipelineResult(
            success=not errors,
            period=period,
            window_start=window.start,
            window_end=window.end,
            key=key,
            record_id=record_id,
            created=created,
            properties=properties,
            duration_ms=duration_ms,
            trace_id=trace_id,
            errors=errors,
        )

        self._log_event(
            "pipeline_completed",
            {
                "trace_id": trace_id,
                "key": key,
                "record_id": record_id,
                "created": created,
                "duration_ms": duration_ms,
                "outcome": "success" if result.success else "failure",
                **({"errors": errors} if errors else {}),
            },
        )

        return result

    async def _read_events(self, bucket_ids: list[str], window: TimeWindow) -> dict[str, list[SourceEvent]]:
        """Read every bucket concurrently; the first failure aborts the recap."""
        outcomes = await asyncio.gather(*(self.event_source.list_events(bucket_id, window) for bucket_id in bucket_ids))
        return dict(zip(bucket_ids, outcomes))

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
            "pipeline": "recap",
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


def create_recap_pipeline(
    *,
    settings: Settings,
    registry: SourceRegistry,
    store: DestinationStore,
    event_source: EventSource,
    week_catalog: WeekCatalog | None = None,
    sleep: Callable[[float], Any] = asyncio.sleep,
    logger: Any = None,
    log_path: Path | str | None = None,
    **config_kwargs: Any,
) -> RecapPipeline:
    """Factory function to create recap pipeline.

    Parameters
    ----------
    settings
        Runtime settings
    registry
        Source registry
    store
        Destination store
    event_source
        Reader of bucket events
    week_catalog
        Persisted month → weeks relation
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
    RecapPipeline
        Configured pipeline instance
    """
    if log_path:
        config_kwargs["log_path"] = Path(log_path)

    config = RecapPipelineConfig(**config_kwargs)

    return RecapPipeline(
        config,
        settings=settings,
        registry=registry,
        store=store,
        event_source=event_source,
        week_catalog=week_catalog,
        sleep=sleep,
        logger=logger,
    )
