"""Per-category aggregation of categorized events over a time window.

The aggregator is stateless: each call builds a fresh :class:`AggregateResult`
from the events it is given. Only the requested summary groups are computed.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from ..observability.loguru_config import get_logger
from ..registry.categorizer import Categorizer
from .blocks import format_detail_blocks, format_details

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import date

    from ..core.models import SourceEvent
    from ..registry.sources import MetricField, SourceRegistry
    from .time_windows import TimeWindow

__all__ = [
    "AggregateResult",
    "Aggregator",
    "CategoryAggregate",
    "GroupAggregate",
    "average_blood_pressure",
    "average_weight",
    "clamp_hours",
]

logger = get_logger("rollups")

_WEIGHT_PATTERN = re.compile(r"(\d+\.?\d*)\s*lbs?", re.IGNORECASE)
_BLOOD_PRESSURE_PATTERN = re.compile(r"BP:\s*(\d+)/(\d+)", re.IGNORECASE)


def clamp_hours(value: Any) -> float:
    """Duration usable in a sum: missing, non-numeric, non-finite or negative values count as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(hours) or hours < 0:
        return 0.0
    return hours


def average_weight(events: Iterable[SourceEvent]) -> float | None:
    """Mean weight parsed from labels like ``"Weight: 182.4 lbs"``, 1 decimal."""
    values = []
    for event in events:
        match = _WEIGHT_PATTERN.search(event.label)
        if match:
            values.append(float(match.group(1)))
    if not values:
        return None
    return round(sum(values) / len(values), 1)


def average_blood_pressure(events: Iterable[SourceEvent]) -> str | None:
    """Mean reading parsed from labels like ``"BP: 120/80"``, as ``"systolic/diastolic"``."""
    systolic: list[int] = []
    diastolic: list[int] = []
    for event in events:
        match = _BLOOD_PRESSURE_PATTERN.search(event.label)
        if match:
            systolic.append(int(match.group(1)))
            diastolic.append(int(match.group(2)))
    if not systolic:
        return None
    return f"{round(sum(systolic) / len(systolic))}/{round(sum(diastolic) / len(diastolic))}"


@dataclass
class CategoryAggregate:
    """Metrics for one category of one summary group.

    Attributes
    ----------
    days : int
        Distinct dates with at least one event
    sessions : int | None
        Event count (set when a field requests it)
    hours_total : float | None
        Sum of clamped durations, rounded to 2 decimals
    detail_blocks : str | None
        Per-day text blocks
    details : str | None
        ``"label (Ddd)"`` list
    average : float | str | None
        Body weight mean or blood pressure mean
    """

    days: int = 0
    sessions: int | None = None
    hours_total: float | None = None
    detail_blocks: str | None = None
    details: str | None = None
    average: float | str | None = None

    def value_for(self, metric_field: MetricField) -> Any:
        """Destination value for one field; absent metrics render as zero or empty."""
        metric = metric_field.metric
        if metric == "days":
            return self.days
        if metric == "sessions":
            return self.sessions or 0
        if metric == "hours":
            return self.hours_total or 0.0
        if metric == "blocks":
            return self.detail_blocks or ""
        if metric == "details":
            return self.details or ""
        if metric == "average_weight":
            return self.average
        return self.average or ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "days": self.days,
            "sessions": self.sessions,
            "hours_total": self.hours_total,
            "detail_blocks": self.detail_blocks,
            "details": self.details,
            "average": self.average,
        }


@dataclass
class GroupAggregate:
    """Aggregates of every reportable category of one summary group."""

    group_id: str
    per_category: dict[str, CategoryAggregate] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "per_category": {key: value.to_dict() for key, value in self.per_category.items()},
        }


@dataclass
class AggregateResult:
    """Aggregation output for one window.

    Category keys are only unique within a group (``coding`` is both a
    personal bucket and a work calendar color), so results nest per group.
    """

    window_start: date
    window_end: date
    per_group: dict[str, GroupAggregate] = field(default_factory=dict)

    def category(self, group_id: str, category: str) -> CategoryAggregate:
        """Aggregate for one category (empty when nothing was recorded)."""
        group = self.per_group.get(group_id)
        if group is None:
            return CategoryAggregate()
        return group.per_category.get(category, CategoryAggregate())

    def to_properties(self, registry: SourceRegistry, source_type: str | None = None) -> dict[str, Any]:
        """Map metrics onto destination property names.

        Parameters
        ----------
        registry
            Registry providing metric fields per category
        source_type
            Only include groups of this recap type (all when None)

        Returns
        -------
        dict
            ``{property_name: value}`` for every field of every computed group
        """
        properties: dict[str, Any] = {}
        for group_id in self.per_group:
            if source_type is not None and registry.group(group_id).source_type != source_type:
                continue
            for category, fields in registry.category_fields(group_id).items():
                aggregate = self.category(group_id, category)
                for metric_field in fields:
                    properties[metric_field.property] = aggregate.value_for(metric_field)
        return properties

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "per_group": {key: value.to_dict() for key, value in self.per_group.items()},
        }


class Aggregator:
    """Compute per-category metrics for selected summary groups.

    Parameters
    ----------
    registry
        Source registry (buckets, groups, fields)
    categorizer
        Categorizer to use (built from ``registry`` when omitted)

    Example
    -------
    >>> aggregator = Aggregator(registry)
    >>> result = aggregator.aggregate({"workout": events}, week_window(10, 2024), ["workout"])
    >>> result.category("workout", "workout").days
    2
    """

    def __init__(self, registry: SourceRegistry, categorizer: Categorizer | None = None) -> None:
        self.registry = registry
        self.categorizer = categorizer or Categorizer(registry)

    def aggregate(
        self,
        events_by_bucket: Mapping[str, Sequence[SourceEvent]],
        window: TimeWindow,
        selected_groups: Iterable[str],
    ) -> AggregateResult:
        """Aggregate events of the selected groups within ``window``.

        Parameters
        ----------
        events_by_bucket
            Events keyed by the bucket they were read from
        window
            Inclusive date window
        selected_groups
            Summary group ids to compute

        Returns
        -------
        AggregateResult
            Every reportable category of each selected group, zeroed when
            no events fall in the window
        """
        result = AggregateResult(window_start=window.start, window_end=window.end)

        for group_id in dict.fromkeys(selected_groups):
            result.per_group[group_id] = self._aggregate_group(group_id, events_by_bucket, window)

        return result

    def _aggregate_group(
        self,
        group_id: str,
        events_by_bucket: Mapping[str, Sequence[SourceEvent]],
        window: TimeWindow,
    ) -> GroupAggregate:
        group = self.registry.group(group_id)
        reportable = self.registry.category_fields(group_id)

        by_category: dict[str, list[SourceEvent]] = {}
        metrics_by_category: dict[str, set[str]] = {
            category: {metric_field.metric for metric_field in fields} for category, fields in reportable.items()
        }

        for bucket_id in group.buckets:
            for event in events_by_bucket.get(bucket_id, ()):
                if not window.contains(event.occurred_on):
                    continue
                if group.ignore_all_day_events and event.is_all_day:
                    continue

                # A category assigned upstream is kept; anything else routes by bucket
                if event.category != bucket_id and event.category in reportable:
                    category = event.category
                else:
                    category = self.categorizer.categorize(replace(event, category=bucket_id), group)
                by_category.setdefault(category, []).append(event)
                metrics_by_category.setdefault(category, set()).update(
                    metric_field.metric for metric_field in self.registry.fields_for(bucket_id, category)
                )

        aggregate = GroupAggregate(group_id=group_id)
        for category in dict.fromkeys([*reportable, *by_category]):
            aggregate.per_category[category] = _compute(
                by_category.get(category, []),
                metrics_by_category.get(category, set()),
            )

        logger.debug(
            "Aggregated group",
            group=group_id,
            window_start=window.start.isoformat(),
            categories=len(aggregate.per_category),
            events=sum(len(events) for events in by_category.values()),
        )
        return aggregate


def _compute(events: list[SourceEvent], metrics: set[str]) -> CategoryAggregate:
    aggregate = CategoryAggregate(days=len({event.occurred_on for event in events}))

    if "sessions" in metrics:
        aggregate.sessions = len(events)
    if "hours" in metrics:
        aggregate.hours_total = round(sum(clamp_hours(event.duration_hours) for event in events), 2)
    if "blocks" in metrics:
        aggregate.detail_blocks = format_detail_blocks(events)
    if "details" in metrics:
        aggregate.details = format_details(events)
    if "average_weight" in metrics:
        aggregate.average = average_weight(events)
    elif "average_blood_pressure" in metrics:
        aggregate.average = average_blood_pressure(events)

    return aggregate
