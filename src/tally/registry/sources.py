"""Source registry: atomic buckets, summary groups, routing rules and integrations.

The registry is static configuration. It is built once (see
:func:`tally.registry.loader.load_registry`) and passed explicitly to the
categorizer, aggregator and pipelines; nothing here is a module-level singleton.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Mapping, Union

from ..config.settings import ConfigError

__all__ = [
    "METRIC_KINDS",
    "Bucket",
    "ColorCodeRouting",
    "DirectRouting",
    "Integration",
    "MetricField",
    "PropertyValueRouting",
    "RoutingSignal",
    "SourceRegistry",
    "SummaryGroup",
    "UnknownSourceError",
]

MetricKind = Literal["count", "decimal", "text"]
SourceType = Literal["personal", "work"]

# Measure name -> value kind written to the destination
METRIC_KINDS: dict[str, MetricKind] = {
    "days": "count",
    "sessions": "count",
    "hours": "decimal",
    "blocks": "text",
    "details": "text",
    "average_weight": "decimal",
    "average_blood_pressure": "text",
}


class UnknownSourceError(KeyError):
    """Raised when a bucket, group or integration id is not registered."""


def _freeze(instance: object, name: str) -> None:
    """Replace a mapping field of a frozen dataclass with a read-only view."""
    object.__setattr__(instance, name, MappingProxyType(dict(getattr(instance, name))))


@dataclass(frozen=True)
class MetricField:
    """One output value a bucket (or bucket category) can produce.

    Attributes
    ----------
    metric : str
        Measure name (see ``METRIC_KINDS``)
    property : str
        Destination property the value is written to
    label : str
        Display label
    """

    metric: str
    property: str
    label: str = ""

    def __post_init__(self) -> None:
        if self.metric not in METRIC_KINDS:
            raise ValueError(f"Unknown metric '{self.metric}' for property '{self.property}'")

    @property
    def kind(self) -> MetricKind:
        return METRIC_KINDS[self.metric]


@dataclass(frozen=True)
class DirectRouting:
    """Every event maps to one fixed category."""

    category: str
    type: Literal["direct"] = "direct"

    @property
    def default(self) -> str:
        return self.category

    def categories(self) -> tuple[str, ...]:
        return (self.category,)


@dataclass(frozen=True)
class PropertyValueRouting:
    """An event property selects the category by exact-match lookup."""

    property: str
    mapping: Mapping[str, str]
    default: str
    type: Literal["propertyValue"] = "propertyValue"

    def __post_init__(self) -> None:
        _freeze(self, "mapping")

    def categories(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys([*self.mapping.values(), self.default]))


@dataclass(frozen=True)
class ColorCodeRouting:
    """An externally assigned color code selects the category; unmapped codes use the default."""

    mapping: Mapping[str, str]
    default: str
    type: Literal["colorCode"] = "colorCode"

    def __post_init__(self) -> None:
        _freeze(self, "mapping")

    def categories(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys([*self.mapping.values(), self.default]))


RoutingSignal = Union[DirectRouting, PropertyValueRouting, ColorCodeRouting]


@dataclass(frozen=True)
class Bucket:
    """Atomic origin of time-stamped events (one calendar or one database).

    ``fields`` apply to events categorized under the bucket's own id;
    ``categories`` lists fields for sub-categories of sources with internal
    color or label splits.
    """

    id: str
    env_var: str
    name: str
    emoji: str = ""
    origin: Literal["calendar", "database"] = "calendar"
    fields: tuple[MetricField, ...] = ()
    categories: Mapping[str, tuple[MetricField, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _freeze(self, "categories")


@dataclass(frozen=True)
class SummaryGroup:
    """One or more buckets combined into a single reportable line item."""

    id: str
    name: str
    buckets: tuple[str, ...]
    source_type: SourceType = "personal"
    emoji: str = ""
    routes: Mapping[str, RoutingSignal] = field(default_factory=dict)
    ignore_all_day_events: bool = False

    def __post_init__(self) -> None:
        _freeze(self, "routes")

    def routing_for(self, bucket_id: str) -> RoutingSignal:
        """Routing rule for events of one bucket (direct to the bucket id by default)."""
        route = self.routes.get(bucket_id)
        if route is not None:
            return route
        if bucket_id in self.buckets:
            return DirectRouting(category=bucket_id)
        if len(self.buckets) == 1:
            return self.routing_for(self.buckets[0])
        return DirectRouting(category=self.default_category)

    @property
    def default_category(self) -> str:
        """Category used when nothing else resolves."""
        first = self.buckets[0]
        route = self.routes.get(first)
        return route.default if route is not None else first


@dataclass(frozen=True)
class Integration:
    """External API synced into a destination database."""

    id: str
    name: str
    database_env_var: str
    calendar_routing: tuple[str, ...] = ()
    rate_limit_service: str = ""
    routing: RoutingSignal | None = None

    def calendar_route(self) -> RoutingSignal:
        """Rule picking the target bucket for a synced record."""
        if self.routing is not None:
            return self.routing
        if not self.calendar_routing:
            raise ConfigError(f"Integration '{self.id}' has no calendar routing")
        return DirectRouting(category=self.calendar_routing[0])


class SourceRegistry:
    """Explicitly constructed registry of buckets, groups and integrations.

    Parameters
    ----------
    buckets
        Buckets by id
    groups
        Summary groups by id
    integrations
        Integrations by id

    Raises
    ------
    ConfigError
        If a group references an unknown bucket
    """

    def __init__(
        self,
        buckets: Mapping[str, Bucket],
        groups: Mapping[str, SummaryGroup],
        integrations: Mapping[str, Integration] | None = None,
    ) -> None:
        self._buckets = MappingProxyType(dict(buckets))
        self._groups = MappingProxyType(dict(groups))
        self._integrations = MappingProxyType(dict(integrations or {}))

        for group in self._groups.values():
            missing = [bucket_id for bucket_id in group.buckets if bucket_id not in self._buckets]
            if missing:
                raise ConfigError(f"Summary group '{group.id}' references unknown buckets: {', '.join(missing)}")

        for integration in self._integrations.values():
            missing = [bucket_id for bucket_id in integration.calendar_routing if bucket_id not in self._buckets]
            if missing:
                raise ConfigError(f"Integration '{integration.id}' routes to unknown buckets: {', '.join(missing)}")

    @property
    def buckets(self) -> Mapping[str, Bucket]:
        return self._buckets

    @property
    def groups(self) -> Mapping[str, SummaryGroup]:
        return self._groups

    @property
    def integrations(self) -> Mapping[str, Integration]:
        return self._integrations

    def bucket(self, bucket_id: str) -> Bucket:
        try:
            return self._buckets[bucket_id]
        except KeyError:
            raise UnknownSourceError(f"Unknown bucket: {bucket_id}") from None

    def group(self, group_id: str) -> SummaryGroup:
        try:
            return self._groups[group_id]
        except KeyError:
            raise UnknownSourceError(f"Unknown summary group: {group_id}") from None

    def integration(self, integration_id: str) -> Integration:
        try:
            return self._integrations[integration_id]
        except KeyError:
            raise UnknownSourceError(f"Unknown integration: {integration_id}") from None

    def groups_for(self, source_type: str) -> list[SummaryGroup]:
        """Summary groups reported in one recap type (personal or work)."""
        return [group for group in self._groups.values() if group.source_type == source_type]

    def fields_for(self, bucket_id: str, category: str) -> tuple[MetricField, ...]:
        """Metric fields for a category produced by a bucket.

        Parameters
        ----------
        bucket_id
            Bucket the events came from
        category
            Resolved category key

        Returns
        -------
        tuple[MetricField, ...]
            Fields to compute (empty when the category is not reported)
        """
        bucket = self.bucket(bucket_id)
        if category == bucket.id and bucket.fields:
            return bucket.fields
        return bucket.categories.get(category, ())

    def category_fields(self, group_id: str) -> dict[str, tuple[MetricField, ...]]:
        """All reportable categories of a group with their fields, in registry order."""
        group = self.group(group_id)
        result: dict[str, tuple[MetricField, ...]] = {}

        for bucket_id in group.buckets:
            route = group.routing_for(bucket_id)
            for category in (bucket_id, *route.categories(), *self.bucket(bucket_id).categories):
                fields = self.fields_for(bucket_id, category)
                if fields:
                    result.setdefault(category, fields)

        return result

    def required_env_vars(self, group_ids: list[str] | tuple[str, ...]) -> list[str]:
        """Environment variables naming the routing targets of selected groups."""
        names: list[str] = []
        for group_id in group_ids:
            for bucket_id in self.group(group_id).buckets:
                env_var = self.bucket(bucket_id).env_var
                if env_var and env_var not in names:
                    names.append(env_var)
        return names

    def validate_environment(self, env: Mapping[str, str], group_ids: list[str] | tuple[str, ...]) -> None:
        """Check that every routing target of the selected groups is configured.

        Raises
        ------
        ConfigError
            Listing every unset variable
        """
        missing = [name for name in self.required_env_vars(group_ids) if not env.get(name)]
        if missing:
            raise ConfigError(
                "Missing routing targets for selected groups: "
                + ", ".join(missing)
                + ". Set them in .env or the environment."
            )

    def resolve_target(self, env: Mapping[str, str], bucket_id: str) -> str:
        """Calendar or database ID configured for a bucket.

        Raises
        ------
        ConfigError
            If the bucket's variable is unset
        """
        env_var = self.bucket(bucket_id).env_var
        value = env.get(env_var)
        if not value:
            raise ConfigError(f"{env_var} is required for bucket '{bucket_id}'")
        return value
