"""Load the source registry from YAML.

The document is validated with pydantic models and then frozen into the
registry dataclasses. A packaged default (``sources.yaml``) describes the
standard buckets, summary groups and integrations; a custom file can replace
it through ``TALLY_REGISTRY_PATH``.
"""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..config.settings import ConfigError
from .sources import (
    METRIC_KINDS,
    Bucket,
    ColorCodeRouting,
    DirectRouting,
    Integration,
    MetricField,
    PropertyValueRouting,
    RoutingSignal,
    SourceRegistry,
    SummaryGroup,
)

__all__ = [
    "RegistryDocument",
    "RegistryError",
    "default_registry_path",
    "load_registry",
    "registry_from_dict",
]


class RegistryError(ConfigError):
    """Raised when a registry document is missing or invalid."""


class MetricFieldModel(BaseModel):
    """Metric field entry."""

    metric: str
    property: str = Field(..., min_length=1)
    label: str = ""

    @field_validator("metric")
    @classmethod
    def validate_metric(cls, v: str) -> str:
        """Validate metric name."""
        if v not in METRIC_KINDS:
            raise ValueError(f"metric must be one of: {', '.join(METRIC_KINDS)}")
        return v

    def build(self) -> MetricField:
        return MetricField(metric=self.metric, property=self.property, label=self.label or self.property)


class RoutingModel(BaseModel):
    """Routing rule entry (``direct``, ``propertyValue`` or ``colorCode``)."""

    type: Literal["direct", "propertyValue", "colorCode"]
    category: str | None = None
    property: str | None = None
    mapping: dict[str, str] = Field(default_factory=dict)
    default: str | None = None

    @field_validator("mapping", mode="before")
    @classmethod
    def stringify_keys(cls, v: Any) -> Any:
        """YAML reads bare color codes as integers."""
        if isinstance(v, dict):
            return {str(key): str(value) for key, value in v.items()}
        return v

    @model_validator(mode="after")
    def check_variant_fields(self) -> RoutingModel:
        """Each variant carries exactly the fields it needs."""
        if self.type == "direct" and not self.category:
            raise ValueError("direct routing requires 'category'")
        if self.type == "propertyValue" and not (self.property and self.default):
            raise ValueError("propertyValue routing requires 'property' and 'default'")
        if self.type == "colorCode" and not self.default:
            raise ValueError("colorCode routing requires 'default'")
        return self

    def build(self) -> RoutingSignal:
        if self.type == "direct":
            return DirectRouting(category=self.category or "")
        if self.type == "propertyValue":
            return PropertyValueRouting(property=self.property or "", mapping=self.mapping, default=self.default or "")
        return ColorCodeRouting(mapping=self.mapping, default=self.default or "")


class BucketModel(BaseModel):
    """Bucket entry."""

    env_var: str = Field(..., min_length=1)
    name: str
    emoji: str = ""
    origin: Literal["calendar", "database"] = "calendar"
    fields: list[MetricFieldModel] = Field(default_factory=list)
    categories: dict[str, list[MetricFieldModel]] = Field(default_factory=dict)


class GroupModel(BaseModel):
    """Summary group entry."""

    name: str
    emoji: str = ""
    buckets: list[str] = Field(..., min_length=1)
    source_type: Literal["personal", "work"] = "personal"
    routing: dict[str, RoutingModel] = Field(default_factory=dict)
    ignore_all_day_events: bool = False


class IntegrationModel(BaseModel):
    """Integration entry."""

    name: str
    database_env_var: str = Field(..., min_length=1)
    calendar_routing: list[str] = Field(default_factory=list)
    rate_limit_service: str = ""
    routing: RoutingModel | None = None


class RegistryDocument(BaseModel):
    """Top-level registry document."""

    buckets: dict[str, BucketModel]
    groups: dict[str, GroupModel]
    integrations: dict[str, IntegrationModel] = Field(default_factory=dict)

    def build(self) -> SourceRegistry:
        buckets = {
            bucket_id: Bucket(
                id=bucket_id,
                env_var=model.env_var,
                name=model.name,
                emoji=model.emoji,
                origin=model.origin,
                fields=tuple(item.build() for item in model.fields),
                categories={
                    category: tuple(item.build() for item in items) for category, items in model.categories.items()
                },
            )
            for bucket_id, model in self.buckets.items()
        }

        groups = {
            group_id: SummaryGroup(
                id=group_id,
                name=model.name,
                emoji=model.emoji,
                buckets=tuple(model.buckets),
                source_type=model.source_type,
                routes={bucket_id: route.build() for bucket_id, route in model.routing.items()},
                ignore_all_day_events=model.ignore_all_day_events,
            )
            for group_id, model in self.groups.items()
        }

        integrations = {
            integration_id: Integration(
                id=integration_id,
                name=model.name,
                database_env_var=model.database_env_var,
                calendar_routing=tuple(model.calendar_routing),
                rate_limit_service=model.rate_limit_service or integration_id,
                routing=model.routing.build() if model.routing else None,
            )
            for integration_id, model in self.integrations.items()
        }

        return SourceRegistry(buckets, groups, integrations)


def default_registry_path() -> Path:
    """Path of the packaged registry document."""
    return Path(str(resources.files("tally.registry").joinpath("sources.yaml")))


def registry_from_dict(data: dict[str, Any]) -> SourceRegistry:
    """Validate a registry document and build the registry.

    Raises
    ------
    RegistryError
        If the document does not validate
    """
    try:
        document = RegistryDocument.model_validate(data)
    except ValidationError as exc:
        raise RegistryError(f"Invalid source registry:\n{exc}") from exc

    try:
        return document.build()
    except (ValueError, ConfigError) as exc:
        raise RegistryError(f"Invalid source registry: {exc}") from exc


def load_registry(path: Path | str | None = None) -> SourceRegistry:
    """Load the source registry from YAML.

    Parameters
    ----------
    path
        Registry YAML file (default: packaged ``sources.yaml``)

    Returns
    -------
    SourceRegistry
        Frozen registry

    Raises
    ------
    RegistryError
        If the file is missing, unreadable or invalid
    """
    registry_path = Path(path) if path else default_registry_path()

    if not registry_path.exists():
        raise RegistryError(f"Source registry not found: {registry_path}")

    try:
        with open(registry_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise RegistryError(f"Cannot parse source registry {registry_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise RegistryError(f"Source registry {registry_path} must be a mapping")

    return registry_from_dict(data)
