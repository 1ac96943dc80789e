"""Source registry and categorizer."""

from .categorizer import Categorizer, normalize_signal
from .loader import RegistryError, default_registry_path, load_registry, registry_from_dict
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
    UnknownSourceError,
)

__all__ = [
    # Registry model
    "METRIC_KINDS",
    "Bucket",
    "Integration",
    "MetricField",
    "SourceRegistry",
    "SummaryGroup",
    "UnknownSourceError",
    # Routing signals
    "ColorCodeRouting",
    "DirectRouting",
    "PropertyValueRouting",
    "RoutingSignal",
    # Loading
    "RegistryError",
    "default_registry_path",
    "load_registry",
    "registry_from_dict",
    # Categorization
    "Categorizer",
    "normalize_signal",
]
