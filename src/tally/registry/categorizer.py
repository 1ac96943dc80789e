"""Map events to category keys using registry routing rules.

Upstream events are user-edited and may carry malformed or legacy routing
values at any time, so categorization is total: every input resolves to a
category, falling back to the rule's default.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from ..observability.loguru_config import get_logger
from .sources import ColorCodeRouting, DirectRouting, PropertyValueRouting, UnknownSourceError

if TYPE_CHECKING:
    from ..core.models import SourceEvent
    from .sources import Integration, RoutingSignal, SourceRegistry, SummaryGroup

__all__ = ["Categorizer", "normalize_signal"]

logger = get_logger("registry")


def normalize_signal(value: Any) -> str | None:
    """Normalize a raw routing value to a lookup key.

    Select-style values (``{"name": ...}``) and single-item lists are unwrapped;
    numeric color codes like ``2`` or ``"2.0"`` become ``"2"``.
    """
    if value is None:
        return None
    if isinstance(value, Mapping):
        return normalize_signal(value.get("name"))
    if isinstance(value, (list, tuple)):
        return normalize_signal(value[0]) if value else None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))

    text = str(value).strip()
    return text or None


def _lookup(mapping: Mapping[str, str], key: str | None, default: str) -> str:
    if key is None:
        return default
    if key in mapping:
        return mapping[key]

    # Color codes sometimes arrive as "02" or "2.0"
    try:
        numeric = str(int(float(key)))
    except ValueError:
        return default
    return mapping.get(numeric, default)


class Categorizer:
    """Resolve routing signals against an injected registry.

    Parameters
    ----------
    registry
        Source registry providing groups and routing rules

    Example
    -------
    >>> categorizer = Categorizer(registry)
    >>> categorizer.categorize(event, "personalCalendar")
    'interpersonal'
    """

    def __init__(self, registry: SourceRegistry) -> None:
        self.registry = registry

    def categorize(self, event: SourceEvent, group: SummaryGroup | str) -> str:
        """Category key for an event within a summary group.

        Never raises: unknown groups keep the event's own category and
        unmapped or malformed signals resolve to the rule's default.
        """
        if isinstance(group, str):
            try:
                group = self.registry.group(group)
            except UnknownSourceError:
                logger.warning("Categorizing against unknown group", group=group)
                return event.category

        try:
            signal = group.routing_for(event.category)
            return self.resolve(signal, color_id=event.color_id, properties=event.properties)
        except Exception as exc:
            logger.warning(
                "Routing failed, using group default",
                group=group.id,
                category=event.category,
                error=str(exc),
            )
            return group.default_category

    def resolve(
        self,
        signal: RoutingSignal,
        *,
        color_id: Any = None,
        properties: Mapping[str, Any] | None = None,
    ) -> str:
        """Apply one routing rule to raw signal values."""
        if isinstance(signal, DirectRouting):
            return signal.category

        if isinstance(signal, PropertyValueRouting):
            value = (properties or {}).get(signal.property)
            return _lookup(signal.mapping, normalize_signal(value), signal.default)

        if isinstance(signal, ColorCodeRouting):
            return _lookup(signal.mapping, normalize_signal(color_id), signal.default)

        raise TypeError(f"Unsupported routing signal: {signal!r}")

    def target_bucket(self, integration: Integration | str, properties: Mapping[str, Any]) -> str:
        """Bucket a synced integration record is written to.

        Parameters
        ----------
        integration
            Integration or its id
        properties
            Destination record properties

        Returns
        -------
        str
            Bucket id (falls back to the rule's default)
        """
        if isinstance(integration, str):
            integration = self.registry.integration(integration)

        signal = integration.calendar_route()
        try:
            return self.resolve(signal, properties=properties)
        except Exception as exc:
            logger.warning("Calendar routing failed", integration=integration.id, error=str(exc))
            return signal.default
