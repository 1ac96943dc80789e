"""Boolean predicate trees for destination queries.

Only three node kinds exist: ``And``, ``PropertyEquals`` and ``DateRange``.
Every node renders to a plain dict for remote stores (``to_dict``) and can be
evaluated against a record's properties for local stores (``matches``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Union

from ..core.time import parse_calendar_date

__all__ = [
    "And",
    "DateRange",
    "Filter",
    "PropertyEquals",
    "and_",
    "date_range",
    "property_equals",
    "window_filter",
]


def _plain(value: Any) -> Any:
    # Select-style values compare by name
    if isinstance(value, Mapping):
        if "name" in value:
            return value["name"]
        if "start" in value:
            return value["start"]
    return value


@dataclass(frozen=True)
class PropertyEquals:
    """Property value equals a literal (checkbox, text, number or select)."""

    property: str
    value: Any

    def matches(self, properties: Mapping[str, Any]) -> bool:
        actual = _plain(properties.get(self.property))
        if isinstance(self.value, bool):
            return bool(actual) is self.value
        if actual is None:
            return False
        if isinstance(self.value, (int, float)) and not isinstance(actual, bool):
            try:
                return float(actual) == float(self.value)
            except (TypeError, ValueError):
                return False
        return str(actual) == str(self.value)

    def to_dict(self) -> dict[str, Any]:
        return {"property": self.property, "equals": self.value}


@dataclass(frozen=True)
class DateRange:
    """Date property within an inclusive range; either bound may be open."""

    property: str
    on_or_after: date | None = None
    on_or_before: date | None = None

    def matches(self, properties: Mapping[str, Any]) -> bool:
        raw = _plain(properties.get(self.property))
        if not raw:
            return False
        try:
            value = parse_calendar_date(raw)
        except ValueError:
            return False
        if self.on_or_after is not None and value < self.on_or_after:
            return False
        if self.on_or_before is not None and value > self.on_or_before:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        condition: dict[str, str] = {}
        if self.on_or_after is not None:
            condition["on_or_after"] = self.on_or_after.isoformat()
        if self.on_or_before is not None:
            condition["on_or_before"] = self.on_or_before.isoformat()
        return {"property": self.property, "date": condition}


@dataclass(frozen=True)
class And:
    """All child predicates hold."""

    children: tuple[Filter, ...]

    def matches(self, properties: Mapping[str, Any]) -> bool:
        return all(child.matches(properties) for child in self.children)

    def to_dict(self) -> dict[str, Any]:
        return {"and": [child.to_dict() for child in self.children]}


Filter = Union[And, PropertyEquals, DateRange]


def property_equals(property: str, value: Any) -> PropertyEquals:
    return PropertyEquals(property=property, value=value)


def date_range(property: str, on_or_after: date | None = None, on_or_before: date | None = None) -> DateRange:
    return DateRange(property=property, on_or_after=on_or_after, on_or_before=on_or_before)


def and_(*children: Filter) -> Filter:
    """Conjunction; a single child is returned unchanged."""
    if len(children) == 1:
        return children[0]
    return And(children=tuple(children))


def window_filter(property: str, start: date, end: date) -> DateRange:
    """Inclusive date-range filter covering a window."""
    return DateRange(property=property, on_or_after=start, on_or_before=end)
