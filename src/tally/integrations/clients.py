"""Fetch clients: the boundary to external APIs.

Network clients are out of scope; the engine only needs ``fetch(window)``.
Local clients serve exported raw items so runs work offline.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Protocol

from ..core.json_io import read_json
from ..observability.loguru_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..rollups.time_windows import TimeWindow

__all__ = [
    "FetchClient",
    "FetchError",
    "JsonFileFetchClient",
    "StaticFetchClient",
]

logger = get_logger("sync")

DateOf = Callable[[Any], date]


class FetchError(Exception):
    """Raised when upstream items cannot be fetched."""


class FetchClient(Protocol):
    """Async client returning raw items for a window."""

    async def fetch(self, window: TimeWindow) -> list[dict[str, Any]]: ...


def _in_window(items: Sequence[dict[str, Any]], window: TimeWindow, date_of: DateOf | None) -> list[dict[str, Any]]:
    if date_of is None:
        return list(items)

    selected = []
    for item in items:
        try:
            day = date_of(item)
        except (KeyError, TypeError, ValueError):
            # Malformed items surface later as per-item transform errors
            selected.append(item)
            continue
        if window.contains(day):
            selected.append(item)
    return selected


class StaticFetchClient:
    """Serve a fixed list of raw items.

    Parameters
    ----------
    items
        Raw items
    date_of
        Reportable date of an item; items outside the window are dropped
        (all items are returned when None)
    error
        Exception raised by every fetch (simulates an upstream outage)
    """

    def __init__(
        self,
        items: Sequence[dict[str, Any]] = (),
        *,
        date_of: DateOf | None = None,
        error: Exception | None = None,
    ) -> None:
        self.items = list(items)
        self.date_of = date_of
        self.error = error
        self.calls = 0

    async def fetch(self, window: TimeWindow) -> list[dict[str, Any]]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return _in_window(self.items, window, self.date_of)


class JsonFileFetchClient:
    """Read exported raw items from a JSON file (a list, or ``{"items": [...]}``).

    A missing file yields no items.
    """

    def __init__(self, path: Path | str, *, date_of: DateOf | None = None) -> None:
        self.path = Path(path)
        self.date_of = date_of

    async def fetch(self, window: TimeWindow) -> list[dict[str, Any]]:
        document = read_json(self.path, default=[])

        if isinstance(document, dict):
            document = document.get("items", [])
        if not isinstance(document, list):
            raise FetchError(f"{self.path} must contain a list of items")

        items = [item for item in document if isinstance(item, dict)]
        logger.debug("Loaded raw items", path=str(self.path), items=len(items))
        return _in_window(items, window, self.date_of)
