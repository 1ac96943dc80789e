#!/usr/bin/env python3
"""Common CLI utilities: stable exit codes, window options and runtime wiring."""

from __future__ import annotations

import asyncio
import functools
import json
import traceback
from dataclasses import dataclass
from datetime import date
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

import click

from ..config.settings import ConfigError, Settings, load_settings
from ..core.json_io import JsonIOError
from ..observability.loguru_config import configure_loguru, get_logger
from ..registry.loader import load_registry
from ..registry.sources import SourceRegistry
from ..rollups.time_windows import (
    TimeWindow,
    WeekRangeError,
    current_week,
    last_week,
    month_to_weeks,
    month_window,
    week_window,
)
from ..sync.calendar_events import CalendarError, JsonFileCalendarClient
from ..sync.destination import InMemoryDestinationStore, StoreError, create_destination_store
from ..sync.week_catalog import DestinationWeekCatalog

if TYPE_CHECKING:
    from ..rollups.time_windows import WeekCatalog

__all__ = [
    "ExitCode",
    "Runtime",
    "WindowChoice",
    "emit",
    "handle_cli_error",
    "load_runtime",
    "resolve_month",
    "resolve_week",
    "resolve_window",
    "window_options",
]

logger = get_logger("cli")


class ExitCode(IntEnum):
    """Stable exit codes for CLI commands."""

    SUCCESS = 0  # Successful execution, including per-item errors
    VALIDATION_ERROR = 2  # Bad window or argument
    IO_ERROR = 5  # Local store or calendar file unreadable
    CONFIG_ERROR = 6  # Configuration error
    UNKNOWN_ERROR = 7  # Unknown/unexpected error


@dataclass
class WindowChoice:
    """Window selected on the command line."""

    period: str  # week, month
    number: int
    year: int
    window: TimeWindow

    def describe(self) -> str:
        if self.period == "week":
            return f"week {self.number} of {self.year} ({self.window.start} → {self.window.end})"
        return f"{date(self.year, self.number, 1):%B %Y} ({self.window.start} → {self.window.end})"


def window_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the shared window selection options to a command.

    Adds:
    - --week N / --month N: explicit week or month
    - --last-week / --this-week: relative to today
    - --year Y: year of --week or --month (default: current year)
    """

    @click.option("--week", "week", type=int, help="Week number (1-53)")
    @click.option("--month", "month", type=int, help="Month number (1-12)")
    @click.option("--last-week", is_flag=True, help="Previous Sunday-Saturday week")
    @click.option("--this-week", is_flag=True, help="Current Sunday-Saturday week")
    @click.option("--year", "year", type=int, help="Year (default: current year)")
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return func(*args, **kwargs)

    return wrapper


def resolve_week(
    week: int | None,
    year: int | None,
    *,
    last: bool = False,
    this: bool = False,
    today: date | None = None,
) -> WindowChoice:
    """Resolve week options; defaults to last week.

    Raises
    ------
    WeekRangeError
        If the week number is outside 1-53
    ValueError
        If more than one week option is given
    """
    today = today or date.today()

    if sum((week is not None, last, this)) > 1:
        raise ValueError("Choose only one of --week, --last-week, --this-week")

    if week is not None:
        year = year or today.year
        return WindowChoice("week", week, year, week_window(week, year))

    number, window = current_week(today) if this else last_week(today)
    return WindowChoice("week", number, window.end.year, window)


def resolve_month(
    month: int | None,
    year: int | None,
    *,
    week_catalog: WeekCatalog | None = None,
    today: date | None = None,
) -> WindowChoice:
    """Resolve month options; defaults to the current month.

    The window spans every week overlapping the month. Weeks come from the
    persisted relation when ``week_catalog`` is given, otherwise from the
    local Sunday-Saturday derivation.

    Raises
    ------
    ValueError
        If the month is outside 1-12
    """
    today = today or date.today()
    month = month if month is not None else today.month
    year = year or today.year

    month_window(month, year)
    weeks = asyncio.run(month_to_weeks(month, year, week_catalog))
    return WindowChoice("month", month, year, TimeWindow(start=weeks[0].start, end=weeks[-1].end))


def resolve_window(
    *,
    week: int | None,
    month: int | None,
    last_week: bool,
    this_week: bool,
    year: int | None,
    week_catalog: WeekCatalog | None = None,
    today: date | None = None,
) -> WindowChoice:
    """Resolve any window option (week or month)."""
    if month is not None:
        if week is not None or last_week or this_week:
            raise ValueError("--month cannot be combined with week options")
        return resolve_month(month, year, week_catalog=week_catalog, today=today)
    return resolve_week(week, year, last=last_week, this=this_week, today=today)


@dataclass
class Runtime:
    """Settings and boundaries shared by commands."""

    settings: Settings
    registry: SourceRegistry
    store: InMemoryDestinationStore
    calendar: JsonFileCalendarClient

    def week_catalog(self) -> DestinationWeekCatalog | None:
        """Persisted month → weeks relation, when the weeks collection is configured."""
        collection_id = self.settings.env.get(self.settings.weeks_env_var)
        if not collection_id:
            return None
        return DestinationWeekCatalog(self.store, collection_id)

    def pipeline_log_path(self, name: str) -> Path | None:
        if self.settings.log_dir is None:
            return None
        return self.settings.log_dir / "pipelines" / f"{name}.jsonl"


def load_runtime(verbose: bool = False, env_file: Path | None = None) -> Runtime:
    """Load settings, configure logging and open the local stores.

    Raises
    ------
    ConfigError
        If settings or the registry are malformed
    """
    settings = load_settings(env_file)
    configure_loguru(log_dir=settings.log_dir, level="DEBUG" if verbose else settings.log_level)
    registry = load_registry(settings.registry_path)

    return Runtime(
        settings=settings,
        registry=registry,
        store=create_destination_store(settings.store_path),
        calendar=JsonFileCalendarClient(settings.calendar_path),
    )


def emit(data: dict[str, Any], json_output: bool, lines: list[str]) -> None:
    """Print a result as JSON or as human-readable lines."""
    if json_output:
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return
    for line in lines:
        click.echo(line)


def handle_cli_error(exc: Exception, verbose: bool = False) -> int:
    """Report an error and map it to an exit code.

    Parameters
    ----------
    exc
        Exception to handle
    verbose
        Print the traceback

    Returns
    -------
    int
        Appropriate exit code
    """
    if isinstance(exc, ConfigError):
        exit_code = ExitCode.CONFIG_ERROR
    elif isinstance(exc, (JsonIOError, StoreError, CalendarError)):
        exit_code = ExitCode.IO_ERROR
    elif isinstance(exc, (WeekRangeError, ValueError)):
        exit_code = ExitCode.VALIDATION_ERROR
    else:
        exit_code = ExitCode.UNKNOWN_ERROR

    logger.debug("Command failed", error_type=type(exc).__name__, exit_code=int(exit_code))
    click.echo(f"❌ {exc}", err=True)

    if verbose:
        click.echo("\nTraceback:", err=True)
        click.echo(traceback.format_exc(), err=True)

    return int(exit_code)
