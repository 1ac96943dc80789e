"""CLI module for weekly and monthly recaps."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import TYPE_CHECKING

import click

from ..pipelines.event_sources import CalendarEventSource, JsonFileEventSource
from ..pipelines.recap_pipeline import RECAP_DATE_RANGE_PROPERTY, RECAP_TITLE_PROPERTY, create_recap_pipeline
from ..rollups.time_windows import month_window
from .cli_common import ExitCode, emit, handle_cli_error, load_runtime, resolve_week

if TYPE_CHECKING:
    from ..pipelines.event_sources import EventSource
    from ..pipelines.recap_pipeline import RecapPipelineResult
    from .cli_common import Runtime

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

EVENT_SOURCES = ("calendar", "files")


@click.group(
    context_settings=CONTEXT_SETTINGS,
    help="Aggregate calendar events into weekly and monthly recaps",
)
def cli() -> None:
    """Root recap command."""


def _recap_options(func):
    func = click.option("--verbose", "-v", is_flag=True, help="Verbose output")(func)
    func = click.option("--json", "json_output", is_flag=True, help="Output as JSON")(func)
    func = click.option("--dry-run", is_flag=True, help="Compute without writing the recap")(func)
    func = click.option(
        "--events",
        "events_from",
        type=click.Choice(EVENT_SOURCES),
        default="calendar",
        show_default=True,
        help="Read events from the calendar or from exported files (<data_dir>/events)",
    )(func)
    func = click.option(
        "--type",
        "source_type",
        type=click.Choice(("personal", "work")),
        default="personal",
        show_default=True,
        help="Recap type",
    )(func)
    func = click.option("--group", "groups", multiple=True, help="Summary group id (repeatable, default: all)")(func)
    return func


def _event_source(runtime: Runtime, events_from: str) -> EventSource:
    if events_from == "files":
        return JsonFileEventSource(runtime.settings.data_dir / "events")
    return CalendarEventSource(
        runtime.calendar,
        runtime.registry,
        runtime.settings.env,
        store=runtime.store,
    )


def _report(result: RecapPipelineResult, dry_run: bool, json_output: bool, verbose: bool) -> int:
    if result.success:
        if dry_run:
            action = "dry run, not written"
        else:
            action = "created" if result.created else "updated"
        lines = [f"✅ {result.key}: {action} ({result.window_start} → {result.window_end})"]
        for name, value in result.properties.items():
            if name not in (RECAP_TITLE_PROPERTY, RECAP_DATE_RANGE_PROPERTY):
                lines.append(f"   {name}: {value}")
    else:
        lines = [f"❌ {result.key}: recap not written"]
        lines.extend(f"   - {error}" for error in result.errors)

    if verbose:
        lines.append(f"   Duration: {result.duration_ms:.2f}ms")
        lines.append(f"   Trace ID: {result.trace_id}")

    emit(result.to_dict(), json_output, lines)
    return int(ExitCode.SUCCESS)


@cli.command("week")
@click.option("--week", "week", type=int, help="Week number (1-53)")
@click.option("--last-week", is_flag=True, help="Previous Sunday-Saturday week (default)")
@click.option("--this-week", is_flag=True, help="Current Sunday-Saturday week")
@click.option("--year", "year", type=int, help="Year (default: current year)")
@_recap_options
def week_command(
    week: int | None,
    last_week: bool,
    this_week: bool,
    year: int | None,
    groups: tuple[str, ...],
    source_type: str,
    events_from: str,
    dry_run: bool,
    json_output: bool,
    verbose: bool,
) -> int:
    """Create or update a weekly recap."""

    try:
        choice = resolve_week(week, year, last=last_week, this=this_week)
        runtime = load_runtime(verbose)

        pipeline = create_recap_pipeline(
            settings=runtime.settings,
            registry=runtime.registry,
            store=runtime.store,
            event_source=_event_source(runtime, events_from),
            dry_run=dry_run,
            log_path=runtime.pipeline_log_path("recap"),
        )

        if not json_output:
            click.echo(f"📊 Building {source_type} recap for {choice.describe()}...")

        result = asyncio.run(
            pipeline.run_week(choice.number, choice.year, groups=list(groups) or None, source_type=source_type)
        )
    except Exception as exc:
        return handle_cli_error(exc, verbose)

    return _report(result, dry_run, json_output, verbose)


@cli.command("month")
@click.option("--month", "month", type=int, help="Month number (1-12, default: current month)")
@click.option("--year", "year", type=int, help="Year (default: current year)")
@_recap_options
def month_command(
    month: int | None,
    year: int | None,
    groups: tuple[str, ...],
    source_type: str,
    events_from: str,
    dry_run: bool,
    json_output: bool,
    verbose: bool,
) -> int:
    """Create or update a monthly recap."""

    try:
        today = date.today()
        month = month if month is not None else today.month
        year = year or today.year
        month_window(month, year)
        runtime = load_runtime(verbose)

        pipeline = create_recap_pipeline(
            settings=runtime.settings,
            registry=runtime.registry,
            store=runtime.store,
            event_source=_event_source(runtime, events_from),
            week_catalog=runtime.week_catalog(),
            dry_run=dry_run,
            log_path=runtime.pipeline_log_path("recap"),
        )

        if not json_output:
            click.echo(f"📊 Building {source_type} recap for {date(year, month, 1):%B %Y}...")

        result = asyncio.run(
            pipeline.run_month(month, year, groups=list(groups) or None, source_type=source_type)
        )
    except Exception as exc:
        return handle_cli_error(exc, verbose)

    return _report(result, dry_run, json_output, verbose)
