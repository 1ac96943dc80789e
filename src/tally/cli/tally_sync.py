"""CLI module for syncing sources into the destination and exporting to calendars."""

from __future__ import annotations

import asyncio

import click

from ..pipelines.sync_pipeline import create_sync_pipeline
from .cli_common import ExitCode, emit, handle_cli_error, load_runtime, resolve_window, window_options

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(
    context_settings=CONTEXT_SETTINGS,
    help="Sync external sources (Oura, Strava, Withings, GitHub, Steam)",
)
def cli() -> None:
    """Root sync command."""


@cli.command("run")
@click.option("--source", "sources", multiple=True, required=True, help="Source id (repeatable)")
@window_options
@click.option("--dry-run", is_flag=True, help="Check existence without writing")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def run_command(
    sources: tuple[str, ...],
    week: int | None,
    month: int | None,
    last_week: bool,
    this_week: bool,
    year: int | None,
    dry_run: bool,
    json_output: bool,
    verbose: bool,
) -> int:
    """Fetch, transform and write new records for a window."""

    try:
        runtime = load_runtime(verbose)
        choice = resolve_window(
            week=week,
            month=month,
            last_week=last_week,
            this_week=this_week,
            year=year,
            week_catalog=runtime.week_catalog(),
        )

        pipeline = create_sync_pipeline(
            settings=runtime.settings,
            registry=runtime.registry,
            store=runtime.store,
            dry_run=dry_run,
            log_path=runtime.pipeline_log_path("sync"),
        )

        if not json_output:
            click.echo(f"🔄 Syncing {', '.join(sources)} for {choice.describe()}...")

        result = asyncio.run(pipeline.run(list(sources), choice.window))
    except Exception as exc:
        return handle_cli_error(exc, verbose)

    lines = []
    for source_id, source_result in result.results.items():
        if source_result.fetch_error:
            lines.append(f"❌ {source_id}: fetch failed: {source_result.fetch_error}")
            continue
        lines.append(
            f"{'🧪' if dry_run else '✅'} {source_id}: {len(source_result.created)} created, "
            f"{len(source_result.skipped)} skipped, {len(source_result.errors)} errors"
        )
        for record in source_result.errors:
            lines.append(f"   - {record.external_id}: {record.error}")

    if verbose:
        lines.append(f"   Duration: {result.duration_ms:.2f}ms")
        lines.append(f"   Trace ID: {result.trace_id}")

    emit(result.to_dict(), json_output, lines)
    return int(ExitCode.SUCCESS)


@cli.command("calendar")
@click.option("--source", "sources", multiple=True, required=True, help="Source id (repeatable)")
@window_options
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def calendar_command(
    sources: tuple[str, ...],
    week: int | None,
    month: int | None,
    last_week: bool,
    this_week: bool,
    year: int | None,
    json_output: bool,
    verbose: bool,
) -> int:
    """Create calendar events for synced records not yet exported.

    Without window options every unexported record is considered.
    """

    try:
        runtime = load_runtime(verbose)

        window = None
        if week is not None or month is not None or last_week or this_week:
            window = resolve_window(
                week=week,
                month=month,
                last_week=last_week,
                this_week=this_week,
                year=year,
                week_catalog=runtime.week_catalog(),
            ).window

        pipeline = create_sync_pipeline(
            settings=runtime.settings,
            registry=runtime.registry,
            store=runtime.store,
            calendar=runtime.calendar,
            log_path=runtime.pipeline_log_path("calendar"),
        )

        result = asyncio.run(pipeline.run_calendar(list(sources), window))
    except Exception as exc:
        return handle_cli_error(exc, verbose)

    lines = []
    for source_id, source_result in result.results.items():
        if source_result.query_error:
            lines.append(f"❌ {source_id}: query failed: {source_result.query_error}")
            continue
        lines.append(f"📅 {source_id}: {len(source_result.created)} events, {len(source_result.errors)} errors")
        for record in source_result.errors:
            lines.append(f"   - {record.external_id}: {record.error}")

    emit(result.to_dict(), json_output, lines)
    return int(ExitCode.SUCCESS)
