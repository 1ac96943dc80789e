"""CLI module for inspecting week numbering and month → weeks relations."""

from __future__ import annotations

import asyncio
from datetime import date

import click

from ..rollups.time_windows import format_week_display, month_to_weeks, month_window, week_number_of
from .cli_common import ExitCode, emit, handle_cli_error, load_runtime, resolve_week

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(
    context_settings=CONTEXT_SETTINGS,
    help="Week numbering (Sunday-Saturday weeks, week 1 holds January 1)",
)
def cli() -> None:
    """Root weeks command."""


@cli.command("list")
@click.option("--month", "month", type=int, required=True, help="Month number (1-12)")
@click.option("--year", "year", type=int, help="Year (default: current year)")
@click.option("--local", "local_only", is_flag=True, help="Ignore persisted week records")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def list_command(month: int, year: int | None, local_only: bool, json_output: bool, verbose: bool) -> int:
    """List the weeks overlapping a month."""

    try:
        year = year or date.today().year
        month_window(month, year)

        runtime = load_runtime(verbose)
        catalog = None if local_only else runtime.week_catalog()
        weeks = asyncio.run(month_to_weeks(month, year, catalog))
    except Exception as exc:
        return handle_cli_error(exc, verbose)

    numbered = [(week_number_of(week.start, week.end.year), week) for week in weeks]
    data = {
        "month": month,
        "year": year,
        "source": "local" if catalog is None else "persisted",
        "weeks": [{"week": number, **week.to_dict()} for number, week in numbered],
    }
    lines = [f"📅 {date(year, month, 1):%B %Y}"]
    lines.extend(f"   {format_week_display(number, week)}" for number, week in numbered)

    emit(data, json_output, lines)
    return int(ExitCode.SUCCESS)


@cli.command("show")
@click.option("--week", "week", type=int, help="Week number (1-53, default: this week)")
@click.option("--year", "year", type=int, help="Year (default: current year)")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def show_command(week: int | None, year: int | None, json_output: bool, verbose: bool) -> int:
    """Show the dates of one week."""

    try:
        choice = resolve_week(week, year, this=week is None)
    except Exception as exc:
        return handle_cli_error(exc, verbose)

    data = {"week": choice.number, "year": choice.year, **choice.window.to_dict()}
    emit(data, json_output, [format_week_display(choice.number, choice.window)])
    return int(ExitCode.SUCCESS)
