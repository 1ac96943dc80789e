#!/usr/bin/env python3
"""Main CLI module for tally."""

import sys
from pathlib import Path

import click

from ..config.settings import generate_example_env
from .tally_recap import cli as recap_cli
from .tally_sync import cli as sync_cli
from .tally_weeks import cli as weeks_cli

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
EPILOG = """
Examples:
  # Sync sources into the destination
  tally sync run --source oura --source strava --last-week
  tally sync run --source withings --week 12 --year 2024 --dry-run
  tally sync calendar --source strava         # Export new records to calendars

  # Recaps
  tally recap week --week 12 --year 2024      # Weekly personal recap
  tally recap month --month 3 --type work     # Monthly work recap

  # Week numbering
  tally weeks list --month 3 --year 2024
  tally weeks show --week 1 --year 2025
""".strip()


@click.group(
    context_settings=CONTEXT_SETTINGS,
    help="tally - personal data sync and weekly/monthly recaps",
    epilog=EPILOG,
)
def cli() -> None:
    """Root CLI command."""


@cli.group("config")
def config_cli() -> None:
    """Configuration helpers."""


@config_cli.command("example")
@click.option("--output", "output", type=click.Path(dir_okay=False), help="Write the example to a file")
def config_example(output: str | None) -> int:
    """Print an example .env file."""
    example = generate_example_env(Path(output) if output else None)
    if output:
        click.echo(f"✅ Example configuration written to {output}")
    else:
        click.echo(example)
    return 0


cli.add_command(sync_cli, "sync")
cli.add_command(recap_cli, "recap")
cli.add_command(weeks_cli, "weeks")


def main(args: list[str] | None = None) -> int:
    """Main CLI entry point."""

    try:
        normalized_args = list(args) if args is not None else None
        result = cli.main(args=normalized_args, standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except SystemExit as exc:  # pragma: no cover - click normalizes the exit code
        return int(exc.code) if exc.code is not None else 0

    return int(result) if isinstance(result, int) else 0


if __name__ == "__main__":  # pragma: no cover - executable module
    sys.exit(main())
