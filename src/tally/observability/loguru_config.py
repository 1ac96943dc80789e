"""Loguru configuration with component binding and timing helpers.

Provides:
- Console logging plus structured JSONL files
- Component-bound loggers (``rollups``, ``registry``, ``sync``, ``pipeline``, ``cli``)
- Context manager for timing operations
"""

from __future__ import annotations

import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Generator

__all__ = [
    "COMPONENTS",
    "configure_loguru",
    "get_logger",
    "timing_context",
]

COMPONENTS = ("rollups", "registry", "sync", "pipeline", "cli")

# Records logged before configure_loguru() still need the component field
logger.configure(extra={"component": "tally"})


def configure_loguru(
    *,
    log_dir: Path | None = None,
    level: str = "INFO",
    rotation: str = "50 MB",
    retention: str = "14 days",
    enable_console: bool = True,
) -> None:
    """Configure loguru sinks.

    Parameters
    ----------
    log_dir
        Directory for JSONL log files (no file sinks when None)
    level
        Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    rotation
        Log rotation policy (e.g., "50 MB", "1 day")
    retention
        Log retention policy (e.g., "14 days")
    enable_console
        Enable console output on stderr

    Example
    -------
    >>> from tally.observability.loguru_config import configure_loguru
    >>> configure_loguru(log_dir=Path("logs"), level="DEBUG")
    """
    logger.remove()

    if enable_console:
        logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[component]}</cyan> | "
            "<level>{message}</level>",
            level=level,
            colorize=True,
            backtrace=False,
            diagnose=False,
        )

    if log_dir is None:
        return

    log_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        log_dir / "tally.jsonl",
        format="{message}",
        level=level,
        rotation=rotation,
        retention=retention,
        serialize=True,
        backtrace=True,
        diagnose=False,
    )

    # Component-specific log files
    for component in COMPONENTS:
        logger.add(
            log_dir / f"{component}.jsonl",
            format="{message}",
            level=level,
            rotation=rotation,
            retention=retention,
            serialize=True,
            filter=lambda record, comp=component: record["extra"].get("component") == comp,
        )

    logger.bind(component="cli").debug("Loguru configured", log_dir=str(log_dir), level=level)


def get_logger(component: str = "tally") -> Any:
    """Get logger instance bound to a component.

    Parameters
    ----------
    component
        Component name (rollups, registry, sync, pipeline, cli)

    Returns
    -------
    Logger
        Loguru logger bound to component
    """
    return logger.bind(component=component)


@contextmanager
def timing_context(
    operation: str,
    *,
    component: str = "tally",
    trace_id: str | None = None,
    **metadata: Any,
) -> Generator[dict[str, Any], None, None]:
    """Time an operation and log its start and end.

    Parameters
    ----------
    operation
        Name of the operation being timed
    component
        Component name for filtering logs
    trace_id
        Trace ID for correlation
    **metadata
        Additional metadata to log

    Yields
    ------
    dict
        Context dictionary; values added to it are logged with the end record

    Example
    -------
    >>> with timing_context("sync_source", component="sync", source="oura") as ctx:
    ...     result = await orchestrator.run(window)
    ...     ctx["created"] = len(result.created)
    """
    start_ns = time.perf_counter_ns()
    context: dict[str, Any] = {}
    bound = logger.bind(component=component, operation=operation, trace_id=trace_id)

    bound.debug(f"START: {operation}", phase="start", **metadata)

    try:
        yield context
    finally:
        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        bound.debug(
            f"END: {operation}",
            phase="end",
            duration_ms=round(duration_ms, 3),
            **{**metadata, **context},
        )
