"""Tests for loguru configuration, component loggers and timing."""

from __future__ import annotations

import json

import pytest

from tally.observability.loguru_config import COMPONENTS, configure_loguru, get_logger, timing_context


@pytest.fixture
def log_dir(tmp_path):
    path = tmp_path / "logs"
    configure_loguru(log_dir=path, level="DEBUG", enable_console=False)
    yield path
    configure_loguru(level="INFO")


def _records(path):
    return [json.loads(line)["record"] for line in path.read_text(encoding="utf-8").splitlines()]


def test_component_files_created(log_dir):
    assert (log_dir / "tally.jsonl").exists()
    for component in COMPONENTS:
        assert (log_dir / f"{component}.jsonl").exists()


def test_component_logger_routes_to_its_file(log_dir):
    get_logger("sync").info("Created record", source="oura", item="s1")

    records = _records(log_dir / "sync.jsonl")

    assert records[-1]["message"] == "Created record"
    assert records[-1]["extra"]["component"] == "sync"
    assert records[-1]["extra"]["source"] == "oura"
    assert not any(r["message"] == "Created record" for r in _records(log_dir / "registry.jsonl"))


def test_timing_context_logs_start_and_end(log_dir):
    with timing_context("read_events", component="pipeline", trace_id="t-1", buckets=2) as ctx:
        ctx["events"] = 5

    records = [r for r in _records(log_dir / "pipeline.jsonl") if r["extra"].get("operation") == "read_events"]

    assert [r["message"] for r in records] == ["START: read_events", "END: read_events"]
    assert records[1]["extra"]["trace_id"] == "t-1"
    assert records[1]["extra"]["events"] == 5
    assert records[1]["extra"]["duration_ms"] >= 0


def test_timing_context_logs_end_on_error(log_dir):
    with pytest.raises(RuntimeError):
        with timing_context("sync_source", component="pipeline"):
            raise RuntimeError("boom")

    messages = [r["message"] for r in _records(log_dir / "pipeline.jsonl")]
    assert messages[-1] == "END: sync_source"
