"""JSON file I/O with atomic writes (temp file + rename + fsync)."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

__all__ = ["JsonIOError", "read_json", "write_json_atomic"]


class JsonIOError(Exception):
    """Raised when a JSON file cannot be read or written."""


def read_json(file_path: Path | str, default: Any = None) -> Any:
    """Read a JSON document, returning ``default`` when the file is missing.

    Raises
    ------
    JsonIOError
        If the file exists but cannot be parsed
    """
    path = Path(file_path)
    if not path.exists():
        return default

    try:
        with path.open(encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise JsonIOError(f"Failed to read {path}: {exc}") from exc


def write_json_atomic(file_path: Path | str, data: Any, *, create_dirs: bool = True) -> None:
    """Write a JSON document atomically.

    Parameters
    ----------
    file_path
        Target file path
    data
        JSON-serializable document
    create_dirs
        Create parent directories if needed

    Raises
    ------
    JsonIOError
        If write fails
    """
    path = Path(file_path)

    try:
        if create_dirs and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.tmp",
            delete=False,
        ) as tmp_file:
            json.dump(data, tmp_file, indent=2, ensure_ascii=False, sort_keys=True)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            tmp_path = Path(tmp_file.name)

        os.replace(tmp_path, path)

    except (OSError, TypeError, ValueError) as exc:
        raise JsonIOError(f"Atomic write failed for {path}: {exc}") from exc
