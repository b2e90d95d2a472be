"""
Safe file operations for Compliance Pulse.

Atomic JSON writes (temp file in the same directory, then rename) and
size-limited reads used by the history store, alert sink and validators.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


class FileTooLargeError(OSError):
    """Raised when a file exceeds the configured size limit."""

    pass


def atomic_write_json(path: Path, data: Any, indent: int | None = 2) -> None:
    """Write *data* as JSON to *path* atomically.

    The payload is written to a temporary file next to the target, flushed
    and fsynced, then moved over the target with ``os.replace``. A crash at
    any point leaves either the old file or the new file, never a mix.

    Raises:
        OSError: If the directory cannot be created or the write fails
        TypeError / ValueError: If *data* is not JSON serializable
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(data, indent=indent)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def read_json(path: Path) -> Any:
    """Read and parse a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the content is not valid JSON
    """
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


def read_bytes_limited(path: Path, max_bytes: int) -> bytes:
    """Read a file's raw bytes, refusing files larger than *max_bytes*."""
    size = Path(path).stat().st_size
    if size > max_bytes:
        raise FileTooLargeError(f"{path} is {size} bytes (limit {max_bytes})")
    with open(path, "rb") as fh:
        return fh.read()
