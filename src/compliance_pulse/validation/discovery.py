"""Decide which files are tracked and enumerate them under a root."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path


def is_tracked_path(
    path: str | Path,
    root: str | Path,
    extensions: Iterable[str],
    ignore_dirs: Iterable[str],
) -> bool:
    """Return True if *path* is a source file the monitor should validate.

    Hidden directories (``.git``, ``.pulse``, ``.venv`` ...) and any directory
    named in *ignore_dirs* are skipped; only *extensions* are accepted.
    """
    p = Path(path)
    try:
        rel_parts = p.resolve().relative_to(Path(root).resolve()).parts
    except ValueError:
        return False

    ignored = set(ignore_dirs)
    for part in rel_parts[:-1]:
        if part.startswith(".") or part in ignored:
            return False
    if not rel_parts or rel_parts[-1].startswith("."):
        return False

    return p.suffix.lower() in {e.lower() for e in extensions}


def discover_files(
    root: str | Path,
    extensions: Iterable[str],
    ignore_dirs: Iterable[str],
) -> list[str]:
    """Walk *root* and return tracked files as sorted absolute paths."""
    root_path = Path(root).resolve()
    exts = {e.lower() for e in extensions}
    ignored = set(ignore_dirs)
    found: list[str] = []

    for dirpath, dirnames, filenames in os.walk(root_path):
        # Prune in place so os.walk never descends into ignored trees
        dirnames[:] = [d for d in dirnames if not d.startswith(".") and d not in ignored]
        for name in filenames:
            if name.startswith("."):
                continue
            if Path(name).suffix.lower() in exts:
                found.append(str(Path(dirpath) / name))

    return sorted(found)
