"""Filesystem watcher that turns raw notifications into FileChangeEvents."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Callable, Optional

from watchfiles import Change, watch

from ..models import ChangeType, FileChangeEvent
from ..validation import is_tracked_path

logger = logging.getLogger(__name__)

_CHANGE_TYPES = {
    Change.added: ChangeType.CREATED,
    Change.modified: ChangeType.MODIFIED,
    Change.deleted: ChangeType.DELETED,
}


class _TrackedFilter:
    """watchfiles filter: only tracked source files under the root."""

    def __init__(self, root: str, extensions: Iterable[str], ignore_dirs: Iterable[str]) -> None:
        self.root = root
        self.extensions = tuple(extensions)
        self.ignore_dirs = tuple(ignore_dirs)

    def __call__(self, change: Change, path: str) -> bool:
        return is_tracked_path(path, self.root, self.extensions, self.ignore_dirs)


class FileChangeWatcher:
    """Watches a directory tree and reports tracked-file changes.

    Uses ``watchfiles`` (Rust-backed) on a daemon thread. Events are handed
    to *on_event* one by one; debouncing is the consumer's job.
    """

    def __init__(
        self,
        root_dir: str | Path,
        on_event: Callable[[FileChangeEvent], object],
        extensions: Iterable[str],
        ignore_dirs: Iterable[str],
    ) -> None:
        self.root_dir = str(Path(root_dir).resolve())
        self.on_event = on_event
        self._filter = _TrackedFilter(self.root_dir, extensions, ignore_dirs)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the watcher thread."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="pulse-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop."""
        logger.debug("Stopping watcher thread...")
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            if self._thread.is_alive():
                logger.warning("Watcher thread did not exit cleanly within 5 seconds")
            self._thread = None

    def _watch_loop(self) -> None:
        logger.info("Watching %s for changes", self.root_dir)
        try:
            for changes in watch(
                self.root_dir,
                stop_event=self._stop_event,
                # Debouncing happens downstream; keep the native batching short
                debounce=50,
                rust_timeout=5000,
                watch_filter=self._filter,
            ):
                if self._stop_event.is_set():
                    break
                self.dispatch(changes)
        except Exception:
            logger.exception("File watcher stopped unexpectedly")

    def dispatch(self, changes: Iterable[tuple[Change, str]]) -> int:
        """Convert one watchfiles batch into events. Returns events emitted."""
        now = time.time()
        emitted = 0
        for change, path in sorted(changes, key=lambda c: c[1]):
            change_type = _CHANGE_TYPES.get(change)
            if change_type is None:
                continue
            event = FileChangeEvent(path=path, change_type=change_type, timestamp=now)
            try:
                self.on_event(event)
            except Exception:
                logger.exception("Change handler failed for %s", path)
                continue
            emitted += 1
        return emitted
