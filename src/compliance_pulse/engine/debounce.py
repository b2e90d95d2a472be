"""Collapse bursts of file-change events into a single trigger."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Union

from ..models import FileChangeEvent

logger = logging.getLogger(__name__)


class Debouncer:
    """Accumulates changed paths and fires once per quiet window.

    Every :meth:`submit` restarts the timer; when *window_seconds* pass with
    no new submission the callback receives the union of all paths seen
    since the last fire. The callback runs on the timer thread.
    """

    def __init__(
        self,
        window_seconds: float,
        callback: Callable[[frozenset[str]], object],
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        if window_seconds < 0:
            raise ValueError("debounce window must be non-negative")
        self.window_seconds = window_seconds
        self._callback = callback
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._pending: set[str] = set()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

    @property
    def pending(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._pending)

    def submit(self, event: Union[FileChangeEvent, str]) -> None:
        path = event.path if isinstance(event, FileChangeEvent) else str(event)
        if self.window_seconds == 0:
            with self._lock:
                self._pending.add(path)
            self.flush()
            return

        with self._lock:
            self._pending.add(path)
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = self._timer_factory(self.window_seconds, self._fire, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _take(self) -> frozenset[str]:
        paths = frozenset(self._pending)
        self._pending = set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1
        return paths

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A newer submit superseded this timer
            if generation != self._generation:
                return
            paths = self._take()
        self._invoke(paths)

    def flush(self) -> Optional[frozenset[str]]:
        """Fire immediately on the calling thread if anything is pending."""
        with self._lock:
            if not self._pending:
                return None
            paths = self._take()
        self._invoke(paths)
        return paths

    def cancel(self) -> None:
        """Discard pending paths without firing."""
        with self._lock:
            self._take()

    def _invoke(self, paths: frozenset[str]) -> None:
        if not paths:
            return
        logger.debug("Debounce window closed with %d path(s)", len(paths))
        try:
            self._callback(paths)
        except Exception:
            logger.exception("Debounced callback failed")
