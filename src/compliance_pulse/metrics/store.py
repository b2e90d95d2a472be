"""Bounded, append-only history of MetricsSnapshot with atomic persistence.

Single writer (the orchestrator), many readers. Readers always receive
tuples, never the live deque, so they cannot observe a half-applied append.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from ..exceptions import ErrorCode, PersistenceError
from ..file_ops import atomic_write_json, read_json
from ..models import MetricsSnapshot, parse_timestamp

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class MetricsStore:
    """FIFO-bounded time series of snapshots.

    Args:
        max_size: Maximum number of snapshots retained (N)
        path: JSON history file; ``None`` keeps the store in memory only
    """

    def __init__(self, max_size: int = 100, path: Optional[Path] = None) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._series: deque[MetricsSnapshot] = deque(maxlen=max_size)
        self._degraded = False

    # ── Writes ────────────────────────────────────────────────────

    def append(self, snapshot: MetricsSnapshot) -> bool:
        """Append *snapshot*, evicting the oldest entry past ``max_size``.

        Timestamps are kept strictly increasing: a snapshot not newer than
        the tail is shifted one microsecond past it.

        Returns:
            True if the history was persisted (or no file is configured),
            False if the store is running in-memory only for this cycle.
        """
        with self._lock:
            if self._series and snapshot.timestamp <= self._series[-1].timestamp:
                adjusted = self._series[-1].timestamp + _TICK
                logger.debug(
                    "Snapshot timestamp %s not after tail, shifted to %s",
                    snapshot.timestamp.isoformat(),
                    adjusted.isoformat(),
                )
                snapshot = replace(snapshot, timestamp=adjusted)
            self._series.append(snapshot)
            return self._persist()

    def clear(self) -> bool:
        """Drop all history (in memory and on disk)."""
        with self._lock:
            self._series.clear()
            return self._persist()

    def _persist(self) -> bool:
        if self.path is None:
            return True

        data = [s.to_dict() for s in self._series]
        last_error: Optional[Exception] = None
        for attempt in (1, 2):
            try:
                atomic_write_json(self.path, data)
                if self._degraded:
                    logger.info("History persistence recovered (%s)", self.path)
                self._degraded = False
                return True
            except (OSError, TypeError, ValueError) as exc:
                last_error = exc
                logger.debug("History write attempt %d failed: %s", attempt, exc)

        error = PersistenceError(
            message=f"Could not write history file: {last_error}",
            code=ErrorCode.CP200,
            context={"path": str(self.path)},
            recovery_hint="Check permissions and free space for the history directory",
        )
        logger.warning("%s; continuing in memory (degraded)", error)
        self._degraded = True
        return False

    # ── Reads ─────────────────────────────────────────────────────

    def recent(self, count: int) -> tuple[MetricsSnapshot, ...]:
        """Return the newest *count* snapshots, oldest first."""
        if count <= 0:
            return ()
        with self._lock:
            items = tuple(self._series)
        return items[-count:]

    def since(self, timestamp: datetime | str) -> tuple[MetricsSnapshot, ...]:
        """Return snapshots with ``timestamp >= since``, oldest first."""
        ts = parse_timestamp(timestamp)
        with self._lock:
            return tuple(s for s in self._series if s.timestamp >= ts)

    def all(self) -> tuple[MetricsSnapshot, ...]:
        with self._lock:
            return tuple(self._series)

    def latest(self) -> Optional[MetricsSnapshot]:
        with self._lock:
            return self._series[-1] if self._series else None

    def previous(self) -> Optional[MetricsSnapshot]:
        """The snapshot before the latest one, if any."""
        with self._lock:
            return self._series[-2] if len(self._series) > 1 else None

    @property
    def degraded(self) -> bool:
        """True while the last write failed and the store is memory-only."""
        return self._degraded

    def __len__(self) -> int:
        with self._lock:
            return len(self._series)

    # ── Startup ───────────────────────────────────────────────────

    def load(self) -> int:
        """Rebuild the series from the history file.

        A missing file is an empty history. A malformed file is discarded
        with a warning; individual malformed or out-of-order entries are
        dropped. Never raises for bad data.

        Returns:
            Number of snapshots loaded.
        """
        if self.path is None:
            return 0

        try:
            raw = read_json(self.path)
        except FileNotFoundError:
            logger.debug("No history file at %s, starting empty", self.path)
            return 0
        except (OSError, ValueError) as exc:
            logger.warning(
                "%s",
                PersistenceError(
                    message=f"Discarding unreadable history file: {exc}",
                    code=ErrorCode.CP201,
                    context={"path": str(self.path)},
                ),
            )
            return 0

        if not isinstance(raw, list):
            logger.warning(
                "%s",
                PersistenceError(
                    message="Discarding history file: top level is not an array",
                    code=ErrorCode.CP201,
                    context={"path": str(self.path)},
                ),
            )
            return 0

        snapshots: list[MetricsSnapshot] = []
        dropped = 0
        for entry in raw:
            try:
                if not isinstance(entry, dict):
                    raise TypeError("entry is not an object")
                snapshot = MetricsSnapshot.from_dict(entry)
            except (KeyError, TypeError, ValueError) as exc:
                dropped += 1
                logger.debug("Dropping malformed history entry: %s", exc)
                continue
            if snapshots and snapshot.timestamp <= snapshots[-1].timestamp:
                dropped += 1
                continue
            snapshots.append(snapshot)

        if dropped:
            logger.warning("%d invalid entries removed from history %s", dropped, self.path)

        with self._lock:
            self._series = deque(snapshots[-self.max_size :], maxlen=self.max_size)
            return len(self._series)
