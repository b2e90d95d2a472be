"""Runs validation cycles and keeps at most one cycle in flight.

Triggers arriving while a cycle runs are coalesced: their paths are merged
and exactly one follow-up cycle starts after the current one finishes.
Every cycle runs the same pipeline::

    validate -> aggregate -> store.append -> trend -> alerts -> broadcast
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..alerts import AlertEngine
from ..analytics import TrendAnalyzer
from ..live import LiveBroadcaster
from ..metrics import MetricsStore, build_snapshot
from ..models import Alert, EventType, FileResult, LiveEvent, MetricsSnapshot, TrendReport
from ..validation import Validator, discover_files, is_tracked_path, run_validations
from ..validation.runner import DEFAULT_MAX_BYTES, default_workers

logger = logging.getLogger(__name__)


class OrchestratorState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"


@dataclass(frozen=True)
class CycleReport:
    """Outcome of one validation cycle."""

    snapshot: MetricsSnapshot
    trend: Optional[TrendReport]
    alerts: tuple[Alert, ...]
    reason: str
    validated_files: int
    persisted: bool = True
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def degraded(self) -> bool:
        return self.snapshot.degraded or not self.persisted or bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot": self.snapshot.to_dict(),
            "trend": self.trend.to_dict() if self.trend else None,
            "alerts": [a.to_dict() for a in self.alerts],
            "reason": self.reason,
            "validatedFiles": self.validated_files,
            "persisted": self.persisted,
            "degraded": self.degraded,
            "errors": list(self.errors),
        }


class Orchestrator:
    """Owns the per-file result cache and drives the cycle pipeline.

    Args:
        root: Watched directory
        validator: Pluggable file validator
        store: History store (single writer: this orchestrator)
        analyzer: Trend analyzer
        alerts: Alert engine
        broadcaster: Live event fan-out
    """

    def __init__(
        self,
        root: str | Path,
        validator: Validator,
        store: MetricsStore,
        analyzer: TrendAnalyzer,
        alerts: AlertEngine,
        broadcaster: LiveBroadcaster,
        extensions: Iterable[str] = (".py",),
        ignore_dirs: Iterable[str] = (),
        validator_timeout: float = 2.0,
        validator_workers: Optional[int] = None,
        max_file_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        self.root = Path(root).resolve()
        self.validator = validator
        self.store = store
        self.analyzer = analyzer
        self.alerts = alerts
        self.broadcaster = broadcaster
        self.extensions = tuple(extensions)
        self.ignore_dirs = tuple(ignore_dirs)
        self.validator_timeout = validator_timeout
        self.validator_workers = validator_workers
        self.max_file_bytes = max_file_bytes

        self._lock = threading.Lock()
        self._state = OrchestratorState.IDLE
        self._pending = False
        self._pending_full = False
        self._pending_paths: set[str] = set()

        self._results: dict[str, FileResult] = {}
        self._discovered = False
        self._cycles = 0
        self._last_report: Optional[CycleReport] = None

        self._interval_stop = threading.Event()
        self._interval_thread: Optional[threading.Thread] = None

        # Shared across cycles: a hung validator holds at most _workers threads
        self._workers = validator_workers or default_workers()
        self._pool_lock = threading.Lock()
        self._pool: Optional[ThreadPoolExecutor] = None

    # ── State ─────────────────────────────────────────────────────

    @property
    def state(self) -> OrchestratorState:
        with self._lock:
            return self._state

    @property
    def cycles_completed(self) -> int:
        with self._lock:
            return self._cycles

    @property
    def last_report(self) -> Optional[CycleReport]:
        with self._lock:
            return self._last_report

    @property
    def tracked_files(self) -> int:
        with self._lock:
            return len(self._results)

    # ── Triggering ────────────────────────────────────────────────

    def trigger(
        self,
        paths: Optional[Iterable[str]] = None,
        reason: str = "change",
    ) -> Optional[CycleReport]:
        """Request a cycle for *paths* (``None`` means a full rescan).

        If a cycle is already running the request is merged into the pending
        follow-up and ``None`` is returned immediately. Otherwise the cycle
        (and any follow-ups queued meanwhile) runs on the calling thread and
        the last report is returned.
        """
        path_set = None if paths is None else {str(p) for p in paths}
        with self._lock:
            if self._state is not OrchestratorState.IDLE:
                self._pending = True
                if path_set is None:
                    self._pending_full = True
                else:
                    self._pending_paths.update(path_set)
                logger.debug("Cycle in progress, queued follow-up (%s)", reason)
                return None
            self._state = OrchestratorState.RUNNING

        last: Optional[CycleReport] = None
        while True:
            report: Optional[CycleReport] = None
            try:
                report = self._run_cycle(path_set, reason)
            except Exception:
                # _run_cycle guards each stage; reaching here is a bug
                logger.exception("Cycle failed unexpectedly")
                with self._lock:
                    self._state = OrchestratorState.ERROR

            with self._lock:
                if report is not None:
                    last = report
                    self._last_report = report
                    self._cycles += 1
                if not self._pending:
                    self._state = OrchestratorState.IDLE
                    break
                path_set = None if self._pending_full else set(self._pending_paths)
                self._pending = False
                self._pending_full = False
                self._pending_paths = set()
                self._state = OrchestratorState.RUNNING
                reason = "coalesced"
        return last

    def refresh(self) -> Optional[CycleReport]:
        """Force a full rescan."""
        return self.trigger(None, reason="manual")

    # ── Cycle ─────────────────────────────────────────────────────

    def _select_targets(self, paths: Optional[set[str]]) -> list[str]:
        if paths is None or not self._discovered:
            discovered = discover_files(self.root, self.extensions, self.ignore_dirs)
            keep = set(discovered)
            for stale in [p for p in self._results if p not in keep]:
                del self._results[stale]
            self._discovered = True
            return discovered

        targets: list[str] = []
        for raw in paths:
            path = str(Path(raw).resolve())
            if not is_tracked_path(path, self.root, self.extensions, self.ignore_dirs):
                continue
            if os.path.isfile(path):
                targets.append(path)
            else:
                self._results.pop(path, None)
        return sorted(targets)

    def _run_cycle(self, paths: Optional[set[str]], reason: str) -> CycleReport:
        start = time.perf_counter()
        errors: list[str] = []

        try:
            targets = self._select_targets(paths)
        except OSError as exc:
            errors.append(f"discovery: {exc}")
            logger.warning("File discovery failed: %s", exc)
            targets = []

        try:
            results = run_validations(
                self.validator,
                targets,
                timeout=self.validator_timeout,
                max_workers=self._workers,
                max_bytes=self.max_file_bytes,
                executor=self._validation_pool(),
            )
        except Exception as exc:
            errors.append(f"validation: {exc}")
            logger.exception("Validation stage failed")
            results = [FileResult(path=p, errored=True) for p in targets]

        for result in results:
            self._results[result.path] = result

        duration_ms = (time.perf_counter() - start) * 1000.0
        snapshot = build_snapshot(self._results.values(), duration_ms, degraded=bool(errors))
        previous = self.store.latest()

        persisted = False
        try:
            persisted = self.store.append(snapshot)
            # The store may have nudged the timestamp forward
            snapshot = self.store.latest() or snapshot
        except Exception as exc:
            errors.append(f"store: {exc}")
            logger.exception("Could not append snapshot")

        trend: Optional[TrendReport] = None
        try:
            trend = self.analyzer.analyze(self.store.all())
        except Exception as exc:
            errors.append(f"trend: {exc}")
            logger.exception("Trend analysis failed")

        fired: list[Alert] = []
        try:
            fired = self.alerts.evaluate(snapshot, trend.primary if trend else None, previous)
        except Exception as exc:
            errors.append(f"alerts: {exc}")
            logger.exception("Alert evaluation failed")

        report = CycleReport(
            snapshot=snapshot,
            trend=trend,
            alerts=tuple(fired),
            reason=reason,
            validated_files=len(results),
            persisted=persisted,
            errors=tuple(errors),
        )
        self._broadcast(report)

        logger.info(
            "Cycle (%s): %d file(s) validated, score %.2f, %d violation(s), %d alert(s)",
            reason,
            len(results),
            snapshot.compliance_score,
            snapshot.total_violations,
            len(fired),
        )
        return report

    def _broadcast(self, report: CycleReport) -> None:
        try:
            self.broadcaster.broadcast(
                LiveEvent(
                    type=EventType.METRICS,
                    payload={
                        "snapshot": report.snapshot.to_dict(),
                        "trend": report.trend.primary.to_dict() if report.trend else None,
                        "volatility": report.trend.volatility if report.trend else None,
                        "degraded": report.degraded,
                    },
                )
            )
            for alert in report.alerts:
                self.broadcaster.broadcast(LiveEvent(type=EventType.ALERT, payload=alert.to_dict()))
        except Exception:
            logger.exception("Broadcast failed")

    # ── Validation pool ───────────────────────────────────────────

    def _validation_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._workers,
                    thread_name_prefix="pulse-validate",
                )
            return self._pool

    def close(self) -> None:
        """Stop the interval thread and release validation workers."""
        self.stop_interval()
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=False, cancel_futures=True)

    # ── Interval scheduling ───────────────────────────────────────

    def start_interval(self, interval_seconds: float) -> None:
        """Run a full rescan every *interval_seconds* on a daemon thread."""
        if interval_seconds <= 0:
            return
        if self._interval_thread is not None and self._interval_thread.is_alive():
            return
        self._interval_stop.clear()
        self._interval_thread = threading.Thread(
            target=self._interval_loop,
            args=(interval_seconds,),
            name="pulse-interval",
            daemon=True,
        )
        self._interval_thread.start()

    def stop_interval(self) -> None:
        self._interval_stop.set()
        if self._interval_thread is not None:
            self._interval_thread.join(timeout=5)
            if self._interval_thread.is_alive():
                logger.warning("Interval thread did not exit within 5 seconds (cycle in progress)")
            self._interval_thread = None

    def _interval_loop(self, interval_seconds: float) -> None:
        while not self._interval_stop.wait(interval_seconds):
            self.trigger(None, reason="interval")
