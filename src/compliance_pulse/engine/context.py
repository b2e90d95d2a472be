"""MonitorEngine: wires every component together and exposes the query API.

Construction performs no I/O beyond validating the root; :meth:`start` loads
history, restores alert cooldowns, runs the initial full scan and starts
the background threads. :meth:`stop` is idempotent.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from ..alerts import AlertEngine, JsonFileAlertSink
from ..analytics import RiskAssessment, TrendAnalyzer, assess_risk
from ..config import MonitorConfig
from ..exceptions import InvalidPathError
from ..live import EventHandler, LiveBroadcaster
from ..metrics import MetricsStore
from ..models import Alert, FileChangeEvent, ForecastResult, MetricsSnapshot, TrendResult
from ..validation import PatternValidator, Validator
from .debounce import Debouncer
from .orchestrator import CycleReport, Orchestrator
from .watcher import FileChangeWatcher

logger = logging.getLogger(__name__)


class MonitorEngine:
    """The monitoring engine for one watched directory."""

    def __init__(
        self,
        root: Union[str, Path],
        config: Optional[MonitorConfig] = None,
        validator: Optional[Validator] = None,
    ) -> None:
        self.root = Path(root).resolve()
        if not self.root.exists():
            raise InvalidPathError(self.root, "does not exist")
        if not self.root.is_dir():
            raise InvalidPathError(self.root, "is not a directory")

        self.config = config or MonitorConfig()
        cfg = self.config

        self.store = MetricsStore(cfg.history_size, cfg.resolve(self.root, cfg.history_file))
        self.analyzer = TrendAnalyzer(cfg.trend)
        self.broadcaster = LiveBroadcaster(
            heartbeat_interval=cfg.heartbeat_interval_seconds,
            heartbeat_timeout=cfg.heartbeat_timeout_seconds,
        )

        alert_path = cfg.resolve(self.root, cfg.alerts.history_file)
        self.alert_sink = (
            JsonFileAlertSink(alert_path, cfg.alerts.history_size) if alert_path is not None else None
        )
        self.alerts = AlertEngine.from_config(
            cfg.alerts,
            sinks=[self.alert_sink] if self.alert_sink is not None else (),
        )

        self.validator = validator or PatternValidator()
        self.orchestrator = Orchestrator(
            root=self.root,
            validator=self.validator,
            store=self.store,
            analyzer=self.analyzer,
            alerts=self.alerts,
            broadcaster=self.broadcaster,
            extensions=cfg.watched_extensions,
            ignore_dirs=cfg.ignore_dirs,
            validator_timeout=cfg.validator_timeout_seconds,
            validator_workers=cfg.validator_workers,
            max_file_bytes=cfg.max_file_size_bytes,
        )
        self.debouncer = Debouncer(cfg.debounce_seconds, self._on_debounced)
        self.watcher: Optional[FileChangeWatcher] = None

        self._lifecycle_lock = threading.Lock()
        self._started = False

    @classmethod
    def from_config(
        cls,
        root: Union[str, Path],
        config: MonitorConfig,
        validator: Optional[Validator] = None,
    ) -> MonitorEngine:
        return cls(root, config, validator)

    # ── Lifecycle ─────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._started

    def load_state(self) -> None:
        """Load persisted history and alert cooldowns."""
        loaded = self.store.load()
        if loaded:
            logger.info("Loaded %d snapshot(s) from history", loaded)
        if self.alert_sink is not None:
            self.alerts.restore(self.alert_sink.loaded())

    def start(self, watch: bool = True, interval: bool = True) -> Optional[CycleReport]:
        """Load state, run the initial scan, then start background threads."""
        with self._lifecycle_lock:
            if self._started:
                return self.orchestrator.last_report
            self._started = True

        self.load_state()
        report = self.orchestrator.trigger(None, reason="startup")
        self.broadcaster.start()

        if watch:
            self.watcher = FileChangeWatcher(
                self.root,
                on_event=self.on_file_event,
                extensions=self.config.watched_extensions,
                ignore_dirs=self.config.ignore_dirs,
            )
            self.watcher.start()
        if interval:
            self.orchestrator.start_interval(self.config.interval_seconds)
        return report

    def stop(self) -> None:
        with self._lifecycle_lock:
            if not self._started:
                return
            self._started = False

        logger.debug("Stopping monitor engine...")
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        self.debouncer.cancel()
        self.orchestrator.close()
        self.broadcaster.stop()
        self.broadcaster.close_all()

    def __enter__(self) -> MonitorEngine:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    # ── Triggers ──────────────────────────────────────────────────

    def on_file_event(self, event: FileChangeEvent) -> None:
        logger.debug("%s %s", event.change_type.value, event.path)
        self.debouncer.submit(event)

    def _on_debounced(self, paths: frozenset[str]) -> None:
        self.orchestrator.trigger(paths, reason="change")

    def refresh(self) -> Optional[CycleReport]:
        """Run a full rescan now (or queue one if a cycle is running)."""
        return self.orchestrator.refresh()

    # ── Query API ─────────────────────────────────────────────────

    def get_current_metrics(self) -> Optional[MetricsSnapshot]:
        return self.store.latest()

    def get_history(
        self,
        count: Optional[int] = None,
        since: Optional[Union[datetime, str]] = None,
    ) -> tuple[MetricsSnapshot, ...]:
        """History oldest first, filtered by *since* then limited to *count*."""
        series = self.store.since(since) if since is not None else self.store.all()
        if count is not None:
            series = series[-count:] if count > 0 else ()
        return series

    def get_trend(self, window: Union[str, int] = "short") -> TrendResult:
        return self.analyzer.trend(self.store.all(), window)

    def get_forecast(self, horizon: Optional[int] = None) -> ForecastResult:
        return self.analyzer.forecast(self.store.all(), horizon)

    def get_alerts(self, count: Optional[int] = None) -> tuple[Alert, ...]:
        return self.alerts.history(count)

    def get_risk(self) -> RiskAssessment:
        return assess_risk(self.store.all())

    def get_status(self) -> dict[str, Any]:
        last = self.orchestrator.last_report
        return {
            "root": str(self.root),
            "running": self._started,
            "state": self.orchestrator.state.value,
            "cycles": self.orchestrator.cycles_completed,
            "trackedFiles": self.orchestrator.tracked_files,
            "historySize": len(self.store),
            "historyLimit": self.store.max_size,
            "subscribers": self.broadcaster.subscriber_count,
            "degraded": self.store.degraded or bool(last and last.degraded),
            "watching": self.watcher is not None and self.watcher.running,
            "lastCycle": (
                {
                    "reason": last.reason,
                    "timestamp": last.snapshot.timestamp.isoformat(),
                    "validatedFiles": last.validated_files,
                    "errors": list(last.errors),
                }
                if last is not None
                else None
            ),
        }

    # ── Live feed ─────────────────────────────────────────────────

    def subscribe(self, handler: EventHandler, auto_ack: bool = True, inline: bool = False) -> str:
        return self.broadcaster.subscribe(handler, auto_ack=auto_ack, inline=inline)

    def unsubscribe(self, subscriber_id: str) -> bool:
        return self.broadcaster.unsubscribe(subscriber_id)
