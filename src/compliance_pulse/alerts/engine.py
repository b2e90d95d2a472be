"""Threshold alerting with per-key deduplication and cooldown.

Each dedup key (``type:category``) runs a small state machine::

    ARMED --condition holds--> FIRED --(same cycle)--> COOLDOWN
    COOLDOWN --now >= cooldown_until, next evaluation--> ARMED

Re-arming happens at the start of an evaluation regardless of whether the
condition still holds; a key in COOLDOWN never emits, so two alerts with the
same key are always at least one cooldown apart.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from ..config import AlertRuleConfig, AlertsConfig
from ..exceptions import AlertEvaluationError, ConfigError, ErrorCode
from ..models import Alert, MetricsSnapshot, Severity, TrendResult, utc_now
from .rules import CONDITIONS, RuleInputs

logger = logging.getLogger(__name__)

AlertSink = Callable[[Alert], None]


class AlertState(Enum):
    ARMED = "armed"
    FIRED = "fired"
    COOLDOWN = "cooldown"


@dataclass
class _KeyState:
    state: AlertState = AlertState.ARMED
    cooldown_until: Optional[datetime] = None


class AlertEngine:
    """Evaluates rules against each snapshot and emits deduplicated alerts.

    Args:
        rules: Threshold rules; validated here, so a bad rule set fails at startup
        cooldown_seconds: Default cooldown for rules without their own
        history_size: Maximum alerts retained in memory
        sinks: Callables invoked with every emitted alert
        clock: Returns "now" as a tz-aware datetime (injectable for tests)
    """

    def __init__(
        self,
        rules: Sequence[AlertRuleConfig],
        cooldown_seconds: float = 300.0,
        history_size: int = 100,
        sinks: Iterable[AlertSink] = (),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.rules = self._validate_rules(rules)
        if cooldown_seconds <= 0:
            raise ConfigError(f"Alert cooldown must be positive, got {cooldown_seconds}")
        if history_size < 1:
            raise ConfigError(f"Alert history size must be at least 1, got {history_size}")
        self.cooldown_seconds = float(cooldown_seconds)
        self._clock = clock
        self._sinks: list[AlertSink] = list(sinks)
        self._lock = threading.RLock()
        self._states: dict[str, _KeyState] = {rule.dedup_key: _KeyState() for rule in self.rules}
        self._history: deque[Alert] = deque(maxlen=history_size)

    @classmethod
    def from_config(
        cls,
        config: AlertsConfig,
        sinks: Iterable[AlertSink] = (),
        clock: Callable[[], datetime] = utc_now,
    ) -> AlertEngine:
        return cls(
            rules=config.rules,
            cooldown_seconds=config.cooldown_seconds,
            history_size=config.history_size,
            sinks=sinks,
            clock=clock,
        )

    @staticmethod
    def _validate_rules(rules: Sequence[AlertRuleConfig]) -> tuple[AlertRuleConfig, ...]:
        if not rules:
            raise ConfigError("At least one alert rule is required")
        seen: set[str] = set()
        for rule in rules:
            if not isinstance(rule, AlertRuleConfig):
                raise ConfigError(f"Malformed alert rule: {rule!r}")
            if rule.kind not in CONDITIONS:
                raise ConfigError(f"Unknown alert rule kind: {rule.kind}")
            if rule.dedup_key in seen:
                raise ConfigError(f"Duplicate alert dedup key: {rule.dedup_key}")
            seen.add(rule.dedup_key)
        return tuple(rules)

    # ── Sinks ─────────────────────────────────────────────────────

    def add_sink(self, sink: AlertSink) -> None:
        self._sinks.append(sink)

    def _dispatch(self, alert: Alert) -> None:
        for sink in list(self._sinks):
            try:
                sink(alert)
            except Exception as exc:
                logger.warning(
                    "%s",
                    AlertEvaluationError(
                        message=f"Alert sink {sink!r} failed: {exc}",
                        code=ErrorCode.CP401,
                        context={"alert_id": alert.id, "dedup_key": alert.dedup_key},
                    ),
                )

    # ── Evaluation ────────────────────────────────────────────────

    def _rearm(self, now: datetime) -> None:
        for key, ks in self._states.items():
            if ks.state is not AlertState.ARMED and ks.cooldown_until is not None and now >= ks.cooldown_until:
                logger.debug("Alert key %s re-armed", key)
                ks.state = AlertState.ARMED
                ks.cooldown_until = None

    def _cooldown_for(self, rule: AlertRuleConfig) -> timedelta:
        seconds = rule.cooldown_seconds if rule.cooldown_seconds is not None else self.cooldown_seconds
        return timedelta(seconds=seconds)

    def evaluate(
        self,
        snapshot: MetricsSnapshot,
        trend: Optional[TrendResult] = None,
        previous: Optional[MetricsSnapshot] = None,
    ) -> list[Alert]:
        """Evaluate every rule once and return the alerts emitted this cycle."""
        now = self._clock()
        inputs = RuleInputs(snapshot=snapshot, previous=previous, trend=trend)
        emitted: list[Alert] = []

        with self._lock:
            self._rearm(now)

        for rule in self.rules:
            try:
                outcome = CONDITIONS[rule.kind](rule, inputs)
            except Exception as exc:
                logger.warning(
                    "%s",
                    AlertEvaluationError(
                        message=f"Rule {rule.dedup_key} failed: {exc}",
                        code=ErrorCode.CP400,
                        context={"rule": rule.kind},
                    ),
                )
                continue

            if outcome is None:
                continue

            value, message = outcome
            with self._lock:
                ks = self._states[rule.dedup_key]
                if ks.state is not AlertState.ARMED:
                    logger.debug(
                        "Alert %s suppressed (cooldown until %s)",
                        rule.dedup_key,
                        ks.cooldown_until.isoformat() if ks.cooldown_until else "?",
                    )
                    continue

                ks.state = AlertState.FIRED
                alert = Alert(
                    id=uuid.uuid4().hex[:16],
                    type=rule.type or rule.kind,
                    category=rule.category,
                    severity=Severity(rule.severity),
                    message=message,
                    dedup_key=rule.dedup_key,
                    fired_at=now,
                    cooldown_until=now + self._cooldown_for(rule),
                    value=value,
                    threshold=float(rule.threshold),
                )
                ks.state = AlertState.COOLDOWN
                ks.cooldown_until = alert.cooldown_until
                self._history.append(alert)

            logger.info("Alert fired [%s] %s", alert.dedup_key, alert.message)
            emitted.append(alert)

        for alert in emitted:
            self._dispatch(alert)
        return emitted

    # ── Queries / restore ─────────────────────────────────────────

    def state_of(self, dedup_key: str) -> AlertState:
        with self._lock:
            return self._states[dedup_key].state

    def cooldown_until(self, dedup_key: str) -> Optional[datetime]:
        with self._lock:
            return self._states[dedup_key].cooldown_until

    def history(self, count: Optional[int] = None) -> tuple[Alert, ...]:
        """Most recent alerts, oldest first."""
        with self._lock:
            items = tuple(self._history)
        if count is None:
            return items
        return items[-count:] if count > 0 else ()

    def restore(self, alerts: Iterable[Alert]) -> None:
        """Seed history from persisted alerts and honour unexpired cooldowns."""
        now = self._clock()
        with self._lock:
            for alert in alerts:
                self._history.append(alert)
                ks = self._states.get(alert.dedup_key)
                if ks is not None and alert.cooldown_until > now:
                    if ks.cooldown_until is None or alert.cooldown_until > ks.cooldown_until:
                        ks.state = AlertState.COOLDOWN
                        ks.cooldown_until = alert.cooldown_until
