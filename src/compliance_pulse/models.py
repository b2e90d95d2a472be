"""Core records exchanged between the monitoring components.

Every record is a frozen dataclass with a fixed field set. ``to_dict()``
produces the camelCase wire shape used by the history file, the live feed
and the HTTP API; ``from_dict()`` parses it back and raises ``ValueError``
(or ``KeyError``/``TypeError``) on malformed input.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

SCORE_MIN = 0.0
SCORE_MAX = 100.0


class Severity(Enum):
    CRITICAL = "critical"
    WARNING = "warning"


class ChangeType(Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class TrendDirection(Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class EventType(Enum):
    METRICS = "metrics"
    ALERT = "alert"
    HEARTBEAT = "heartbeat"
    STATUS = "status"


def utc_now() -> datetime:
    """Return the current time as a tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def clamp_score(value: float) -> float:
    """Clamp a compliance score into [0, 100]. NaN collapses to 0."""
    if value is None or math.isnan(value):
        return SCORE_MIN
    return max(SCORE_MIN, min(SCORE_MAX, float(value)))


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (or datetime) into a tz-aware UTC datetime."""
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        ts = datetime.fromisoformat(text)
    else:
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _require_non_negative(record: str, **values: float) -> None:
    for name, value in values.items():
        if value < 0:
            raise ValueError(f"{record}.{name} must be non-negative, got {value}")


# ---------------------------------------------------------------------------
# Watcher / validator records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileChangeEvent:
    path: str
    change_type: ChangeType
    timestamp: float  # unix seconds


@dataclass(frozen=True)
class ViolationRecord:
    """One rule violation reported by a validator."""

    file_path: str
    rule_id: str
    severity: Severity
    message: str
    line_number: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "ruleId": self.rule_id,
            "severity": self.severity.value,
            "message": self.message,
            "lineNumber": self.line_number,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ViolationRecord:
        return cls(
            file_path=data["filePath"],
            rule_id=data["ruleId"],
            severity=Severity(data["severity"]),
            message=data["message"],
            line_number=data.get("lineNumber"),
        )


@dataclass(frozen=True)
class FileResult:
    """Outcome of validating one file within a cycle."""

    path: str
    violations: tuple[ViolationRecord, ...] = ()
    errored: bool = False
    duration_ms: float = 0.0

    @property
    def is_clean(self) -> bool:
        return not self.errored and not self.violations


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricsSnapshot:
    """Aggregate result of one orchestrator cycle. Immutable once appended."""

    timestamp: datetime
    compliance_score: float
    total_violations: int = 0
    critical_violations: int = 0
    warnings: int = 0
    files_processed: int = 0
    cycle_duration_ms: float = 0.0
    files_errored: int = 0
    degraded: bool = False
    violation_categories: dict[str, int] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", parse_timestamp(self.timestamp))
        object.__setattr__(self, "compliance_score", clamp_score(self.compliance_score))
        object.__setattr__(self, "violation_categories", dict(self.violation_categories))
        _require_non_negative(
            "MetricsSnapshot",
            total_violations=self.total_violations,
            critical_violations=self.critical_violations,
            warnings=self.warnings,
            files_processed=self.files_processed,
            cycle_duration_ms=self.cycle_duration_ms,
            files_errored=self.files_errored,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "complianceScore": self.compliance_score,
            "totalViolations": self.total_violations,
            "criticalViolations": self.critical_violations,
            "warnings": self.warnings,
            "filesProcessed": self.files_processed,
            "cycleDurationMs": self.cycle_duration_ms,
            "filesErrored": self.files_errored,
            "degraded": self.degraded,
            "violationCategories": dict(self.violation_categories),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MetricsSnapshot:
        """Parse a persisted snapshot. Out-of-range scores are rejected, not clamped."""
        score = data["complianceScore"]
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise TypeError(f"complianceScore must be a number, got {score!r}")
        if not SCORE_MIN <= score <= SCORE_MAX:
            raise ValueError(f"complianceScore out of range: {score}")
        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            compliance_score=float(score),
            total_violations=int(data["totalViolations"]),
            critical_violations=int(data["criticalViolations"]),
            warnings=int(data["warnings"]),
            files_processed=int(data["filesProcessed"]),
            cycle_duration_ms=float(data.get("cycleDurationMs", 0.0)),
            files_errored=int(data.get("filesErrored", 0)),
            degraded=bool(data.get("degraded", False)),
            violation_categories={
                str(k): int(v) for k, v in (data.get("violationCategories") or {}).items()
            },
        )


@dataclass(frozen=True)
class TrendResult:
    window: int
    direction: TrendDirection
    magnitude: float
    confidence: float
    mean_delta: float = 0.0
    samples: int = 0
    sufficient_data: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "window": self.window,
            "direction": self.direction.value,
            "magnitude": round(self.magnitude, 4),
            "confidence": round(self.confidence, 4),
            "meanDelta": round(self.mean_delta, 4),
            "samples": self.samples,
            "sufficientData": self.sufficient_data,
        }


@dataclass(frozen=True)
class ForecastResult:
    predicted_value: Optional[float]
    confidence: float
    horizon_cycles: int
    current_value: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "predictedValue": self.predicted_value,
            "confidence": round(self.confidence, 4),
            "horizonCycles": self.horizon_cycles,
            "currentValue": self.current_value,
        }


@dataclass(frozen=True)
class TrendReport:
    """All derived statistics for one history snapshot."""

    trends: dict[str, TrendResult]
    volatility: float
    forecast: ForecastResult

    @property
    def primary(self) -> TrendResult:
        """The short-window trend, used by alert rules and dashboards."""
        return self.trends.get("short") or next(iter(self.trends.values()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "trends": {name: t.to_dict() for name, t in self.trends.items()},
            "volatility": round(self.volatility, 4),
            "forecast": self.forecast.to_dict(),
        }


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Alert:
    id: str
    type: str
    category: str
    severity: Severity
    message: str
    dedup_key: str
    fired_at: datetime
    cooldown_until: datetime
    value: Optional[float] = None
    threshold: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "severity": self.severity.value,
            "message": self.message,
            "dedupKey": self.dedup_key,
            "firedAt": self.fired_at.isoformat(),
            "cooldownUntil": self.cooldown_until.isoformat(),
            "value": self.value,
            "threshold": self.threshold,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Alert:
        return cls(
            id=data["id"],
            type=data["type"],
            category=data["category"],
            severity=Severity(data["severity"]),
            message=data["message"],
            dedup_key=data["dedupKey"],
            fired_at=parse_timestamp(data["firedAt"]),
            cooldown_until=parse_timestamp(data["cooldownUntil"]),
            value=data.get("value"),
            threshold=data.get("threshold"),
        )


# ---------------------------------------------------------------------------
# Live feed
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LiveEvent:
    """One message on the live feed: ``{type, payload, timestamp}``."""

    type: EventType
    payload: dict[str, Any]
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_ndjson(self) -> str:
        """Serialize as a single newline-terminated JSON line."""
        return json.dumps(self.to_dict(), separators=(",", ":")) + "\n"
