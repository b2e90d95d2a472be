"""Coarse risk level derived from the whole history."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from ..models import MetricsSnapshot
from .stats import detect_outliers, linear_slope, population_std

HIGH_RISK_SCORE = 70.0
MEDIUM_RISK_SCORE = 85.0
VOLATILITY_POINTS = 15.0
VIOLATION_SLOPE = 2.0
RECENT_DECLINE_POINTS = 10.0

_LEVELS = ("LOW", "MEDIUM", "HIGH")


def _raise_to(current: str, level: str) -> str:
    return level if _LEVELS.index(level) > _LEVELS.index(current) else current


@dataclass(frozen=True)
class RiskAssessment:
    level: str  # LOW | MEDIUM | HIGH
    factors: tuple[str, ...] = ()
    metrics: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "factors": list(self.factors), "metrics": dict(self.metrics)}


def assess_risk(series: Sequence[MetricsSnapshot]) -> RiskAssessment:
    """Classify history into LOW/MEDIUM/HIGH risk with the contributing factors."""
    if not series:
        return RiskAssessment(level="LOW")

    scores = [s.compliance_score for s in series]
    violations = [float(s.total_violations) for s in series]

    avg_score = float(np.mean(scores))
    volatility = population_std(scores)
    violation_slope = linear_slope(violations)
    recent_decline = any(s < avg_score - RECENT_DECLINE_POINTS for s in scores[-3:])
    outliers = detect_outliers(scores)

    level = "LOW"
    factors: list[str] = []

    if avg_score < HIGH_RISK_SCORE:
        level = "HIGH"
        factors.append("Low average compliance score")
    elif avg_score < MEDIUM_RISK_SCORE:
        level = "MEDIUM"
        factors.append("Moderate compliance score")

    if volatility > VOLATILITY_POINTS:
        level = _raise_to(level, "MEDIUM")
        factors.append("High score volatility")

    if violation_slope > VIOLATION_SLOPE:
        level = "HIGH"
        factors.append("Increasing violation trend")

    if recent_decline:
        level = _raise_to(level, "MEDIUM")
        factors.append("Recent score decline")

    return RiskAssessment(
        level=level,
        factors=tuple(factors),
        metrics={
            "averageScore": round(avg_score, 2),
            "volatility": round(volatility, 2),
            "violationTrend": round(violation_slope, 2),
            "outliers": len(outliers),
            "samples": len(series),
        },
    )
