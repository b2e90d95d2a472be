"""Threshold conditions, one per alert rule kind.

Each condition takes the rule and the cycle inputs and returns
``(value, message)`` when the condition holds, otherwise ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from ..config import AlertRuleConfig
from ..models import MetricsSnapshot, TrendDirection, TrendResult

Outcome = Optional[tuple[float, str]]


@dataclass(frozen=True)
class RuleInputs:
    snapshot: MetricsSnapshot
    previous: Optional[MetricsSnapshot] = None
    trend: Optional[TrendResult] = None


def _critical_violations(rule: AlertRuleConfig, inputs: RuleInputs) -> Outcome:
    value = inputs.snapshot.critical_violations
    if value >= rule.threshold:
        return float(value), f"{value} critical violation(s) (threshold {rule.threshold:g})"
    return None


def _total_violations(rule: AlertRuleConfig, inputs: RuleInputs) -> Outcome:
    value = inputs.snapshot.total_violations
    if value >= rule.threshold:
        return float(value), f"{value} total violation(s) (threshold {rule.threshold:g})"
    return None


def _score_drop(rule: AlertRuleConfig, inputs: RuleInputs) -> Outcome:
    if inputs.previous is None:
        return None
    drop = inputs.previous.compliance_score - inputs.snapshot.compliance_score
    if drop >= rule.threshold and drop > 0:
        return (
            round(drop, 2),
            f"Compliance score dropped {drop:.1f} points "
            f"({inputs.previous.compliance_score:.1f} -> {inputs.snapshot.compliance_score:.1f})",
        )
    return None


def _slow_cycle(rule: AlertRuleConfig, inputs: RuleInputs) -> Outcome:
    value = inputs.snapshot.cycle_duration_ms
    if value >= rule.threshold:
        return value, f"Validation cycle took {value:.0f} ms (threshold {rule.threshold:g} ms)"
    return None


def _low_score(rule: AlertRuleConfig, inputs: RuleInputs) -> Outcome:
    value = inputs.snapshot.compliance_score
    if value < rule.threshold:
        return value, f"Low compliance score ({value:.1f}%, threshold {rule.threshold:g}%)"
    return None


def _declining_trend(rule: AlertRuleConfig, inputs: RuleInputs) -> Outcome:
    trend = inputs.trend
    if trend is None or not trend.sufficient_data:
        return None
    if trend.direction is TrendDirection.DECLINING and trend.magnitude >= rule.threshold:
        return (
            round(trend.magnitude, 2),
            f"Compliance declining by {trend.magnitude:.1f} points per cycle "
            f"over the last {trend.samples} cycles",
        )
    return None


CONDITIONS: dict[str, Callable[[AlertRuleConfig, RuleInputs], Outcome]] = {
    "critical_violations": _critical_violations,
    "total_violations": _total_violations,
    "score_drop": _score_drop,
    "slow_cycle": _slow_cycle,
    "low_score": _low_score,
    "declining_trend": _declining_trend,
}
