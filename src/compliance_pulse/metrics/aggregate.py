"""Fold per-file validation results into one MetricsSnapshot.

Compliance score: ``100 * clean_files / scored_files``. Errored files are
excluded from both numerator and denominator; with nothing scored the score
is 100. This is computed exactly once per cycle and never re-derived.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from ..models import FileResult, MetricsSnapshot, Severity, clamp_score, utc_now


def compute_compliance_score(results: Iterable[FileResult]) -> float:
    scored = 0
    clean = 0
    for result in results:
        if result.errored:
            continue
        scored += 1
        if not result.violations:
            clean += 1
    if scored == 0:
        return 100.0
    return clamp_score(round(100.0 * clean / scored, 2))


def build_snapshot(
    results: Iterable[FileResult],
    cycle_duration_ms: float,
    timestamp: Optional[datetime] = None,
    degraded: bool = False,
) -> MetricsSnapshot:
    """Aggregate *results* (one per tracked file) into a snapshot."""
    results = list(results)

    critical = 0
    warnings = 0
    categories: Counter[str] = Counter()
    for result in results:
        for violation in result.violations:
            if violation.severity is Severity.CRITICAL:
                critical += 1
            else:
                warnings += 1
            categories[violation.rule_id] += 1

    errored = sum(1 for r in results if r.errored)

    return MetricsSnapshot(
        timestamp=timestamp or utc_now(),
        compliance_score=compute_compliance_score(results),
        total_violations=critical + warnings,
        critical_violations=critical,
        warnings=warnings,
        files_processed=len(results),
        cycle_duration_ms=max(0.0, round(cycle_duration_ms, 3)),
        files_errored=errored,
        degraded=degraded or errored > 0,
        violation_categories=dict(categories),
    )
