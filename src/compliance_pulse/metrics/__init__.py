"""Snapshot aggregation and the bounded metrics history."""

from .aggregate import build_snapshot, compute_compliance_score
from .store import MetricsStore

__all__ = ["MetricsStore", "build_snapshot", "compute_compliance_score"]
