"""Small numeric helpers shared by the trend and risk computations."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation (ddof=0). Empty or single -> 0.0."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def linear_slope(values: Sequence[float]) -> float:
    """Ordinary least-squares slope of *values* against their index.

    Returns 0.0 for fewer than two points.
    """
    n = len(values)
    if n < 2:
        return 0.0
    x = np.arange(n, dtype=float)
    y = np.asarray(values, dtype=float)
    x_centered = x - x.mean()
    denom = float((x_centered**2).sum())
    if denom == 0:
        return 0.0
    return float((x_centered * (y - y.mean())).sum() / denom)


def detect_outliers(values: Sequence[float]) -> list[float]:
    """Return values outside ``[Q1 - 1.5*IQR, Q3 + 1.5*IQR]``.

    Quartiles are taken by index on the sorted data; fewer than four
    values never produce outliers.
    """
    if len(values) < 4:
        return []
    ordered = sorted(values)
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    lower = q1 - 1.5 * iqr
    upper = q3 + 1.5 * iqr
    return [v for v in values if v < lower or v > upper]
