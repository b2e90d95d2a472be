"""Trend, volatility and forecast over a history snapshot.

Everything here is a pure function of a ``Sequence[MetricsSnapshot]`` (a
copy handed out by MetricsStore). Nothing calls back into the store or the
aggregator.

Confidence model::

    sample_factor      = 1 - exp(-n / 5)                      (saturates with n)
    volatility_factor  = max(0, 1 - 4 * volatility)            (std/100 of last 10)
    consistency_factor = 1 - 0.5 * std(d) / (|mean(d)| + std(d))
    confidence         = clamp(product, floor, ceiling)

With fewer than ``min_samples`` entries every result is "insufficient data":
direction stable, magnitude 0, confidence 0.5.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Optional, Union

import numpy as np

from ..config import TrendConfig
from ..models import (
    ForecastResult,
    MetricsSnapshot,
    TrendDirection,
    TrendReport,
    TrendResult,
    clamp_score,
)
from .stats import population_std

INSUFFICIENT_CONFIDENCE = 0.5

# Confidence shaping constants
SAMPLE_SCALE = 5.0
VOLATILITY_WEIGHT = 4.0
INCONSISTENCY_WEIGHT = 0.5


def _scores(series: Sequence[MetricsSnapshot]) -> np.ndarray:
    return np.fromiter((s.compliance_score for s in series), dtype=float, count=len(series))


def compute_volatility(series: Sequence[MetricsSnapshot], window: int = 10) -> float:
    """Std-dev of the last *window* compliance scores, normalised to [0, 1]."""
    if not series:
        return 0.0
    scores = _scores(series)[-window:]
    return min(1.0, max(0.0, population_std(scores) / 100.0))


def compute_confidence(
    sample_count: int,
    volatility: float,
    deltas: Sequence[float],
    floor: float = 0.1,
    ceiling: float = 0.95,
) -> float:
    """Bounded confidence from sample count, volatility and delta consistency."""
    sample_factor = 1.0 - math.exp(-max(0, sample_count) / SAMPLE_SCALE)
    volatility_factor = max(0.0, 1.0 - VOLATILITY_WEIGHT * volatility)

    inconsistency = 0.0
    if len(deltas) > 0:
        arr = np.asarray(deltas, dtype=float)
        spread = float(arr.std())
        center = abs(float(arr.mean()))
        if spread + center > 0:
            inconsistency = spread / (center + spread)
    consistency_factor = 1.0 - INCONSISTENCY_WEIGHT * inconsistency

    raw = sample_factor * volatility_factor * consistency_factor
    return min(ceiling, max(floor, raw))


def compute_trend(
    series: Sequence[MetricsSnapshot],
    window: int,
    epsilon: float = 0.5,
    min_samples: int = 3,
    volatility_window: int = 10,
    floor: float = 0.1,
    ceiling: float = 0.95,
) -> TrendResult:
    """Windowed trend over the last *window* entries.

    ``magnitude`` is the mean absolute delta; ``direction`` follows the mean
    signed delta against +/- *epsilon*.
    """
    if window < 2:
        raise ValueError(f"trend window must be at least 2, got {window}")

    if len(series) < min_samples:
        return TrendResult(
            window=window,
            direction=TrendDirection.STABLE,
            magnitude=0.0,
            confidence=INSUFFICIENT_CONFIDENCE,
            mean_delta=0.0,
            samples=len(series),
            sufficient_data=False,
        )

    tail = _scores(series)[-window:]
    deltas = np.diff(tail)
    mean_delta = float(deltas.mean())
    magnitude = float(np.abs(deltas).mean())

    if mean_delta > epsilon:
        direction = TrendDirection.IMPROVING
    elif mean_delta < -epsilon:
        direction = TrendDirection.DECLINING
    else:
        direction = TrendDirection.STABLE

    confidence = compute_confidence(
        sample_count=len(tail),
        volatility=compute_volatility(series, volatility_window),
        deltas=deltas,
        floor=floor,
        ceiling=ceiling,
    )

    return TrendResult(
        window=window,
        direction=direction,
        magnitude=magnitude,
        confidence=confidence,
        mean_delta=mean_delta,
        samples=len(tail),
        sufficient_data=True,
    )


def compute_forecast(
    series: Sequence[MetricsSnapshot],
    horizon: int,
    window: int = 3,
    min_samples: int = 3,
    volatility_window: int = 10,
    floor: float = 0.1,
    ceiling: float = 0.95,
) -> ForecastResult:
    """Project the last score forward by the window's mean delta.

    ``predicted = clamp(last + mean_delta * horizon, 0, 100)``. An empty
    history has no prediction; a short one repeats the last value.
    """
    if horizon < 1:
        raise ValueError(f"forecast horizon must be at least 1, got {horizon}")

    if not series:
        return ForecastResult(
            predicted_value=None,
            confidence=INSUFFICIENT_CONFIDENCE,
            horizon_cycles=horizon,
            current_value=None,
        )

    scores = _scores(series)
    current = float(scores[-1])
    if len(series) < min_samples:
        return ForecastResult(
            predicted_value=current,
            confidence=INSUFFICIENT_CONFIDENCE,
            horizon_cycles=horizon,
            current_value=current,
        )

    deltas = np.diff(scores[-window:])
    mean_delta = float(deltas.mean()) if len(deltas) else 0.0
    predicted = clamp_score(round(current + mean_delta * horizon, 2))

    confidence = compute_confidence(
        sample_count=len(scores),
        volatility=compute_volatility(series, volatility_window),
        deltas=deltas,
        floor=floor,
        ceiling=ceiling,
    )
    return ForecastResult(
        predicted_value=predicted,
        confidence=confidence,
        horizon_cycles=horizon,
        current_value=current,
    )


class TrendAnalyzer:
    """Stateless facade binding the pure functions to a TrendConfig."""

    def __init__(self, config: Optional[TrendConfig] = None) -> None:
        self.config = config or TrendConfig()

    def window_size(self, window: Union[str, int]) -> int:
        """Resolve a named window ("short"/"medium"/"long") or a raw size."""
        if isinstance(window, str):
            windows = self.config.windows()
            if window in windows:
                return windows[window]
            if window.isdigit():
                window = int(window)
            else:
                raise ValueError(f"Unknown trend window '{window}' (expected one of {list(windows)})")
        if window < 2:
            raise ValueError(f"trend window must be at least 2, got {window}")
        return window

    def trend(self, series: Sequence[MetricsSnapshot], window: Union[str, int] = "short") -> TrendResult:
        cfg = self.config
        return compute_trend(
            series,
            self.window_size(window),
            epsilon=cfg.noise_epsilon,
            min_samples=cfg.min_samples,
            volatility_window=cfg.volatility_window,
            floor=cfg.confidence_floor,
            ceiling=cfg.confidence_ceiling,
        )

    def volatility(self, series: Sequence[MetricsSnapshot]) -> float:
        return compute_volatility(series, self.config.volatility_window)

    def forecast(self, series: Sequence[MetricsSnapshot], horizon: Optional[int] = None) -> ForecastResult:
        cfg = self.config
        return compute_forecast(
            series,
            horizon if horizon is not None else cfg.forecast_horizon,
            window=self.window_size(cfg.forecast_window),
            min_samples=cfg.min_samples,
            volatility_window=cfg.volatility_window,
            floor=cfg.confidence_floor,
            ceiling=cfg.confidence_ceiling,
        )

    def analyze(self, series: Sequence[MetricsSnapshot]) -> TrendReport:
        """All named-window trends, volatility and the default forecast."""
        return TrendReport(
            trends={name: self.trend(series, name) for name in self.config.windows()},
            volatility=self.volatility(series),
            forecast=self.forecast(series),
        )
