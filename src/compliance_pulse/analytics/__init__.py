"""Pure analytics over metrics history: trends, forecasts, risk."""

from .risk import RiskAssessment, assess_risk
from .stats import detect_outliers, linear_slope, population_std
from .trend import (
    TrendAnalyzer,
    compute_confidence,
    compute_forecast,
    compute_trend,
    compute_volatility,
)

__all__ = [
    "TrendAnalyzer",
    "compute_trend",
    "compute_volatility",
    "compute_forecast",
    "compute_confidence",
    "RiskAssessment",
    "assess_risk",
    "detect_outliers",
    "linear_slope",
    "population_std",
]
