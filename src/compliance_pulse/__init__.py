"""
Compliance Pulse - real-time compliance monitoring and trend analytics

Watches a source tree, validates changed files against compliance rules,
keeps a bounded history of compliance snapshots, and derives trends,
forecasts and threshold alerts that are pushed to live subscribers.
"""

__version__ = "0.1.0"

from .config import MonitorConfig, load_config
from .engine import MonitorEngine
from .models import (
    Alert,
    ForecastResult,
    LiveEvent,
    MetricsSnapshot,
    TrendResult,
    ViolationRecord,
)
from .validation import PatternValidator, Validator

__all__ = [
    "MonitorEngine",  # Main entry point
    "MonitorConfig",
    "load_config",
    "Validator",
    "PatternValidator",
    "MetricsSnapshot",
    "ViolationRecord",
    "TrendResult",
    "ForecastResult",
    "Alert",
    "LiveEvent",
]
