"""Alert evaluation, deduplication/cooldown, and alert sinks."""

from .engine import AlertEngine, AlertSink, AlertState
from .rules import CONDITIONS, RuleInputs
from .sinks import CallbackSink, JsonFileAlertSink, read_alert_history

__all__ = [
    "AlertEngine",
    "AlertSink",
    "AlertState",
    "CONDITIONS",
    "RuleInputs",
    "CallbackSink",
    "JsonFileAlertSink",
    "read_alert_history",
]
