"""Runtime error taxonomy with error codes and recovery hints.

Error Code Convention:
    CP1xx - Validator errors
    CP2xx - Persistence errors
    CP3xx - Broadcast errors
    CP4xx - Alert evaluation errors

All of these are non-fatal: the orchestrator logs them and keeps cycling.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Structured error codes for observability and debugging."""

    # Validator errors (CP1xx)
    CP100 = "CP100"  # Validator raised
    CP101 = "CP101"  # Validator timed out
    CP102 = "CP102"  # File could not be read

    # Persistence errors (CP2xx)
    CP200 = "CP200"  # Atomic history write failed
    CP201 = "CP201"  # History file malformed on load
    CP202 = "CP202"  # Alert history write failed

    # Broadcast errors (CP3xx)
    CP300 = "CP300"  # Subscriber write failed
    CP301 = "CP301"  # Subscriber heartbeat timed out

    # Alert errors (CP4xx)
    CP400 = "CP400"  # Rule evaluation raised
    CP401 = "CP401"  # Alert sink raised


@dataclass
class PulseError(Exception):
    """Base exception with structured context for logging.

    Attributes:
        message: Human-readable error description
        code: Structured error code for categorization
        context: Additional context (file path, subscriber id, ...)
        recoverable: Whether the engine can keep running
        recovery_hint: Suggested fix for the user
    """

    message: str
    code: ErrorCode
    context: dict[str, Any] = field(default_factory=dict)
    recoverable: bool = True
    recovery_hint: str | None = None

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __post_init__(self) -> None:
        super().__init__(str(self))

    def to_json(self) -> dict[str, Any]:
        """Structured logging format."""
        return {
            "error_code": self.code.value,
            "message": self.message,
            "context": self.context,
            "recoverable": self.recoverable,
            "recovery_hint": self.recovery_hint,
        }


class ValidatorError(PulseError):
    """A file could not be validated (CP1xx). The file counts as errored."""

    pass


class PersistenceError(PulseError):
    """History or alert persistence failed (CP2xx). The engine runs degraded."""

    pass


class BroadcastError(PulseError):
    """Delivery to a subscriber failed (CP3xx). The subscriber is dropped."""

    pass


class AlertEvaluationError(PulseError):
    """A single alert rule or sink failed (CP4xx). Other rules still run."""

    pass
