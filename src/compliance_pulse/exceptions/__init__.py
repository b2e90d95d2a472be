"""Exception hierarchy for Compliance Pulse."""

from .base import CompliancePulseError
from .config import (
    ConfigError,
    ConfigurationError,
    InvalidConfigError,
    InvalidPathError,
)
from .taxonomy import (
    AlertEvaluationError,
    BroadcastError,
    ErrorCode,
    PersistenceError,
    PulseError,
    ValidatorError,
)

__all__ = [
    "CompliancePulseError",
    "ConfigurationError",
    "ConfigError",
    "InvalidConfigError",
    "InvalidPathError",
    "ErrorCode",
    "PulseError",
    "ValidatorError",
    "PersistenceError",
    "BroadcastError",
    "AlertEvaluationError",
]
