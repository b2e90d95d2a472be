"""Configuration exceptions: settings, paths, alert thresholds.

These are the only errors that halt the process, and only at startup.
"""

from pathlib import Path
from typing import Any

from .base import CompliancePulseError


class ConfigurationError(CompliancePulseError):
    """Base class for configuration-related errors."""

    pass


class ConfigError(ConfigurationError):
    """Raised when configuration cannot be loaded or is inconsistent."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when a single configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {value}",
            details={"key": key, "value": str(value), "reason": reason},
        )
        self.key = key
        self.value = value
        self.reason = reason


class InvalidPathError(ConfigurationError):
    """Raised when a provided path is invalid."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Invalid path: {path}", details={"path": str(path), "reason": reason})
        self.path = path
        self.reason = reason
