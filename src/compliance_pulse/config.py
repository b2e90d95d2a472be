"""Configuration loading and management for Compliance Pulse.

Configuration sources are merged in priority order:
    1. Defaults (defined in MonitorConfig)
    2. Global config (~/.compliance-pulse.toml)
    3. Project config (./compliance-pulse.toml)
    4. Explicit config file
    5. Environment variables (PULSE_* prefix)
    6. CLI overrides (passed as kwargs)

Any invalid value raises :class:`ConfigError`. Configuration errors are the
only fatal errors in the engine, and they are raised before monitoring starts.

Example:
    >>> config = load_config(history_size=50)
    >>> config.history_size
    50
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]

ALERT_KINDS = frozenset(
    {
        "critical_violations",
        "total_violations",
        "score_drop",
        "slow_cycle",
        "low_score",
        "declining_trend",
    }
)

SEVERITIES = frozenset({"critical", "warning"})

TREND_WINDOW_NAMES = ("short", "medium", "long")


@dataclass(frozen=True)
class TrendConfig:
    """Trend and forecast tuning.

    Attributes:
        short_window / medium_window / long_window: Entries per trend window
        noise_epsilon: Mean delta within +/- epsilon reads as "stable"
        volatility_window: Entries used for the volatility std-dev
        min_samples: Below this many entries, trends report insufficient data
        forecast_window: Which named window drives the forecast slope
        forecast_horizon: Default number of cycles to project forward
        confidence_floor / confidence_ceiling: Bounds on any confidence value
    """

    short_window: int = 3
    medium_window: int = 7
    long_window: int = 14
    noise_epsilon: float = 0.5
    volatility_window: int = 10
    min_samples: int = 3
    forecast_window: str = "short"
    forecast_horizon: int = 3
    confidence_floor: float = 0.1
    confidence_ceiling: float = 0.95

    def __post_init__(self) -> None:
        for name in ("short_window", "medium_window", "long_window"):
            if getattr(self, name) < 2:
                raise InvalidConfigError(name, getattr(self, name), "window must hold at least 2 entries")
        if not self.short_window <= self.medium_window <= self.long_window:
            raise InvalidConfigError(
                "trend windows",
                (self.short_window, self.medium_window, self.long_window),
                "windows must satisfy short <= medium <= long",
            )
        if self.noise_epsilon < 0:
            raise InvalidConfigError("noise_epsilon", self.noise_epsilon, "must be non-negative")
        if self.volatility_window < 2:
            raise InvalidConfigError("volatility_window", self.volatility_window, "must be at least 2")
        if self.min_samples < 2:
            raise InvalidConfigError("min_samples", self.min_samples, "must be at least 2")
        if self.forecast_window not in TREND_WINDOW_NAMES:
            raise InvalidConfigError(
                "forecast_window", self.forecast_window, f"must be one of {TREND_WINDOW_NAMES}"
            )
        if self.forecast_horizon < 1:
            raise InvalidConfigError("forecast_horizon", self.forecast_horizon, "must be at least 1")
        if not 0.0 <= self.confidence_floor < self.confidence_ceiling <= 1.0:
            raise InvalidConfigError(
                "confidence bounds",
                (self.confidence_floor, self.confidence_ceiling),
                "need 0 <= floor < ceiling <= 1",
            )

    def windows(self) -> dict[str, int]:
        """Named window sizes in short/medium/long order."""
        return {
            "short": self.short_window,
            "medium": self.medium_window,
            "long": self.long_window,
        }


@dataclass(frozen=True)
class AlertRuleConfig:
    """One threshold rule.

    ``kind`` selects the condition; ``type`` defaults to ``kind`` and together
    with ``category`` forms the dedup key.
    """

    kind: str
    threshold: float
    category: str = "compliance"
    severity: str = "warning"
    type: Optional[str] = None
    cooldown_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        if self.kind not in ALERT_KINDS:
            raise InvalidConfigError("alerts.rules.kind", self.kind, f"must be one of {sorted(ALERT_KINDS)}")
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, (int, float)):
            raise InvalidConfigError("alerts.rules.threshold", self.threshold, "must be a number")
        if self.threshold < 0:
            raise InvalidConfigError("alerts.rules.threshold", self.threshold, "must be non-negative")
        if self.severity not in SEVERITIES:
            raise InvalidConfigError("alerts.rules.severity", self.severity, f"must be one of {sorted(SEVERITIES)}")
        if not self.category:
            raise InvalidConfigError("alerts.rules.category", self.category, "must not be empty")
        if self.cooldown_seconds is not None and self.cooldown_seconds <= 0:
            raise InvalidConfigError("alerts.rules.cooldown_seconds", self.cooldown_seconds, "must be positive")
        if self.type is None:
            object.__setattr__(self, "type", self.kind)

    @property
    def dedup_key(self) -> str:
        return f"{self.type}:{self.category}"


DEFAULT_ALERT_RULES: tuple[AlertRuleConfig, ...] = (
    AlertRuleConfig(kind="critical_violations", threshold=1, category="violations", severity="critical"),
    AlertRuleConfig(kind="total_violations", threshold=25, category="violations"),
    AlertRuleConfig(kind="score_drop", threshold=10, category="compliance", severity="critical"),
    AlertRuleConfig(kind="low_score", threshold=70, category="compliance"),
    AlertRuleConfig(kind="declining_trend", threshold=2, category="compliance"),
    AlertRuleConfig(kind="slow_cycle", threshold=5000, category="performance"),
)


@dataclass(frozen=True)
class AlertsConfig:
    """Alert engine settings: default cooldown, bounded history, rule set."""

    cooldown_seconds: float = 300.0
    history_size: int = 100
    history_file: Optional[str] = ".pulse/alerts.json"
    rules: tuple[AlertRuleConfig, ...] = DEFAULT_ALERT_RULES

    def __post_init__(self) -> None:
        if self.cooldown_seconds <= 0:
            raise InvalidConfigError("alerts.cooldown_seconds", self.cooldown_seconds, "must be positive")
        if self.history_size < 1:
            raise InvalidConfigError("alerts.history_size", self.history_size, "must be at least 1")
        if not self.rules:
            raise InvalidConfigError("alerts.rules", self.rules, "at least one rule is required")
        seen: set[str] = set()
        for rule in self.rules:
            if rule.dedup_key in seen:
                raise InvalidConfigError("alerts.rules", rule.dedup_key, "duplicate dedup key")
            seen.add(rule.dedup_key)


DEFAULT_EXTENSIONS: tuple[str, ...] = (
    ".py",
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    ".java",
    ".kt",
    ".go",
    ".rs",
    ".rb",
    ".php",
    ".c",
    ".cpp",
    ".h",
    ".hpp",
    ".yml",
    ".yaml",
)

DEFAULT_IGNORE_DIRS: tuple[str, ...] = (
    "node_modules",
    "__pycache__",
    "venv",
    "env",
    "dist",
    "build",
    "coverage",
    "htmlcov",
)


@dataclass(frozen=True)
class MonitorConfig:
    """Configuration for the monitoring engine.

    Attributes:
        History:
            history_size: Maximum snapshots kept (FIFO eviction)
            history_file: JSON history file, relative to the watched root

        Scheduling:
            debounce_ms: Window that collapses bursts of file events
            interval_seconds: Fallback full-scan interval (0 disables)

        Validation:
            validator_timeout_seconds: Per-file validation budget
            validator_workers: Thread pool size (None = auto)
            max_file_size_kb: Larger files are counted as errored

        Live feed:
            heartbeat_interval_seconds: Heartbeat cadence
            heartbeat_timeout_seconds: Unacknowledged subscribers are dropped after this

        File selection:
            watched_extensions: Suffixes that are validated
            ignore_dirs: Directory names never descended into (hidden dirs always skipped)
    """

    history_size: int = 100
    history_file: Optional[str] = ".pulse/history.json"

    debounce_ms: int = 250
    interval_seconds: float = 60.0

    validator_timeout_seconds: float = 2.0
    validator_workers: Optional[int] = None
    max_file_size_kb: int = 1024

    heartbeat_interval_seconds: float = 30.0
    heartbeat_timeout_seconds: float = 90.0

    watched_extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    ignore_dirs: tuple[str, ...] = DEFAULT_IGNORE_DIRS

    verbosity: Verbosity = "normal"

    trend: TrendConfig = field(default_factory=TrendConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)

    def __post_init__(self) -> None:
        if self.history_size < 1:
            raise InvalidConfigError("history_size", self.history_size, "must be at least 1")
        if self.debounce_ms < 0:
            raise InvalidConfigError("debounce_ms", self.debounce_ms, "must be non-negative")
        if self.interval_seconds < 0:
            raise InvalidConfigError("interval_seconds", self.interval_seconds, "must be non-negative")
        if self.validator_timeout_seconds <= 0:
            raise InvalidConfigError(
                "validator_timeout_seconds", self.validator_timeout_seconds, "must be positive"
            )
        if self.validator_workers is not None and self.validator_workers < 1:
            raise InvalidConfigError("validator_workers", self.validator_workers, "must be at least 1")
        if self.max_file_size_kb < 1:
            raise InvalidConfigError("max_file_size_kb", self.max_file_size_kb, "must be at least 1")
        if self.heartbeat_interval_seconds <= 0:
            raise InvalidConfigError(
                "heartbeat_interval_seconds", self.heartbeat_interval_seconds, "must be positive"
            )
        if self.heartbeat_timeout_seconds < self.heartbeat_interval_seconds:
            raise InvalidConfigError(
                "heartbeat_timeout_seconds",
                self.heartbeat_timeout_seconds,
                "must be at least heartbeat_interval_seconds",
            )
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError("verbosity", self.verbosity, "must be quiet, normal or verbose")
        # Normalise extensions to ".ext"
        object.__setattr__(
            self,
            "watched_extensions",
            tuple(e if e.startswith(".") else f".{e}" for e in self.watched_extensions),
        )
        object.__setattr__(self, "ignore_dirs", tuple(self.ignore_dirs))

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_kb * 1024

    def resolve(self, root: Path, relative: Optional[str]) -> Optional[Path]:
        """Resolve a configured file path against the watched root."""
        if relative is None:
            return None
        path = Path(relative).expanduser()
        return path if path.is_absolute() else Path(root) / path


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> MonitorConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags)

    Returns:
        Validated MonitorConfig instance

    Raises:
        ConfigError: If a config file is unreadable or any value is invalid
    """
    merged: dict[str, Any] = {}

    global_config = Path.home() / ".compliance-pulse.toml"
    if global_config.exists():
        try:
            merged.update(_load_toml_file(global_config))
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Invalid global config '{global_config}': {e}")

    project_config = Path.cwd() / "compliance-pulse.toml"
    if project_config.exists():
        try:
            merged.update(_load_toml_file(project_config))
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Invalid project config '{project_config}': {e}")

    if config_file is not None:
        if not config_file.exists():
            raise ConfigError(f"Config file not found: {config_file}")
        try:
            merged.update(_load_toml_file(config_file))
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Invalid config file '{config_file}': {e}")

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update({k: v for k, v in overrides.items() if v is not None})

    return build_config(merged)


def build_config(data: dict[str, Any]) -> MonitorConfig:
    """Build a MonitorConfig from a plain dict (TOML layout), wrapping errors."""
    data = dict(data)

    trend = data.pop("trend", None)
    if isinstance(trend, dict):
        try:
            data["trend"] = TrendConfig(**trend)
        except TypeError as e:
            raise ConfigError(f"Invalid [trend] config: {e}")
    elif trend is not None and not isinstance(trend, TrendConfig):
        raise ConfigError("[trend] must be a table")
    elif trend is not None:
        data["trend"] = trend

    alerts = data.pop("alerts", None)
    if isinstance(alerts, dict):
        data["alerts"] = _build_alerts(alerts)
    elif alerts is not None and not isinstance(alerts, AlertsConfig):
        raise ConfigError("[alerts] must be a table")
    elif alerts is not None:
        data["alerts"] = alerts

    for key in ("watched_extensions", "ignore_dirs"):
        if key in data:
            value = data[key]
            if isinstance(value, str):
                value = [v.strip() for v in value.split(",") if v.strip()]
            if not isinstance(value, (list, tuple)):
                raise InvalidConfigError(key, value, "must be a list of strings")
            data[key] = tuple(value)

    try:
        return MonitorConfig(**data)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}")


def _build_alerts(section: dict[str, Any]) -> AlertsConfig:
    section = dict(section)
    raw_rules = section.pop("rules", None)
    try:
        if raw_rules is not None:
            if not isinstance(raw_rules, list) or not all(isinstance(r, dict) for r in raw_rules):
                raise ConfigError("[[alerts.rules]] must be an array of tables")
            section["rules"] = tuple(AlertRuleConfig(**r) for r in raw_rules)
        return AlertsConfig(**section)
    except TypeError as e:
        raise ConfigError(f"Invalid [alerts] config: {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from PULSE_* environment variables.

    Only scalar top-level fields are supported, e.g. PULSE_HISTORY_SIZE,
    PULSE_DEBOUNCE_MS, PULSE_INTERVAL_SECONDS, PULSE_VALIDATOR_TIMEOUT_SECONDS.
    Tuple fields accept comma-separated values (PULSE_WATCHED_EXTENSIONS).
    """
    type_hints = get_type_hints(MonitorConfig)
    result: dict[str, Any] = {}

    for f in fields(MonitorConfig):
        env_key = f"PULSE_{f.name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue

        type_hint = type_hints.get(f.name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[f.name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse an environment variable string to the field's type.

    Returns None for types that cannot come from the environment.
    """
    origin = getattr(type_hint, "__origin__", None)
    args = getattr(type_hint, "__args__", ())

    if type(None) in args:
        non_none = [t for t in args if t is not type(None)]
        if value.lower() in ("", "none", "null"):
            return None
        if non_none:
            type_hint = non_none[0]
            origin = getattr(type_hint, "__origin__", None)

    if origin is tuple:
        return tuple(v.strip() for v in value.split(",") if v.strip())

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load a TOML file and return the parsed dict."""
    try:
        import tomllib
    except ModuleNotFoundError:
        try:
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    with open(path, "rb") as f:
        return tomllib.load(f)
