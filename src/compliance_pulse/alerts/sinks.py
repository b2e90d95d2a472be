"""Alert sinks: an in-process callback and a bounded JSON history file."""

from __future__ import annotations

import logging
import threading
from collections import deque
from pathlib import Path
from typing import Callable

from ..exceptions import ErrorCode, PersistenceError
from ..file_ops import atomic_write_json, read_json
from ..models import Alert

logger = logging.getLogger(__name__)


class CallbackSink:
    """Forward each alert to a plain callable."""

    def __init__(self, callback: Callable[[Alert], None]) -> None:
        self.callback = callback

    def __call__(self, alert: Alert) -> None:
        self.callback(alert)

    def __repr__(self) -> str:
        return f"CallbackSink({getattr(self.callback, '__name__', self.callback)!r})"


def read_alert_history(path: Path) -> list[Alert]:
    """Load alerts from *path*; a missing or malformed file yields []."""
    try:
        raw = read_json(path)
    except FileNotFoundError:
        return []
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable alert history %s: %s", path, exc)
        return []
    if not isinstance(raw, list):
        logger.warning("Ignoring alert history %s: top level is not an array", path)
        return []

    alerts: list[Alert] = []
    for entry in raw:
        try:
            alerts.append(Alert.from_dict(entry))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Dropping malformed alert entry: %s", exc)
    return alerts


class JsonFileAlertSink:
    """Persist the newest *max_size* alerts to a JSON array, atomically."""

    def __init__(self, path: Path, max_size: int = 100) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._alerts: deque[Alert] = deque(read_alert_history(self.path), maxlen=max_size)

    def loaded(self) -> list[Alert]:
        with self._lock:
            return list(self._alerts)

    def __call__(self, alert: Alert) -> None:
        with self._lock:
            self._alerts.append(alert)
            data = [a.to_dict() for a in self._alerts]
            try:
                atomic_write_json(self.path, data)
            except OSError as exc:
                raise PersistenceError(
                    message=f"Could not write alert history: {exc}",
                    code=ErrorCode.CP202,
                    context={"path": str(self.path)},
                ) from exc

    def __repr__(self) -> str:
        return f"JsonFileAlertSink({str(self.path)!r})"
