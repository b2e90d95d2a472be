"""Change detection, cycle orchestration, and the MonitorEngine facade."""

from .context import MonitorEngine
from .debounce import Debouncer
from .orchestrator import CycleReport, Orchestrator, OrchestratorState
from .watcher import FileChangeWatcher

__all__ = [
    "MonitorEngine",
    "Debouncer",
    "Orchestrator",
    "OrchestratorState",
    "CycleReport",
    "FileChangeWatcher",
]
