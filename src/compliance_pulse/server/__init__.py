"""HTTP/WebSocket surface for the monitoring engine."""

from .app import create_app
from .lifecycle import ShutdownManager, format_status_panel, launch_server

__all__ = ["create_app", "launch_server", "ShutdownManager", "format_status_panel"]
