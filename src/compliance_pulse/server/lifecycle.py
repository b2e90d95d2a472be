"""Server lifecycle management: startup, running, and graceful shutdown.

Coordinates:
- Signal handling (SIGINT, SIGTERM)
- Engine shutdown (watcher, interval and heartbeat threads, subscribers)
- Rich terminal status display
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..engine import MonitorEngine

logger = logging.getLogger(__name__)


class ShutdownManager:
    """Coordinates graceful shutdown of the engine and the ASGI server.

    Ensures cleanup happens exactly once, even if called from
    multiple signal handlers.
    """

    def __init__(self, engine: MonitorEngine, console: Console) -> None:
        self.engine = engine
        self.console = console

        self._shutdown_lock = threading.Lock()
        self._shutdown_complete = False
        self._uvicorn_server: Any = None

    def register_uvicorn(self, server: Any) -> None:
        """Register the uvicorn server for shutdown."""
        self._uvicorn_server = server

    @property
    def done(self) -> bool:
        return self._shutdown_complete

    def shutdown(self) -> None:
        """Perform full shutdown. Safe to call multiple times."""
        with self._shutdown_lock:
            if self._shutdown_complete:
                return
            self._shutdown_complete = True

        self.console.print()
        steps = []

        subscribers = self.engine.broadcaster.subscriber_count
        if subscribers:
            steps.append(f"Closed live feed ({subscribers} subscriber{'s' if subscribers != 1 else ''})")

        self.engine.stop()
        steps.append("Stopped watcher, scheduler and heartbeat threads")

        if self._uvicorn_server is not None:
            self._uvicorn_server.should_exit = True
            steps.append("Signaled uvicorn to stop")

        active = threading.active_count()
        if active > 1:
            thread_names = [t.name for t in threading.enumerate() if t != threading.current_thread()]
            logger.debug("Active threads at shutdown: %s", thread_names)

        for step in steps:
            self.console.print(f"  [green]OK[/green] {step}")
        self.console.print("  [green]OK[/green] Server stopped cleanly")
        self.console.print()


def format_status_panel(engine: MonitorEngine, host: str, port: Optional[int] = None) -> Panel:
    """Build the Rich panel summarising the running monitor."""
    table = Table(show_header=False, show_edge=False, box=None, padding=(0, 1))
    table.add_column("key", style="bold", width=14)
    table.add_column("value")

    table.add_row("Status:", "[green]Running[/green]")
    table.add_row("Project:", str(engine.root))
    if port is not None:
        table.add_row("API:", f"http://{host}:{port}/api/status")
        table.add_row("Live feed:", f"http://{host}:{port}/api/stream")

    current = engine.get_current_metrics()
    if current is not None:
        table.add_row("Score:", f"{current.compliance_score:.2f}")
        table.add_row(
            "Violations:",
            f"{current.total_violations} ({current.critical_violations} critical)",
        )
        table.add_row("Files:", f"{current.files_processed} ({current.files_errored} errored)")
        trend = engine.get_trend()
        table.add_row("Trend:", f"{trend.direction.value} ({trend.confidence:.0%} confidence)")
    else:
        table.add_row("Score:", "[dim]no data yet[/dim]")

    return Panel(table, title="[bold]Compliance Pulse[/bold]", border_style="cyan")


def launch_server(
    engine: MonitorEngine,
    console: Console,
    host: str = "127.0.0.1",
    port: int = 8765,
    verbose: bool = False,
) -> None:
    """Full server lifecycle: startup, serve, shutdown.

    1. Starts the engine (history load, initial scan, watcher, timers)
    2. Starts the ASGI server
    3. Shuts everything down on SIGINT/SIGTERM
    """
    import uvicorn

    from .app import create_app

    shutdown_mgr = ShutdownManager(engine, console)

    console.print(f"[bold]Monitoring[/bold] {engine.root}")
    with console.status("[cyan]Running initial scan..."):
        report = engine.start()

    if report is not None:
        snap = report.snapshot
        console.print(
            f"[green]Ready[/green] -- score {snap.compliance_score:.2f}, "
            f"{snap.total_violations} violation(s) in {snap.files_processed} file(s)"
        )
        if report.degraded:
            console.print("[yellow]Running degraded; see log for details[/yellow]")
    else:
        console.print("[yellow]Initial scan produced no results[/yellow]")

    console.print()
    console.print(format_status_panel(engine, host, port))
    console.print("[dim]Watching for changes... (Ctrl+C to stop)[/dim]")
    console.print()

    config = uvicorn.Config(
        create_app(engine),
        host=host,
        port=port,
        log_level="warning" if not verbose else "info",
    )
    server = uvicorn.Server(config)
    shutdown_mgr.register_uvicorn(server)

    # Install signal handlers BEFORE server.run()
    _original_sigint = signal.getsignal(signal.SIGINT)
    _original_sigterm = signal.getsignal(signal.SIGTERM)

    def _signal_handler(signum, frame):
        sig_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info("Received %s, initiating shutdown...", sig_name)
        console.print(f"\n[yellow]Received {sig_name}, stopping server...[/yellow]")
        server.should_exit = True

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        server.run()
    except SystemExit:
        pass
    except Exception as exc:
        logger.exception("Server error: %s", exc)
        console.print(f"[red]Server error:[/red] {exc}")
    finally:
        try:
            signal.signal(signal.SIGINT, _original_sigint)
            signal.signal(signal.SIGTERM, _original_sigterm)
        except (OSError, ValueError):
            pass  # May fail if not in main thread

        shutdown_mgr.shutdown()
