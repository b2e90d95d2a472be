"""``compliance-pulse serve`` / ``watch`` -- continuous monitoring."""

import logging
import signal
import threading
from typing import Optional

import typer

from ..models import EventType, LiveEvent
from . import app
from ._common import build_engine, console

logger = logging.getLogger(__name__)


@app.command()
def serve(
    ctx: typer.Context,
    port: int = typer.Option(8765, help="Port to listen on"),
    host: str = typer.Option("127.0.0.1", help="Host to bind to"),
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Full rescan interval in seconds (0 disables)", min=0
    ),
    debounce_ms: Optional[int] = typer.Option(None, "--debounce-ms", help="Change debounce window", min=0),
):
    """Monitor the tree and serve the query API and live feed over HTTP."""
    from ..server import launch_server

    engine = build_engine(ctx, interval_seconds=interval, debounce_ms=debounce_ms)
    launch_server(
        engine,
        console,
        host=host,
        port=port,
        verbose=bool((ctx.obj or {}).get("verbose")),
    )


def _print_event(event: LiveEvent) -> None:
    ts = event.timestamp.strftime("%H:%M:%S")
    if event.type is EventType.METRICS:
        snap = event.payload["snapshot"]
        trend = event.payload.get("trend") or {}
        console.print(
            f"[dim]{ts}[/dim] score [bold]{snap['complianceScore']:.2f}[/bold] "
            f"violations {snap['totalViolations']} "
            f"(critical {snap['criticalViolations']}) "
            f"trend {trend.get('direction', '?')}"
        )
    elif event.type is EventType.ALERT:
        color = "red" if event.payload["severity"] == "critical" else "yellow"
        console.print(f"[dim]{ts}[/dim] [{color}]ALERT[/{color}] {event.payload['message']}")


@app.command()
def watch(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Full rescan interval in seconds (0 disables)", min=0
    ),
    debounce_ms: Optional[int] = typer.Option(None, "--debounce-ms", help="Change debounce window", min=0),
):
    """Monitor the tree and print metrics and alerts to the terminal."""
    engine = build_engine(ctx, interval_seconds=interval, debounce_ms=debounce_ms)
    engine.subscribe(_print_event)

    stop = threading.Event()

    def _signal_handler(signum, frame):
        stop.set()

    original = signal.signal(signal.SIGINT, _signal_handler)
    try:
        console.print(f"[bold]Monitoring[/bold] {engine.root} [dim](Ctrl+C to stop)[/dim]")
        engine.start()
        while not stop.wait(0.5):
            pass
    finally:
        signal.signal(signal.SIGINT, original)
        engine.stop()
        console.print("\n[dim]Stopped.[/dim]")
