"""Alerts CLI command -- list persisted alerts."""

import json

import typer
from rich.table import Table

from . import app
from ._common import build_engine, console


@app.command()
def alerts(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of alerts", min=1, max=10000),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """List the most recent alerts, newest last."""
    engine = build_engine(ctx)
    engine.load_state()
    history = engine.get_alerts(limit)

    if json_output:
        print(json.dumps([a.to_dict() for a in history], indent=2))
        return

    if not history:
        console.print("[green]No alerts recorded.[/green]")
        raise typer.Exit(0)

    table = Table(show_header=True, pad_edge=True)
    table.add_column("Fired")
    table.add_column("Severity")
    table.add_column("Key")
    table.add_column("Message")
    table.add_column("Cooldown until", style="dim")
    for alert in history:
        color = "red" if alert.severity.value == "critical" else "yellow"
        table.add_row(
            alert.fired_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{color}]{alert.severity.value}[/{color}]",
            alert.dedup_key,
            alert.message,
            alert.cooldown_until.strftime("%H:%M:%S"),
        )
    console.print(table)
