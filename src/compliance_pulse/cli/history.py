"""History CLI command -- list recorded snapshots."""

import json
from typing import Optional

import typer
from rich.table import Table

from . import app
from ._common import build_engine, console, score_style, sparkline


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Maximum number of snapshots to list",
        min=1,
        max=10000,
    ),
    since: Optional[str] = typer.Option(
        None,
        "--since",
        help="Only snapshots at or after this ISO-8601 timestamp",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    List snapshots stored in the history file.

    [bold cyan]Examples:[/bold cyan]

      compliance-pulse history

      compliance-pulse history --since 2024-01-01T00:00:00Z --json
    """
    engine = build_engine(ctx)
    engine.load_state()
    try:
        snapshots = engine.get_history(count=limit, since=since)
    except (TypeError, ValueError) as exc:
        console.print(f"[red]Invalid --since value:[/red] {exc}")
        raise typer.Exit(2)

    if json_output:
        print(json.dumps([s.to_dict() for s in snapshots], indent=2))
        return

    if not snapshots:
        console.print(
            "[yellow]No history found.[/yellow] "
            "Run [bold]compliance-pulse check[/bold] first to record a snapshot."
        )
        raise typer.Exit(0)

    console.print()
    console.print(f"[bold cyan]Compliance history[/bold cyan] (last {len(snapshots)} snapshots)")
    console.print(f"  {sparkline([s.compliance_score for s in snapshots])}")
    console.print()

    table = Table(show_header=True, show_lines=False, pad_edge=True)
    table.add_column("Timestamp")
    table.add_column("Score", justify="right")
    table.add_column("Delta", justify="right")
    table.add_column("Violations", justify="right")
    table.add_column("Critical", justify="right")
    table.add_column("Files", justify="right")

    prev: Optional[float] = None
    for s in snapshots:
        delta_str = ""
        if prev is not None:
            d = s.compliance_score - prev
            if abs(d) > 0.001:
                color = "green" if d > 0 else "red"
                delta_str = f"[{color}]{d:+.2f}[/{color}]"
        style = score_style(s.compliance_score)
        table.add_row(
            s.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{style}]{s.compliance_score:.2f}[/{style}]",
            delta_str,
            str(s.total_violations),
            str(s.critical_violations),
            str(s.files_processed),
        )
        prev = s.compliance_score

    console.print(table)
    console.print()
