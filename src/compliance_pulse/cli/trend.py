"""Trend CLI command -- trend, volatility, forecast and risk from history."""

import json
from typing import Optional

import typer
from rich.table import Table

from . import app
from ._common import build_engine, console, sparkline

_DIRECTION_STYLE = {"improving": "green", "declining": "red", "stable": "dim"}


@app.command()
def trend(
    ctx: typer.Context,
    horizon: Optional[int] = typer.Option(
        None,
        "--horizon",
        help="Forecast horizon in cycles (default from config)",
        min=1,
        max=100,
    ),
    fmt: str = typer.Option(
        "rich",
        "--format",
        "-f",
        help="Output format: rich (table) or json",
    ),
):
    """
    Show how the compliance score is moving.

    Reads the history file; run [bold]check[/bold] or [bold]serve[/bold]
    first to record snapshots.

    [bold cyan]Examples:[/bold cyan]

      compliance-pulse trend

      compliance-pulse trend --horizon 5 --format json
    """
    if fmt not in ("rich", "json"):
        console.print(f"[red]Unknown format:[/red] {fmt} (expected rich or json)")
        raise typer.Exit(2)

    engine = build_engine(ctx)
    engine.load_state()
    series = engine.get_history()

    report = engine.analyzer.analyze(series)
    forecast = engine.get_forecast(horizon)
    risk = engine.get_risk()

    if fmt == "json":
        data = report.to_dict()
        data["forecast"] = forecast.to_dict()
        data["risk"] = risk.to_dict()
        data["samples"] = len(series)
        print(json.dumps(data, indent=2))
        return

    if not series:
        console.print(
            "[yellow]No history found.[/yellow] "
            "Run [bold]compliance-pulse check[/bold] first to record snapshots."
        )
        raise typer.Exit(0)

    console.print()
    console.print(f"[bold cyan]Trend[/bold cyan] over {len(series)} snapshot(s)")
    console.print(f"  {sparkline([s.compliance_score for s in series])}")
    console.print()

    table = Table(show_header=True, pad_edge=True)
    table.add_column("Window")
    table.add_column("Size", justify="right")
    table.add_column("Direction")
    table.add_column("Magnitude", justify="right")
    table.add_column("Confidence", justify="right")
    for name, result in report.trends.items():
        style = _DIRECTION_STYLE[result.direction.value]
        direction = f"[{style}]{result.direction.value}[/{style}]"
        if not result.sufficient_data:
            direction += " [dim](insufficient data)[/dim]"
        table.add_row(
            name,
            str(result.window),
            direction,
            f"{result.magnitude:.2f}",
            f"{result.confidence:.0%}",
        )
    console.print(table)

    console.print(f"  Volatility: {report.volatility:.3f}")
    if forecast.predicted_value is not None:
        console.print(
            f"  Forecast (+{forecast.horizon_cycles} cycles): "
            f"[bold]{forecast.predicted_value:.2f}[/bold] "
            f"({forecast.confidence:.0%} confidence)"
        )
    risk_color = {"LOW": "green", "MEDIUM": "yellow", "HIGH": "red"}[risk.level]
    console.print(f"  Risk: [{risk_color}]{risk.level}[/{risk_color}]")
    for factor in risk.factors:
        console.print(f"    - {factor}")
    console.print()
