"""``compliance-pulse check`` -- run one full validation cycle."""

import json
from typing import Optional

import typer
from rich.table import Table

from . import app
from ._common import build_engine, console, score_style


@app.command()
def check(
    ctx: typer.Context,
    save: bool = typer.Option(
        True,
        "--save/--no-save",
        help="Append the snapshot to the history file",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
    fail_under: Optional[float] = typer.Option(
        None,
        "--fail-under",
        help="Exit 1 if the compliance score is below this value",
        min=0,
        max=100,
    ),
    fail_on_critical: bool = typer.Option(
        False,
        "--fail-on-critical",
        help="Exit 1 if any critical violation is found",
    ),
):
    """
    Validate every tracked file once and report the compliance score.

    [bold cyan]Examples:[/bold cyan]

      compliance-pulse check

      compliance-pulse check --no-save --json

      compliance-pulse check --fail-under 90 --fail-on-critical
    """
    engine = build_engine(ctx, persist=save)
    engine.load_state()
    report = engine.refresh()
    if report is None:
        console.print("[red]Cycle did not complete[/red]")
        raise typer.Exit(1)

    snap = report.snapshot
    if json_output:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        style = score_style(snap.compliance_score)
        console.print()
        console.print(
            f"[bold]Compliance score:[/bold] [{style}]{snap.compliance_score:.2f}[/{style}]"
            f"  ({snap.files_processed} file(s), {snap.cycle_duration_ms:.0f} ms)"
        )
        console.print(
            f"  {snap.total_violations} violation(s): "
            f"[red]{snap.critical_violations} critical[/red], "
            f"[yellow]{snap.warnings} warning(s)[/yellow]"
        )
        if snap.files_errored:
            console.print(f"  [yellow]{snap.files_errored} file(s) could not be validated[/yellow]")

        if snap.violation_categories:
            table = Table(show_header=True, pad_edge=True)
            table.add_column("Rule")
            table.add_column("Count", justify="right")
            for rule_id, count in sorted(snap.violation_categories.items(), key=lambda kv: -kv[1]):
                table.add_row(rule_id, str(count))
            console.print(table)

        for alert in report.alerts:
            color = "red" if alert.severity.value == "critical" else "yellow"
            console.print(f"  [{color}]ALERT[/{color}] {alert.message}")
        if report.degraded:
            console.print("[yellow]Cycle ran degraded; see log for details[/yellow]")
        console.print()

    failed = False
    if fail_under is not None and snap.compliance_score < fail_under:
        failed = True
    if fail_on_critical and snap.critical_violations > 0:
        failed = True
    if failed:
        raise typer.Exit(1)
