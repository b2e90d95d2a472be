"""Shared CLI helpers."""

from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ..config import MonitorConfig, load_config
from ..engine import MonitorEngine
from ..exceptions import CompliancePulseError

console = Console()

_BLOCKS = " ▁▂▃▄▅▆▇█"


def sparkline(values: list) -> str:
    """Generate a block sparkline from a list of numeric values."""
    if not values:
        return ""
    mn, mx = min(values), max(values)
    if mx == mn:
        return _BLOCKS[4] * len(values)
    return "".join(_BLOCKS[min(8, int((v - mn) / (mx - mn) * 8))] for v in values)


def score_style(score: float) -> str:
    if score >= 90:
        return "green"
    if score >= 70:
        return "yellow"
    return "red"


def resolve_config(
    config: Optional[Path] = None,
    verbose: bool = False,
    **overrides,
) -> MonitorConfig:
    """Build configuration from CLI options, exiting cleanly on bad config."""
    try:
        return load_config(config_file=config, verbose=verbose, **overrides)
    except CompliancePulseError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(2)


def build_engine(ctx: typer.Context, persist: bool = True, **overrides) -> MonitorEngine:
    """Create a MonitorEngine for the root selected on the command line."""
    obj = ctx.obj or {}
    root = Path(obj.get("path") or Path.cwd()).resolve()
    cfg = resolve_config(obj.get("config"), obj.get("verbose", False), **overrides)
    if not persist:
        cfg = replace(cfg, history_file=None, alerts=replace(cfg.alerts, history_file=None))
    try:
        return MonitorEngine.from_config(root, cfg)
    except CompliancePulseError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(2)
