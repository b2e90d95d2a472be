"""CLI entry point -- registers all subcommands."""

from pathlib import Path
from typing import Optional

import typer

from .. import __version__
from ..logging_config import setup_logging
from ._common import console

app = typer.Typer(
    name="compliance-pulse",
    help="Compliance Pulse - real-time compliance monitoring and trend analytics",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.callback(invoke_without_command=True, no_args_is_help=False)
def _root(
    ctx: typer.Context,
    path: Optional[Path] = typer.Option(
        None,
        "-C",
        "--path",
        help="Directory to monitor (default: current directory)",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    """
    Watch a source tree, score its compliance, and track the trend.

    [bold cyan]Examples:[/bold cyan]

      compliance-pulse check

      compliance-pulse -C /path/to/project serve --port 8765

      compliance-pulse trend --json
    """
    ctx.ensure_object(dict)
    ctx.obj["path"] = Path(path) if path else Path.cwd()
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose

    if version:
        console.print(f"[bold cyan]Compliance Pulse[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)

    setup_logging(verbose=verbose, quiet=quiet)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


# Import subcommands to register them
from .check import check as _check  # noqa: F401, E402
from .serve import serve as _serve, watch as _watch  # noqa: F401, E402
from .history import history as _history  # noqa: F401, E402
from .trend import trend as _trend  # noqa: F401, E402
from .alerts import alerts as _alerts  # noqa: F401, E402


def main() -> None:
    app()
