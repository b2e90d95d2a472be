"""Logging setup for the ``compliance-pulse`` command line.

Library modules only call ``logging.getLogger(__name__)``; nothing is
configured until the CLI calls :func:`setup_logging`. Console output goes to
stderr through rich so stdout stays clean for ``--json`` and CSV output.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "compliance_pulse"

# Chatty at INFO; only surfaced with --verbose
NOISY_LOGGERS = ("watchfiles", "uvicorn.access")

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def resolve_level(verbose: bool = False, quiet: bool = False) -> int:
    """``--quiet`` wins over ``--verbose``."""
    if quiet:
        return logging.ERROR
    return logging.DEBUG if verbose else logging.WARNING


def setup_logging(
    verbose: bool = False, quiet: bool = False, log_file: Optional[str] = None
) -> logging.Logger:
    """Install stderr (and optional file) handlers and return the package logger.

    Safe to call more than once: earlier handlers are replaced.
    """
    level = resolve_level(verbose, quiet)

    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            tracebacks_show_locals=verbose,
            markup=False,
            show_path=verbose,
        )
    ]
    if log_file:
        to_file = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        to_file.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(to_file)

    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    package = logging.getLogger(PACKAGE_LOGGER)
    package.setLevel(level)
    return package
