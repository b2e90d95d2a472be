"""Validator contract, default pattern rules, and the parallel runner."""

from .base import DEFAULT_RULES, PatternRule, PatternValidator, Validator
from .discovery import discover_files, is_tracked_path
from .runner import run_validations

__all__ = [
    "Validator",
    "PatternRule",
    "PatternValidator",
    "DEFAULT_RULES",
    "discover_files",
    "is_tracked_path",
    "run_validations",
]
