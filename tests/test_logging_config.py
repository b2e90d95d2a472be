"""Tests for logging setup."""

import logging

import pytest

from compliance_pulse.logging_config import resolve_level, setup_logging


class TestSetupLogging:
    def test_levels(self):
        assert setup_logging(verbose=True).level == logging.DEBUG
        assert setup_logging(quiet=True).level == logging.ERROR
        assert setup_logging().level == logging.WARNING

    @pytest.mark.parametrize(
        "verbose,quiet,expected",
        [(False, False, logging.WARNING), (True, False, logging.DEBUG), (True, True, logging.ERROR)],
    )
    def test_resolve_level(self, verbose, quiet, expected):
        assert resolve_level(verbose, quiet) == expected

    def test_watcher_noise_follows_verbosity(self):
        setup_logging()
        assert logging.getLogger("watchfiles").level == logging.WARNING
        setup_logging(verbose=True)
        assert logging.getLogger("watchfiles").level == logging.DEBUG

    def test_repeat_calls_replace_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "pulse.log"
        logger = setup_logging(log_file=str(log_file))
        logger.warning("history write failed")
        root = logging.getLogger()
        for handler in list(root.handlers):
            if isinstance(handler, logging.FileHandler):
                handler.flush()
                root.removeHandler(handler)
                handler.close()
        text = log_file.read_text()
        assert "history write failed" in text
        assert "compliance_pulse" in text
