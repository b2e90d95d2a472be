"""Shared test fixtures for Compliance Pulse tests."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from compliance_pulse.models import MetricsSnapshot

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


class FakeClock:
    """Manually advanced tz-aware clock."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeMonotonic:
    """Manually advanced monotonic clock (float seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def make_snapshot():
    """Factory: ``make_snapshot(score, index=0, **fields)``; index = minutes after BASE_TIME."""

    def _make(score: float = 100.0, index: int = 0, **kwargs) -> MetricsSnapshot:
        kwargs.setdefault("files_processed", 10)
        return MetricsSnapshot(
            timestamp=BASE_TIME + timedelta(minutes=index),
            compliance_score=score,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_series(make_snapshot):
    """Factory: ``make_series([scores...])`` -> list of snapshots one minute apart."""

    def _make(scores):
        return [make_snapshot(score, i) for i, score in enumerate(scores)]

    return _make


@pytest.fixture
def project(tmp_path):
    """A small source tree with one clean and one dirty Python file."""
    root = tmp_path / "project"
    (root / "pkg").mkdir(parents=True)
    (root / "pkg" / "clean.py").write_text("def add(a, b):\n    return a + b\n")
    (root / "pkg" / "dirty.py").write_text("def f():\n    print('debug')\n")
    (root / "node_modules").mkdir()
    (root / "node_modules" / "lib.js").write_text("console.log('x')\n")
    (root / "README.md").write_text("# not tracked\n")
    return root


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """CLI runs call setup_logging(); keep levels from leaking between tests."""
    yield
    for name in ("compliance_pulse", "watchfiles", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.NOTSET)
