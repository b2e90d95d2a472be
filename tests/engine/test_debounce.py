"""Tests for the change debouncer."""

import threading

import pytest

from compliance_pulse.engine import Debouncer
from compliance_pulse.models import ChangeType, FileChangeEvent


class FakeTimer:
    def __init__(self, interval, function, args=()):
        self.interval = interval
        self.function = function
        self.args = args
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args)


@pytest.fixture
def timers():
    return []


@pytest.fixture
def factory(timers):
    def _make(interval, function, args=()):
        timer = FakeTimer(interval, function, args)
        timers.append(timer)
        return timer

    return _make


class TestDebouncer:
    def test_burst_fires_once(self, timers, factory):
        fired = []
        debouncer = Debouncer(0.5, fired.append, timer_factory=factory)
        for name in ("a.py", "b.py", "a.py"):
            debouncer.submit(name)

        assert len(timers) == 3
        assert all(t.cancelled for t in timers[:-1])
        assert timers[-1].daemon and timers[-1].interval == 0.5

        timers[-1].fire()
        assert fired == [frozenset({"a.py", "b.py"})]
        assert debouncer.pending == frozenset()

    def test_stale_timer_ignored(self, timers, factory):
        fired = []
        debouncer = Debouncer(0.5, fired.append, timer_factory=factory)
        debouncer.submit("a.py")
        debouncer.submit("b.py")
        timers[0].fire()
        assert fired == []
        timers[1].fire()
        assert fired == [frozenset({"a.py", "b.py"})]

    def test_accepts_change_events(self, timers, factory):
        fired = []
        debouncer = Debouncer(0.5, fired.append, timer_factory=factory)
        debouncer.submit(FileChangeEvent("/src/x.py", ChangeType.MODIFIED, 0.0))
        timers[-1].fire()
        assert fired == [frozenset({"/src/x.py"})]

    def test_flush(self, timers, factory):
        fired = []
        debouncer = Debouncer(0.5, fired.append, timer_factory=factory)
        assert debouncer.flush() is None
        debouncer.submit("a.py")
        assert debouncer.flush() == frozenset({"a.py"})
        assert fired == [frozenset({"a.py"})]
        timers[-1].fire()
        assert len(fired) == 1

    def test_cancel(self, timers, factory):
        fired = []
        debouncer = Debouncer(0.5, fired.append, timer_factory=factory)
        debouncer.submit("a.py")
        debouncer.cancel()
        assert debouncer.pending == frozenset()
        timers[-1].fire()
        assert fired == []

    def test_zero_window_fires_immediately(self):
        fired = []
        Debouncer(0, fired.append).submit("a.py")
        assert fired == [frozenset({"a.py"})]

    def test_callback_error_is_contained(self, caplog):
        def boom(paths):
            raise RuntimeError("cycle failed")

        Debouncer(0, boom).submit("a.py")
        assert "Debounced callback failed" in caplog.text

    def test_negative_window(self):
        with pytest.raises(ValueError):
            Debouncer(-1, lambda paths: None)

    def test_real_timer(self):
        done = threading.Event()
        fired = []

        def callback(paths):
            fired.append(paths)
            done.set()

        debouncer = Debouncer(0.05, callback)
        for name in ("a.py", "b.py", "c.py"):
            debouncer.submit(name)
        assert done.wait(timeout=2)
        assert fired == [frozenset({"a.py", "b.py", "c.py"})]
