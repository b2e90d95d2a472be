"""Tests for MonitorEngine wiring, lifecycle and query API."""

import json

import pytest

from compliance_pulse import MonitorConfig, MonitorEngine
from compliance_pulse.alerts import AlertState
from compliance_pulse.config import AlertsConfig
from compliance_pulse.exceptions import InvalidPathError
from compliance_pulse.models import ChangeType, FileChangeEvent


@pytest.fixture
def memory_config():
    return MonitorConfig(history_file=None, alerts=AlertsConfig(history_file=None), debounce_ms=0)


@pytest.fixture
def engine(project, memory_config):
    eng = MonitorEngine(project, memory_config)
    yield eng
    eng.stop()


class TestConstruction:
    def test_missing_root(self, tmp_path):
        with pytest.raises(InvalidPathError):
            MonitorEngine(tmp_path / "missing")

    def test_root_is_file(self, tmp_path):
        target = tmp_path / "file.py"
        target.write_text("")
        with pytest.raises(InvalidPathError):
            MonitorEngine(target)

    def test_defaults_persist_under_root(self, project):
        eng = MonitorEngine(project)
        assert eng.store.path == project.resolve() / ".pulse" / "history.json"
        assert eng.alert_sink is not None

    def test_memory_only(self, engine):
        assert engine.store.path is None
        assert engine.alert_sink is None


class TestLifecycle:
    def test_start_runs_initial_scan(self, engine):
        assert engine.get_current_metrics() is None
        report = engine.start(watch=False, interval=False)
        assert report.reason == "startup"
        assert engine.running
        assert engine.get_current_metrics().compliance_score == 50.0

    def test_start_and_stop_idempotent(self, engine):
        first = engine.start(watch=False, interval=False)
        assert engine.start(watch=False, interval=False) is first
        engine.stop()
        engine.stop()
        assert not engine.running

    def test_stop_drops_subscribers(self, engine):
        engine.start(watch=False, interval=False)
        engine.subscribe(lambda e: None)
        engine.stop()
        assert engine.broadcaster.subscriber_count == 0

    def test_context_manager(self, project, memory_config):
        with MonitorEngine(project, memory_config) as eng:
            eng.start(watch=False, interval=False)
            assert eng.running
        assert not eng.running

    def test_file_event_triggers_cycle(self, engine, project):
        engine.start(watch=False, interval=False)
        dirty = project / "pkg" / "dirty.py"
        dirty.write_text("def f():\n    return 1\n")
        engine.on_file_event(FileChangeEvent(str(dirty), ChangeType.MODIFIED, 0.0))
        assert engine.get_current_metrics().compliance_score == 100.0
        assert engine.orchestrator.last_report.reason == "change"


class TestQueries:
    def test_history(self, engine):
        engine.start(watch=False, interval=False)
        engine.refresh()
        engine.refresh()
        history = engine.get_history()
        assert len(history) == 3
        assert engine.get_history(count=2) == history[-2:]
        assert engine.get_history(count=0) == ()
        assert engine.get_history(since=history[1].timestamp) == history[1:]
        assert engine.get_history(count=1, since=history[0].timestamp) == history[-1:]

    def test_history_bad_since(self, engine):
        with pytest.raises(ValueError):
            engine.get_history(since="not-a-date")

    def test_trend_and_forecast(self, engine):
        engine.start(watch=False, interval=False)
        trend = engine.get_trend()
        assert trend.window == 3
        assert not trend.sufficient_data
        assert engine.get_trend("long").window == 14
        with pytest.raises(ValueError):
            engine.get_trend("bogus")

        forecast = engine.get_forecast(4)
        assert forecast.horizon_cycles == 4
        assert forecast.predicted_value == 50.0

    def test_alerts_and_risk(self, engine):
        engine.start(watch=False, interval=False)
        assert [a.dedup_key for a in engine.get_alerts()] == ["low_score:compliance"]
        assert engine.get_alerts(0) == ()
        assert engine.get_risk().level == "HIGH"

    def test_status(self, engine, project):
        status = engine.get_status()
        assert status["running"] is False
        assert status["lastCycle"] is None

        engine.start(watch=False, interval=False)
        status = engine.get_status()
        assert status["root"] == str(project.resolve())
        assert status["running"] is True
        assert status["state"] == "idle"
        assert status["cycles"] == 1
        assert status["trackedFiles"] == 2
        assert status["historySize"] == 1
        assert status["historyLimit"] == 100
        assert status["degraded"] is False
        assert status["watching"] is False
        assert status["lastCycle"]["reason"] == "startup"
        json.dumps(status)

    def test_subscribe_receives_cycle_events(self, engine):
        events = []
        sid = engine.subscribe(events.append)
        engine.refresh()
        assert engine.broadcaster.drain(timeout=2)
        assert events[0].type.value == "metrics"
        assert engine.unsubscribe(sid)


class TestPersistence:
    def test_history_and_cooldowns_survive_restart(self, project):
        first = MonitorEngine(project)
        first.start(watch=False, interval=False)
        first.stop()
        assert (project / ".pulse" / "history.json").exists()
        assert (project / ".pulse" / "alerts.json").exists()

        second = MonitorEngine(project)
        second.load_state()
        assert len(second.get_history()) == 1
        assert len(second.get_alerts()) == 1
        assert second.alerts.state_of("low_score:compliance") is AlertState.COOLDOWN

        report = second.refresh()
        assert report.alerts == ()
        assert len(second.get_history()) == 2

    def test_history_dir_not_scanned(self, project):
        eng = MonitorEngine(project)
        eng.start(watch=False, interval=False)
        eng.refresh()
        eng.stop()
        assert eng.orchestrator.tracked_files == 2
