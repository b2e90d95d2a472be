"""Tests for alert sinks and the persisted alert history."""

import json
from datetime import timedelta

import pytest

from compliance_pulse.alerts import CallbackSink, JsonFileAlertSink, read_alert_history
from compliance_pulse.alerts import sinks as sinks_module
from compliance_pulse.exceptions import ErrorCode, PersistenceError
from compliance_pulse.models import Alert, Severity


def _alert(clock, n=0):
    return Alert(
        id=f"alert-{n}",
        type="low_score",
        category="compliance",
        severity=Severity.WARNING,
        message=f"Low compliance score #{n}",
        dedup_key="low_score:compliance",
        fired_at=clock.now + timedelta(minutes=n),
        cooldown_until=clock.now + timedelta(minutes=n + 5),
        value=50.0,
        threshold=70.0,
    )


class TestJsonFileAlertSink:
    def test_persists_and_reloads(self, tmp_path, clock):
        path = tmp_path / ".pulse" / "alerts.json"
        sink = JsonFileAlertSink(path)
        sink(_alert(clock, 0))
        sink(_alert(clock, 1))

        data = json.loads(path.read_text())
        assert [entry["id"] for entry in data] == ["alert-0", "alert-1"]
        assert JsonFileAlertSink(path).loaded() == [_alert(clock, 0), _alert(clock, 1)]

    def test_bounded(self, tmp_path, clock):
        path = tmp_path / "alerts.json"
        sink = JsonFileAlertSink(path, max_size=2)
        for n in range(3):
            sink(_alert(clock, n))
        assert [a.id for a in read_alert_history(path)] == ["alert-1", "alert-2"]

    def test_no_temp_files_left(self, tmp_path, clock):
        sink = JsonFileAlertSink(tmp_path / "alerts.json")
        sink(_alert(clock))
        assert [p.name for p in tmp_path.iterdir()] == ["alerts.json"]

    def test_write_failure_raises_cp202(self, tmp_path, clock, monkeypatch):
        def failing_write(path, data, indent=2):
            raise OSError("read-only filesystem")

        monkeypatch.setattr(sinks_module, "atomic_write_json", failing_write)
        sink = JsonFileAlertSink(tmp_path / "alerts.json")
        with pytest.raises(PersistenceError) as exc_info:
            sink(_alert(clock))
        assert exc_info.value.code is ErrorCode.CP202


class TestReadAlertHistory:
    def test_missing_file(self, tmp_path):
        assert read_alert_history(tmp_path / "absent.json") == []

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "alerts.json"
        path.write_text("{not json")
        assert read_alert_history(path) == []

    def test_not_an_array(self, tmp_path):
        path = tmp_path / "alerts.json"
        path.write_text('{"id": "x"}')
        assert read_alert_history(path) == []

    def test_drops_malformed_entries(self, tmp_path, clock):
        path = tmp_path / "alerts.json"
        path.write_text(json.dumps([{"id": "broken"}, _alert(clock).to_dict()]))
        assert [a.id for a in read_alert_history(path)] == ["alert-0"]


class TestCallbackSink:
    def test_forwards(self, clock):
        received = []
        CallbackSink(received.append)(_alert(clock))
        assert received == [_alert(clock)]
