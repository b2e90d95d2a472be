"""Tests for the core records."""

import json
from datetime import datetime, timezone

import pytest

from compliance_pulse.models import (
    Alert,
    EventType,
    FileResult,
    LiveEvent,
    MetricsSnapshot,
    Severity,
    ViolationRecord,
    clamp_score,
    parse_timestamp,
)


class TestParseTimestamp:
    def test_z_suffix(self):
        ts = parse_timestamp("2024-01-01T12:00:00Z")
        assert ts == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        ts = parse_timestamp(datetime(2024, 1, 1))
        assert ts.tzinfo is not None
        assert ts.utcoffset().total_seconds() == 0

    def test_offset_converted_to_utc(self):
        ts = parse_timestamp("2024-01-01T12:00:00+02:00")
        assert ts.hour == 10

    def test_rejects_non_string(self):
        with pytest.raises(TypeError):
            parse_timestamp(12345)

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestClampScore:
    def test_bounds(self):
        assert clamp_score(150) == 100.0
        assert clamp_score(-3) == 0.0
        assert clamp_score(42.5) == 42.5

    def test_nan_collapses_to_zero(self):
        assert clamp_score(float("nan")) == 0.0


class TestMetricsSnapshot:
    def test_score_clamped_on_construction(self, make_snapshot):
        assert make_snapshot(120).compliance_score == 100.0
        assert make_snapshot(-1).compliance_score == 0.0

    def test_negative_counts_rejected(self, make_snapshot):
        with pytest.raises(ValueError):
            make_snapshot(90, total_violations=-1)

    def test_wire_keys(self, make_snapshot):
        data = make_snapshot(88.5, critical_violations=1, total_violations=3, warnings=2).to_dict()
        assert set(data) == {
            "timestamp",
            "complianceScore",
            "totalViolations",
            "criticalViolations",
            "warnings",
            "filesProcessed",
            "cycleDurationMs",
            "filesErrored",
            "degraded",
            "violationCategories",
        }
        assert data["complianceScore"] == 88.5

    def test_from_dict_restores_fields(self, make_snapshot):
        original = make_snapshot(75.0, total_violations=4, violation_categories={"a": 4})
        restored = MetricsSnapshot.from_dict(json.loads(json.dumps(original.to_dict())))
        assert restored == original
        assert restored.violation_categories == {"a": 4}

    def test_from_dict_rejects_out_of_range_score(self, make_snapshot):
        data = make_snapshot(50).to_dict()
        data["complianceScore"] = 150
        with pytest.raises(ValueError):
            MetricsSnapshot.from_dict(data)

    def test_from_dict_rejects_non_numeric_score(self, make_snapshot):
        data = make_snapshot(50).to_dict()
        data["complianceScore"] = "high"
        with pytest.raises(TypeError):
            MetricsSnapshot.from_dict(data)

    def test_from_dict_missing_field(self, make_snapshot):
        data = make_snapshot(50).to_dict()
        del data["totalViolations"]
        with pytest.raises(KeyError):
            MetricsSnapshot.from_dict(data)

    def test_immutable(self, make_snapshot):
        snap = make_snapshot(50)
        with pytest.raises(AttributeError):
            snap.compliance_score = 10


class TestFileResult:
    def test_clean(self):
        assert FileResult(path="a.py").is_clean

    def test_errored_is_not_clean(self):
        assert not FileResult(path="a.py", errored=True).is_clean

    def test_violations_not_clean(self):
        v = ViolationRecord("a.py", "r", Severity.WARNING, "m", 1)
        assert not FileResult(path="a.py", violations=(v,)).is_clean


class TestAlert:
    def test_from_dict(self):
        fired = datetime(2024, 1, 1, tzinfo=timezone.utc)
        alert = Alert(
            id="abc",
            type="low_score",
            category="compliance",
            severity=Severity.WARNING,
            message="Low",
            dedup_key="low_score:compliance",
            fired_at=fired,
            cooldown_until=fired,
            value=60.0,
            threshold=70.0,
        )
        data = alert.to_dict()
        assert data["dedupKey"] == "low_score:compliance"
        assert Alert.from_dict(data) == alert


class TestLiveEvent:
    def test_ndjson_is_one_line(self):
        event = LiveEvent(type=EventType.METRICS, payload={"a": 1, "b": "x\ny"})
        line = event.to_ndjson()
        assert line.endswith("\n")
        assert line.count("\n") == 1
        data = json.loads(line)
        assert data["type"] == "metrics"
        assert data["payload"] == {"a": 1, "b": "x\ny"}
        assert "timestamp" in data
