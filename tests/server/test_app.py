"""Tests for the HTTP/WebSocket surface."""

import json
import time

import pytest
from starlette.testclient import TestClient

from compliance_pulse import MonitorConfig, MonitorEngine
from compliance_pulse.config import AlertsConfig
from compliance_pulse.models import EventType
from compliance_pulse.server import create_app


@pytest.fixture
def engine(project):
    config = MonitorConfig(history_file=None, alerts=AlertsConfig(history_file=None))
    eng = MonitorEngine(project, config)
    yield eng
    eng.stop()


@pytest.fixture
def started(engine):
    engine.start(watch=False, interval=False)
    return engine


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


class TestQueryEndpoints:
    def test_metrics_pending_before_first_cycle(self, client):
        response = client.get("/api/metrics")
        assert response.status_code == 202
        assert response.json() == {"status": "pending"}

    def test_metrics(self, started, client):
        data = client.get("/api/metrics").json()
        assert data["complianceScore"] == 50.0
        assert data["filesProcessed"] == 2

    def test_history(self, started, client):
        started.refresh()
        data = client.get("/api/history", params={"count": 1}).json()
        assert data["count"] == 1
        assert len(data["snapshots"]) == 1
        assert client.get("/api/history").json()["count"] == 2

    @pytest.mark.parametrize("params", [{"count": "abc"}, {"count": "0"}, {"since": "yesterday"}])
    def test_history_bad_params(self, started, client, params):
        response = client.get("/api/history", params=params)
        assert response.status_code == 400
        assert "error" in response.json()

    def test_trend(self, started, client):
        assert client.get("/api/trend").json()["window"] == 3
        assert client.get("/api/trend/long").json()["window"] == 14
        assert client.get("/api/trend/7").json()["window"] == 7
        assert client.get("/api/trend/bogus").status_code == 400

    def test_forecast(self, started, client):
        data = client.get("/api/forecast", params={"horizon": 2}).json()
        assert data["horizonCycles"] == 2
        assert data["predictedValue"] == 50.0

    def test_forecast_empty_history(self, client):
        assert client.get("/api/forecast").json()["predictedValue"] is None

    def test_alerts(self, started, client):
        data = client.get("/api/alerts").json()
        assert data["count"] == 1
        assert data["alerts"][0]["dedupKey"] == "low_score:compliance"

    def test_status(self, started, client):
        data = client.get("/api/status").json()
        assert data["running"] is True
        assert data["trackedFiles"] == 2

    def test_risk(self, started, client):
        assert client.get("/api/risk").json()["level"] == "HIGH"

    def test_refresh(self, started, client):
        response = client.post("/api/refresh")
        assert response.status_code == 202
        deadline = time.monotonic() + 5
        while started.orchestrator.cycles_completed < 2 and time.monotonic() < deadline:
            time.sleep(0.02)
        assert started.orchestrator.cycles_completed == 2

    def test_refresh_requires_post(self, client):
        assert client.get("/api/refresh").status_code == 405


class TestLiveFeed:
    def test_stream_starts_with_status(self, started, client):
        with client.stream("GET", "/api/stream", params={"max_events": 1}) as response:
            assert response.headers["content-type"].startswith("application/x-ndjson")
            lines = [line for line in response.iter_lines() if line]
        assert len(lines) == 1
        event = json.loads(lines[0])
        assert event["type"] == "status"
        assert event["payload"]["snapshot"]["complianceScore"] == 50.0
        assert started.broadcaster.subscriber_count == 0

    def test_websocket(self, started, client):
        with client.websocket_connect("/ws") as ws:
            first = ws.receive_json()
            assert first["type"] == "status"
            assert first["payload"]["status"]["running"] is True
            assert started.broadcaster.subscriber_count == 1

            ws.send_text("ping")
            started.broadcaster.publish(EventType.HEARTBEAT, {"subscribers": 1})
            beat = ws.receive_json()
            assert beat["type"] == "heartbeat"
            assert beat["payload"] == {"subscribers": 1}
