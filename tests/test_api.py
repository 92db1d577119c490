"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from perfwatch.health import ProbeReading
from perfwatch.main import create_app

pytestmark = pytest.mark.api


@pytest.fixture
def client(monitor, settings):
    """Client without lifespan: the scheduler thread is not started."""
    return TestClient(create_app(monitor, settings))


class TestRoot:
    def test_root(self, client):
        assert client.get("/").json()["name"] == "perfwatch"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["monitor"]["tracked_metrics"] == 0

    def test_lifespan_starts_and_stops_monitor(self, monitor, settings):
        with TestClient(create_app(monitor, settings)) as client:
            assert client.get("/health").json()["monitor"]["running"] is True
        assert not monitor.is_running


class TestMetrics:
    def test_record_and_read(self, client):
        response = client.post("/api/metrics", json={"name": "response_time", "value": 812.5, "unit": "ms"})
        assert response.status_code == 200
        assert response.json()["sample"]["value"] == 812.5

        listing = client.get("/api/metrics").json()
        assert listing["metrics"][0]["name"] == "response_time"
        assert listing["metrics"][0]["samples"] == 1

        history = client.get("/api/metrics/response_time").json()
        assert history["count"] == 1

    def test_record_with_epoch_timestamp(self, client):
        response = client.post("/api/metrics", json={"name": "m", "value": 1, "timestamp": 1_700_000_000})
        assert response.json()["sample"]["timestamp"].startswith("2023-11-14")

    def test_missing_value_is_422(self, client):
        assert client.post("/api/metrics", json={"name": "m"}).status_code == 422

    def test_unknown_metric_is_404(self, client):
        assert client.get("/api/metrics/nope").status_code == 404

    def test_trends(self, client, monitor):
        for v in range(1, 11):
            monitor.record_metric("response_time", 100 * v)

        data = client.get("/api/metrics/trends", params={"timeframe": "1h"}).json()

        assert data["count"] == 1
        assert data["trends"][0]["trend"] == "degrading"

    def test_bad_timeframe_is_400(self, client):
        assert client.get("/api/metrics/trends", params={"timeframe": "forever"}).status_code == 400

    def test_insights(self, client, monitor):
        for v in range(1, 11):
            monitor.record_metric("response_time", 100 * v)

        data = client.get("/api/metrics/insights", params={"horizon": "7d"}).json()

        assert data["count"] == 1
        assert data["insights"][0]["time_horizon"] == "7d"

    def test_bad_horizon_is_400(self, client):
        assert client.get("/api/metrics/insights", params={"horizon": "2h"}).status_code == 400


class TestThresholds:
    def test_list_defaults(self, client):
        metrics = [t["metric"] for t in client.get("/api/thresholds").json()["thresholds"]]
        assert "response_time" in metrics

    def test_put_threshold(self, client, monitor):
        response = client.put("/api/thresholds/queue_depth", json={"warning": 100, "critical": 500})
        assert response.status_code == 200
        monitor.record_metric("queue_depth", 600)
        assert monitor.get_active_alerts()[0].metric == "queue_depth"

    def test_inverted_threshold_is_422(self, client):
        response = client.put("/api/thresholds/queue_depth", json={"warning": 500, "critical": 100})
        assert response.status_code == 422

    def test_higher_is_better_threshold(self, client):
        response = client.put(
            "/api/thresholds/conversion_rate",
            json={"warning": 0.05, "critical": 0.02, "polarity": "higher_is_better", "insight_type": "quality"},
        )
        assert response.json()["threshold"]["polarity"] == "higher_is_better"


class TestAlerts:
    def test_active_and_resolve(self, client, monitor):
        monitor.record_metric("response_time", 6000)
        [alert] = client.get("/api/alerts").json()["alerts"]
        assert alert["severity"] == "critical"

        response = client.post(f"/api/alerts/{alert['id']}/resolve", json={"resolved_by": "oncall"})

        assert response.status_code == 200
        assert response.json()["alert"]["resolved_by"] == "oncall"
        assert client.get("/api/alerts").json()["count"] == 0
        assert client.get("/api/alerts/all").json()["count"] == 1

    def test_resolve_without_body(self, client, monitor):
        monitor.record_metric("error_rate", 0.5)
        alert_id = monitor.get_active_alerts()[0].id
        assert client.post(f"/api/alerts/{alert_id}/resolve").status_code == 200

    def test_resolve_unknown_is_404(self, client):
        assert client.post("/api/alerts/threshold_missing/resolve").status_code == 404

    def test_stats(self, client, monitor):
        monitor.record_metric("response_time", 6000)
        monitor.record_metric("response_time", 7000)
        stats = client.get("/api/alerts/stats").json()
        assert stats["created"] == 1
        assert stats["deduplicated"] == 1


class TestHealthEndpoint:
    def test_system_health(self, client, monitor):
        monitor.register_component("api", lambda: ProbeReading(latency_ms=100))
        monitor.register_component("database", lambda: ProbeReading(latency_ms=5000))

        data = client.get("/api/health/system").json()

        assert data["score"] == 90
        assert data["overall"] == "healthy"
        assert data["components"]["database"]["status"] == "healthy"
        assert data["components"]["database"]["score"] == 80


class TestExport:
    def test_prometheus(self, client, monitor):
        monitor.record_metric("response_time", 100, "ms")
        response = client.get("/api/export/prometheus")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "perfwatch_response_time_avg 100" in response.text
        assert "perfwatch_active_alerts 0" in response.text

    def test_dashboard(self, client, monitor):
        monitor.record_api_response("/orders", "GET", 200, 120)
        data = client.get("/api/export/dashboard").json()
        assert data["operations"]["GET /orders"]["count"] == 1
        assert data["system"]["tracked_metrics"] == 1

    def test_metric_csv(self, client, monitor):
        monitor.record_metric("response_time", 100, "ms")
        response = client.get("/api/export/metrics/response_time")
        assert response.headers["content-type"].startswith("text/csv")
        header, row = response.text.strip().splitlines()
        assert header == "timestamp,name,value,unit,operation,category"
        assert ",response_time,100.0,ms," in row

    def test_metric_json(self, client, monitor):
        monitor.record_metric("response_time", 100, "ms")
        data = client.get("/api/export/metrics/response_time", params={"format": "json"}).json()
        assert data[0]["value"] == 100

    def test_bad_format_is_400(self, client, monitor):
        monitor.record_metric("response_time", 100, "ms")
        assert client.get("/api/export/metrics/response_time", params={"format": "xml"}).status_code == 400

    def test_unknown_metric_is_404(self, client):
        assert client.get("/api/export/metrics/nope").status_code == 404
