"""Tests for the health endpoint."""

from unittest.mock import AsyncMock

from qa_tracker.notifications.channels import CircuitBreaker, NotificationChannel


class TestHealthEndpoint:
    """Test /health with record store checks."""

    def test_healthy(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200

        data = resp.json()
        assert data["status"] == "healthy"
        assert data["store_backend"] == "memory"
        assert data["notifications_enabled"] is False
        assert data["version"] == "0.1.0"
        assert data["components"]["record_store"]["status"] == "healthy"

    def test_store_failure_reports_unhealthy(self, client, tracker, monkeypatch):
        """A failing store check is reported, not raised."""
        monkeypatch.setattr(
            tracker.store, "health_check",
            AsyncMock(side_effect=Exception("Connection refused")),
        )

        resp = client.get("/health")
        assert resp.status_code == 200

        data = resp.json()
        assert data["status"] == "unhealthy"
        assert data["components"]["record_store"]["details"] == {"error": "Connection refused"}

    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["service"] == "QA Tracker API"

    def test_open_circuit_reports_degraded(self, client, tracker):
        channel = AsyncMock(spec=NotificationChannel)
        channel.name = "slack"
        breaker = CircuitBreaker(channel, failure_threshold=1)
        breaker._trip()
        tracker.dispatcher._channels.append(breaker)

        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["components"]["notifications"]["details"]["open_circuits"] == ["slack"]
