"""Tests for request/correlation ID middleware and API key checks."""

import re

from fastapi.testclient import TestClient

from qa_tracker.api.app import create_app
from qa_tracker.api.dependencies import get_tracker, set_tracker
from qa_tracker.config.settings import get_settings

# UUID v4 regex pattern
UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


class TestCorrelationIdMiddleware:
    """Test X-Request-ID middleware behavior."""

    def test_generates_uuid_when_no_header(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        request_id = resp.headers.get("X-Request-ID")
        assert request_id is not None
        assert UUID_RE.match(request_id), f"Expected UUID v4, got: {request_id}"

    def test_echoes_custom_request_id(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "custom-id-123"})
        assert resp.headers.get("X-Request-ID") == "custom-id-123"

    def test_echoes_correlation_id(self, client):
        resp = client.get("/health", headers={"X-Correlation-ID": "corr-456"})
        assert resp.headers.get("X-Request-ID") == "corr-456"

    def test_request_id_takes_priority_over_correlation_id(self, client):
        resp = client.get(
            "/health",
            headers={"X-Request-ID": "req-id", "X-Correlation-ID": "corr-id"},
        )
        assert resp.headers.get("X-Request-ID") == "req-id"


class TestApiKey:
    """X-API-KEY enforcement when API_KEYS is configured."""

    def _client(self, tracker, monkeypatch):
        monkeypatch.setenv("API_KEYS", "key-one, key-two")
        get_settings.cache_clear()
        set_tracker(tracker)
        app = create_app()
        app.dependency_overrides[get_tracker] = lambda: tracker
        return app

    def test_missing_key_rejected(self, tracker, monkeypatch):
        app = self._client(tracker, monkeypatch)
        try:
            with TestClient(app) as client:
                resp = client.get("/evaluations", headers={"X-User-Id": "admin@example.com"})
                assert resp.status_code == 401
                assert "Missing API key" in resp.json()["detail"]
        finally:
            set_tracker(None)
            get_settings.cache_clear()

    def test_valid_key_accepted(self, tracker, monkeypatch):
        app = self._client(tracker, monkeypatch)
        try:
            with TestClient(app) as client:
                resp = client.get(
                    "/evaluations",
                    headers={"X-User-Id": "admin@example.com", "X-API-KEY": "key-two"},
                )
                assert resp.status_code == 200

                resp = client.get(
                    "/evaluations",
                    headers={"X-User-Id": "admin@example.com", "X-API-KEY": "wrong"},
                )
                assert resp.status_code == 401
        finally:
            set_tracker(None)
            get_settings.cache_clear()
