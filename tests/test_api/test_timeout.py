"""Tests for the request time limit."""

import asyncio

from fastapi import FastAPI
from fastapi.testclient import TestClient

from qa_tracker.api.app import create_app
from qa_tracker.api.middleware.timeout import TimeoutMiddleware
from qa_tracker.config.settings import get_settings


def _app(timeout: float) -> FastAPI:
    app = FastAPI()
    app.add_middleware(TimeoutMiddleware, timeout_seconds=timeout)

    @app.get("/evaluations")
    async def evaluations():
        return {"total": 0}

    @app.get("/statistics/dashboard")
    async def dashboard():
        await asyncio.sleep(10)
        return {}

    @app.get("/health")
    async def health():
        await asyncio.sleep(0.3)
        return {"status": "healthy"}

    return app


def test_fast_request_passes():
    response = TestClient(_app(timeout=5.0)).get("/evaluations")

    assert response.status_code == 200
    assert response.json() == {"total": 0}


def test_slow_request_returns_504():
    response = TestClient(_app(timeout=0.1)).get("/statistics/dashboard")

    assert response.status_code == 504
    assert response.headers["X-Error-Kind"] == "timeout"
    assert response.json() == {
        "detail": "Request timed out after 0.1s",
        "error_type": "timeout",
    }


def test_health_is_unbounded():
    response = TestClient(_app(timeout=0.1)).get("/health")
    assert response.status_code == 200


def test_zero_timeout_disables_middleware(monkeypatch):
    monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "0")
    get_settings.cache_clear()
    try:
        app = create_app()
    finally:
        get_settings.cache_clear()

    assert TimeoutMiddleware not in {m.cls for m in app.user_middleware}
