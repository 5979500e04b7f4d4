"""Shared fixtures for API tests."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from qa_tracker.api.app import create_app
from qa_tracker.api.auth import verify_api_key
from qa_tracker.api.dependencies import get_tracker, set_tracker
from tests.conftest import (
    ADMIN,
    AGENT,
    AGENT_MANAGER,
    ANALYST,
    GREETING_QUESTION,
    QA_MANAGER,
    QUESTION_SET_ID,
    RESOLUTION_QUESTION,
)


def as_user(user_id: str) -> dict[str, str]:
    """Headers acting as the given user."""
    return {"X-User-Id": user_id}


ADMIN_HEADERS = as_user(ADMIN)
QA_MANAGER_HEADERS = as_user(QA_MANAGER)
ANALYST_HEADERS = as_user(ANALYST)
AGENT_MANAGER_HEADERS = as_user(AGENT_MANAGER)
AGENT_HEADERS = as_user(AGENT)


def evaluation_payload(greeting: int = 40, resolution: int = 30, **overrides) -> dict:
    payload = {
        "agent_id": AGENT,
        "question_set_id": QUESTION_SET_ID,
        "interaction_type": "Call",
        "answers": [
            {"question_id": GREETING_QUESTION, "score": greeting},
            {"question_id": RESOLUTION_QUESTION, "score": resolution},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def client(tracker):
    """FastAPI TestClient backed by the seeded in-memory tracker."""
    set_tracker(tracker)
    app = create_app()

    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_tracker] = lambda: tracker

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
    set_tracker(None)


@pytest.fixture
def evaluation_id(tracker, make_evaluation) -> str:
    """An evaluation for AGENT scored 70/100 by ANALYST."""
    return asyncio.run(make_evaluation())


@pytest.fixture
def dispute_id(client, evaluation_id) -> str:
    """A pending dispute filed by the agent's manager."""
    resp = client.post(
        "/disputes",
        json={"evaluation_id": evaluation_id, "reason": "Scoring error"},
        headers=AGENT_MANAGER_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["dispute_id"]
