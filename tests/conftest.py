"""Pytest fixtures for qa-tracker tests."""

import asyncio
from datetime import datetime

import pytest

from qa_tracker.config.settings import Settings
from qa_tracker.identity.schemas import IdentityContext, Role, User
from qa_tracker.notifications.dispatcher import NotificationDispatcher
from qa_tracker.question_sets.schemas import Question, QuestionSet
from qa_tracker.services.container import QATracker
from qa_tracker.storage.record_store import InMemoryRecordStore

ADMIN = "admin@example.com"
QA_MANAGER = "qa.manager@example.com"
ANALYST = "analyst@example.com"
OTHER_ANALYST = "analyst2@example.com"
AGENT_MANAGER = "team.lead@example.com"
AGENT = "agent@example.com"
OTHER_AGENT = "other.agent@example.com"

QUESTION_SET_ID = "qset_standard"
GREETING_QUESTION = "q_greeting"
RESOLUTION_QUESTION = "q_resolution"

USERS = [
    User(id=ADMIN, name="Ada Admin", role=Role.ADMIN),
    User(id=QA_MANAGER, name="Quinn Manager", role=Role.QA_MANAGER),
    User(id=ANALYST, name="Ana Lyst", role=Role.QA_ANALYST),
    User(id=OTHER_ANALYST, name="Otto Lyst", role=Role.QA_ANALYST),
    User(id=AGENT_MANAGER, name="Terry Lead", role=Role.AGENT_MANAGER),
    User(id=AGENT, name="Alex Agent", role=Role.AGENT, manager_id=AGENT_MANAGER),
    User(id=OTHER_AGENT, name="Sam Agent", role=Role.AGENT),
]


async def _seed(tracker: QATracker) -> None:
    for user in USERS:
        await tracker.users.repository.create(user)

    repo = tracker.question_sets.repository
    await repo.create(QuestionSet(
        id=QUESTION_SET_ID,
        name="Standard Call Review",
        interaction_type="Call",
        created_by=QA_MANAGER,
    ))
    await repo.add_question(Question(
        id=GREETING_QUESTION,
        question_set_id=QUESTION_SET_ID,
        text="Did the agent greet the customer?",
        type="Numeric",
        possible_score=50,
    ))
    await repo.add_question(Question(
        id=RESOLUTION_QUESTION,
        question_set_id=QUESTION_SET_ID,
        text="Was the issue resolved?",
        type="Numeric",
        possible_score=50,
    ))


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        store_backend="memory",
        notifications_enabled=False,
        api_keys=None,
    )


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def tracker(store, test_settings) -> QATracker:
    """Tracker over an in-memory store seeded with users and one question set.

    The question set has two numeric questions worth 50 points each.
    """
    tracker = QATracker(
        store,
        settings=test_settings,
        dispatcher=NotificationDispatcher([]),
    )
    asyncio.run(_seed(tracker))
    return tracker


def _identity(user_id: str) -> IdentityContext:
    role = next(u.role for u in USERS if u.id == user_id)
    return IdentityContext(user_id=user_id, role=role)


@pytest.fixture
def admin() -> IdentityContext:
    return _identity(ADMIN)


@pytest.fixture
def qa_manager() -> IdentityContext:
    return _identity(QA_MANAGER)


@pytest.fixture
def analyst() -> IdentityContext:
    return _identity(ANALYST)


@pytest.fixture
def other_analyst() -> IdentityContext:
    return _identity(OTHER_ANALYST)


@pytest.fixture
def agent_manager() -> IdentityContext:
    return _identity(AGENT_MANAGER)


@pytest.fixture
def agent() -> IdentityContext:
    return _identity(AGENT)


@pytest.fixture
def anonymous() -> IdentityContext:
    return IdentityContext(user_id="nobody@example.com")


@pytest.fixture
def make_evaluation(tracker, analyst):
    """Factory creating a scored evaluation and returning its id.

    Default answers score 40 and 30 out of 50 each (70/100).
    """

    async def _make(
        agent_id: str = AGENT,
        scores: tuple[int, int] = (40, 30),
        date: datetime | None = None,
        identity: IdentityContext | None = None,
    ) -> str:
        data = {
            "agent_id": agent_id,
            "question_set_id": QUESTION_SET_ID,
            "interaction_type": "Call",
            "strengths": "Friendly tone",
        }
        if date is not None:
            data["date"] = date
        answers = [
            {"question_id": GREETING_QUESTION, "score": scores[0]},
            {"question_id": RESOLUTION_QUESTION, "score": scores[1]},
        ]
        result = await tracker.evaluations.create_evaluation(
            identity or analyst, data, answers,
        )
        assert result.success, result.message
        return result.data["evaluation_id"]

    return _make
