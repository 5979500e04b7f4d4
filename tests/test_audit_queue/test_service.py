"""Tests for the audit queue."""

import pytest

from qa_tracker.audit_queue.schemas import QueueStatus
from qa_tracker.errors import ErrorKind
from tests.conftest import AGENT, AGENT_MANAGER, ANALYST, OTHER_AGENT, OTHER_ANALYST


def _item(agent_id=AGENT, interaction_id="call-1001", **overrides):
    data = {
        "agent_id": agent_id,
        "interaction_id": interaction_id,
        "interaction_type": "Call",
    }
    data.update(overrides)
    return data


@pytest.fixture
def add_item(tracker, qa_manager):
    async def _add(**kwargs):
        result = await tracker.audit_queue.add_item(qa_manager, _item(**kwargs))
        assert result.success, result.message
        return result.data["item_id"]
    return _add


class TestAddItem:

    @pytest.mark.asyncio
    async def test_qa_manager_adds(self, tracker, qa_manager):
        result = await tracker.audit_queue.add_item(
            qa_manager, _item(agent_id=" Agent@Example.com ", interaction_date="2026-03-02T10:00:00Z"),
        )

        assert result.success is True
        item = result.data["item"]
        assert item.agent_id == AGENT
        assert item.status == QueueStatus.PENDING
        assert item.interaction_date.year == 2026
        entries = await tracker.activity.recent(entity_type="audit_queue")
        assert [e.action for e in entries] == ["add_queue_item"]

    @pytest.mark.asyncio
    async def test_analyst_denied(self, tracker, analyst):
        result = await tracker.audit_queue.add_item(analyst, _item())

        assert result.error == ErrorKind.PERMISSION_DENIED
        assert result.message == "Permission denied: QA Manager role required to manage the audit queue"

    @pytest.mark.asyncio
    async def test_required_fields(self, tracker, qa_manager):
        result = await tracker.audit_queue.add_item(qa_manager, {"agent_id": AGENT})
        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_bad_interaction_date(self, tracker, qa_manager):
        result = await tracker.audit_queue.add_item(qa_manager, _item(interaction_date="yesterday"))

        assert result.error == ErrorKind.VALIDATION_ERROR
        assert result.message == "interaction_date must be an ISO-8601 date"

    @pytest.mark.asyncio
    async def test_unknown_agent(self, tracker, qa_manager):
        result = await tracker.audit_queue.add_item(qa_manager, _item(agent_id="ghost@example.com"))

        assert result.error == ErrorKind.NOT_FOUND
        assert await tracker.audit_queue.repository.list_items() == []


class TestAssignItem:

    @pytest.mark.asyncio
    async def test_assign_to_analyst(self, tracker, qa_manager, add_item):
        item_id = await add_item()

        result = await tracker.audit_queue.assign_item(qa_manager, item_id, "Analyst@Example.com")

        assert result.success is True
        item = result.data["item"]
        assert item.assigned_to == ANALYST
        assert item.status == QueueStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_assignee_must_be_qa_role(self, tracker, qa_manager, add_item):
        item_id = await add_item()

        result = await tracker.audit_queue.assign_item(qa_manager, item_id, AGENT_MANAGER)

        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_unknown_assignee(self, tracker, qa_manager, add_item):
        item_id = await add_item()

        result = await tracker.audit_queue.assign_item(qa_manager, item_id, "ghost@example.com")

        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_missing_item(self, tracker, qa_manager):
        result = await tracker.audit_queue.assign_item(qa_manager, "queue_missing", ANALYST)
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_completed_item(self, tracker, qa_manager, add_item, analyst):
        item_id = await add_item()
        await tracker.audit_queue.assign_item(qa_manager, item_id, ANALYST)
        created = await tracker.evaluations.create_evaluation(
            analyst,
            {
                "agent_id": AGENT,
                "question_set_id": "qset_standard",
                "interaction_type": "Call",
                "queue_item_id": item_id,
            },
            [{"question_id": "q_greeting", "score": 50}],
        )
        assert created.success, created.message

        result = await tracker.audit_queue.assign_item(qa_manager, item_id, OTHER_ANALYST)

        assert result.error == ErrorKind.INVALID_STATE

    @pytest.mark.asyncio
    async def test_analyst_cannot_assign(self, tracker, analyst, add_item):
        item_id = await add_item()

        result = await tracker.audit_queue.assign_item(analyst, item_id, ANALYST)

        assert result.error == ErrorKind.PERMISSION_DENIED


class TestListItems:

    @pytest.mark.asyncio
    async def test_visibility(self, tracker, qa_manager, analyst, other_analyst, agent, add_item):
        mine = await add_item(interaction_id="call-1")
        theirs = await add_item(agent_id=OTHER_AGENT, interaction_id="call-2")
        await add_item(interaction_id="call-3")
        await tracker.audit_queue.assign_item(qa_manager, mine, ANALYST)
        await tracker.audit_queue.assign_item(qa_manager, theirs, OTHER_ANALYST)

        assert len(await tracker.audit_queue.list_items(qa_manager)) == 3
        assert [i.id for i in await tracker.audit_queue.list_items(analyst)] == [mine]
        assert [i.id for i in await tracker.audit_queue.list_items(other_analyst)] == [theirs]
        assert await tracker.audit_queue.list_items(agent) == []

    @pytest.mark.asyncio
    async def test_status_filter(self, tracker, qa_manager, add_item):
        assigned = await add_item(interaction_id="call-1")
        await add_item(interaction_id="call-2")
        await tracker.audit_queue.assign_item(qa_manager, assigned, ANALYST)

        items = await tracker.audit_queue.list_items(qa_manager, status="Assigned")

        assert [i.id for i in items] == [assigned]
        assert await tracker.audit_queue.list_items(qa_manager, status="Bogus") == []
