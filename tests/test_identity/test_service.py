"""Tests for user provisioning."""

import pytest

from qa_tracker.errors import ErrorKind
from qa_tracker.identity.schemas import Role
from tests.conftest import AGENT, AGENT_MANAGER


class TestCreateUser:

    @pytest.mark.asyncio
    async def test_admin_creates_user(self, tracker, admin):
        result = await tracker.users.create_user(admin, {
            "email": "New.Agent@Example.com",
            "name": "New Agent",
            "role": "Agent",
            "manager_id": AGENT_MANAGER,
        })

        assert result.success is True
        user = await tracker.users.get_user("new.agent@example.com")
        assert user.role == Role.AGENT
        assert user.manager_id == AGENT_MANAGER
        reports = await tracker.users.direct_reports(AGENT_MANAGER)
        assert {u.id for u in reports} == {AGENT, "new.agent@example.com"}

    @pytest.mark.asyncio
    async def test_non_admin_denied(self, tracker, qa_manager):
        result = await tracker.users.create_user(qa_manager, {
            "email": "x@example.com", "name": "X", "role": "Agent",
        })

        assert result.error == ErrorKind.PERMISSION_DENIED
        assert result.message == "Permission denied: Admin role required to manage users"

    @pytest.mark.asyncio
    async def test_duplicate(self, tracker, admin):
        result = await tracker.users.create_user(admin, {
            "email": AGENT, "name": "Dup", "role": "Agent",
        })
        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_invalid_role(self, tracker, admin):
        result = await tracker.users.create_user(admin, {
            "email": "x@example.com", "name": "X", "role": "Supervisor",
        })
        assert result.error == ErrorKind.VALIDATION_ERROR
        assert "Invalid role" in result.message

    @pytest.mark.asyncio
    async def test_unknown_manager(self, tracker, admin):
        result = await tracker.users.create_user(admin, {
            "email": "x@example.com", "name": "X", "role": "Agent",
            "manager_id": "nobody@example.com",
        })
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_invalid_email(self, tracker, admin):
        result = await tracker.users.create_user(admin, {"email": "not-an-email", "name": "X", "role": "Agent"})
        assert result.error == ErrorKind.VALIDATION_ERROR


class TestUpdateUser:

    @pytest.mark.asyncio
    async def test_change_role(self, tracker, admin):
        result = await tracker.users.update_user(admin, AGENT, {"role": "QAAnalyst"})

        assert result.success is True
        identity = await tracker.gate.resolve(AGENT)
        assert identity.role == Role.QA_ANALYST

    @pytest.mark.asyncio
    async def test_own_manager_rejected(self, tracker, admin):
        result = await tracker.users.update_user(admin, AGENT, {"manager_id": AGENT})
        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_unknown_field(self, tracker, admin):
        result = await tracker.users.update_user(admin, AGENT, {"id": "renamed@example.com"})
        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_missing_user(self, tracker, admin):
        result = await tracker.users.update_user(admin, "ghost@example.com", {"name": "Ghost"})
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_list_by_role(self, tracker):
        analysts = await tracker.users.list_users(role=Role.QA_ANALYST)
        assert {u.id for u in analysts} == {"analyst@example.com", "analyst2@example.com"}
