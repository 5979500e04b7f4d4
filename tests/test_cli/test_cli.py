"""Tests for the qa-tracker CLI."""

import asyncio
import json
import logging
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from qa_tracker.cli import main
from qa_tracker.errors import StorageError
from qa_tracker.identity.schemas import Role
from qa_tracker.storage.serialization import utc_now
from tests.conftest import ADMIN, AGENT_MANAGER, QA_MANAGER


@pytest.fixture
def runner():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield CliRunner()
    root.handlers, root.level = handlers, level


@pytest.fixture
def use_tracker():
    """Patch the CLI so every command runs against the given tracker."""
    patchers = []

    def _use(tracker):
        patcher = patch(
            "qa_tracker.cli.QATracker.from_settings",
            new=AsyncMock(return_value=tracker),
        )
        patcher.start()
        patchers.append(patcher)
        return tracker

    yield _use
    for patcher in patchers:
        patcher.stop()


def _without_admins(tracker):
    asyncio.run(tracker.users.repository.update(ADMIN, {"active": False}))
    return tracker


class TestDisputeStats:

    def test_json_output(self, runner, use_tracker, tracker, make_evaluation, agent_manager, qa_manager):
        async def prepare():
            evaluation_id = await make_evaluation()
            filed = await tracker.disputes.file_dispute(agent_manager, evaluation_id, "Scoring error")
            await tracker.disputes.review_dispute(
                qa_manager, filed.data["dispute_id"], "Approved", "Agreed", 10,
            )

        asyncio.run(prepare())
        use_tracker(tracker)

        result = runner.invoke(main, ["dispute-stats", "--json"])

        assert result.exit_code == 0, result.output
        stats = json.loads(result.output)
        assert stats["total"] == 1
        assert stats["approval_rate"] == 100.0
        assert stats["average_adjustment"] == 10.0
        assert stats["by_submitter"] == {AGENT_MANAGER: 1}

    def test_end_date_includes_disputes_filed_that_day(
        self, runner, use_tracker, tracker, make_evaluation, agent_manager,
    ):
        async def prepare():
            evaluation_id = await make_evaluation()
            await tracker.disputes.file_dispute(agent_manager, evaluation_id, "Scoring error")

        asyncio.run(prepare())
        use_tracker(tracker)
        today = utc_now().date().isoformat()

        result = runner.invoke(main, ["dispute-stats", "--json", "--start", today, "--end", today])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["total"] == 1

    def test_storage_failure(self, runner, use_tracker, tracker):
        tracker.disputes.repository.list_all = AsyncMock(
            side_effect=StorageError("Record store query failed: connection reset"),
        )
        use_tracker(tracker)

        result = runner.invoke(main, ["dispute-stats"])

        assert result.exit_code == 1
        assert "Failed to compute dispute statistics: storage unavailable" in result.output
        assert "connection reset" not in result.output

    def test_table_output_with_window(self, runner, use_tracker, tracker):
        use_tracker(tracker)

        result = runner.invoke(
            main, ["dispute-stats", "--start", "2026-01-01", "--end", "2026-01-31"],
        )

        assert result.exit_code == 0, result.output
        assert "Total disputes:      0" in result.output
        assert "Pending" in result.output


class TestAddUser:

    def test_bootstrap_refused_when_admin_exists(self, runner, use_tracker, tracker):
        use_tracker(tracker)

        result = runner.invoke(main, [
            "add-user", "--email", "root@example.com", "--name", "Root", "--role", "Admin",
        ])

        assert result.exit_code == 1
        assert "An admin already exists" in result.output

    def test_bootstrap_must_be_admin(self, runner, use_tracker, tracker):
        use_tracker(_without_admins(tracker))

        result = runner.invoke(main, [
            "add-user", "--email", "root@example.com", "--name", "Root", "--role", "Agent",
        ])

        assert result.exit_code == 1
        assert "must be an Admin" in result.output

    def test_bootstrap_admin(self, runner, use_tracker, tracker):
        use_tracker(_without_admins(tracker))

        result = runner.invoke(main, [
            "add-user", "--email", "Root@Example.com", "--name", "Root", "--role", "Admin",
        ])

        assert result.exit_code == 0, result.output
        assert "Admin root@example.com created" in result.output
        user = asyncio.run(tracker.users.repository.get_by_id("root@example.com"))
        assert user.role == Role.ADMIN

    def test_add_user_as_admin(self, runner, use_tracker, tracker):
        use_tracker(tracker)

        result = runner.invoke(main, [
            "add-user", "--email", "new.agent@example.com", "--name", "New Agent",
            "--role", "Agent", "--manager", AGENT_MANAGER, "--as", ADMIN,
        ])

        assert result.exit_code == 0, result.output
        user = asyncio.run(tracker.users.repository.get_by_id("new.agent@example.com"))
        assert user.manager_id == AGENT_MANAGER

    def test_add_user_denied_for_non_admin(self, runner, use_tracker, tracker):
        use_tracker(tracker)

        result = runner.invoke(main, [
            "add-user", "--email", "x@example.com", "--name", "X",
            "--role", "Agent", "--as", QA_MANAGER,
        ])

        assert result.exit_code == 1
        assert "permission_denied" in result.output


class TestSettingsCommands:

    def test_set_setting(self, runner, use_tracker, tracker):
        use_tracker(tracker)

        result = runner.invoke(main, ["set-setting", "passing_score_percentage", "85", "--as", ADMIN])

        assert result.exit_code == 0, result.output
        assert asyncio.run(tracker.settings.get_value("passing_score_percentage")) == "85"

    def test_set_setting_invalid_value(self, runner, use_tracker, tracker):
        use_tracker(tracker)

        result = runner.invoke(main, ["set-setting", "dispute_time_limit_days", "soon", "--as", ADMIN])

        assert result.exit_code == 1
        assert "validation_error" in result.output

    def test_seed_defaults(self, runner, use_tracker, tracker):
        use_tracker(tracker)

        first = runner.invoke(main, ["seed-defaults"])
        second = runner.invoke(main, ["seed-defaults"])

        assert "Created:" in first.output
        assert "already present" in second.output


class TestHealth:

    def test_healthy(self, runner, use_tracker, tracker):
        use_tracker(tracker)

        result = runner.invoke(main, ["health"])

        assert result.exit_code == 0
        assert "Record store healthy!" in result.output

    def test_unhealthy(self, runner, use_tracker, tracker):
        tracker.store.health_check = AsyncMock(side_effect=ConnectionError("down"))
        use_tracker(tracker)

        result = runner.invoke(main, ["health"])

        assert result.exit_code == 1
        assert "Record store unhealthy!" in result.output
