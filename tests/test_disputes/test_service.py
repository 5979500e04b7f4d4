"""Tests for the dispute engine."""

from datetime import datetime, time, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from qa_tracker.disputes.schemas import DisputeStatus
from qa_tracker.errors import ErrorKind, StorageError
from qa_tracker.evaluations.schemas import EvaluationStatus
from qa_tracker.storage.record_store import Collection
from qa_tracker.storage.serialization import utc_now
from tests.conftest import OTHER_AGENT


@pytest.fixture
def file_dispute(tracker, agent_manager, make_evaluation):
    """Create an evaluation (70/100) and file a dispute on it."""

    async def _file(**kwargs):
        evaluation_id = await make_evaluation(**kwargs)
        result = await tracker.disputes.file_dispute(
            agent_manager, evaluation_id, "Scoring error", details="Greeting was given",
        )
        assert result.success, result.message
        return evaluation_id, result.data["dispute_id"]

    return _file


async def _evaluation(tracker, evaluation_id):
    return await tracker.evaluations.repository.get_by_id(evaluation_id)


# ── file_dispute ────────────────────────────────────────


class TestFileDispute:

    @pytest.mark.asyncio
    async def test_marks_evaluation_disputed(self, tracker, agent_manager, file_dispute):
        evaluation_id, dispute_id = await file_dispute()

        dispute = await tracker.disputes.repository.get_by_id(dispute_id)
        assert dispute.status == DisputeStatus.PENDING
        assert dispute.score_adjustment == 0
        assert dispute.submitted_by == agent_manager.user_id
        assert (await _evaluation(tracker, evaluation_id)).status == EvaluationStatus.DISPUTED

    @pytest.mark.asyncio
    async def test_only_one_active_dispute(self, tracker, agent_manager, file_dispute):
        evaluation_id, _ = await file_dispute()

        second = await tracker.disputes.file_dispute(agent_manager, evaluation_id, "Again")

        assert second.success is False
        assert second.error == ErrorKind.INVALID_STATE
        assert second.message == "An active dispute already exists for this evaluation"
        assert len(await tracker.store.get_all(Collection.DISPUTES)) == 1

    @pytest.mark.asyncio
    async def test_window_expired(self, tracker, agent_manager, make_evaluation):
        evaluation_id = await make_evaluation(date=utc_now() - timedelta(days=8))

        result = await tracker.disputes.file_dispute(agent_manager, evaluation_id, "Too late")

        assert result.error == ErrorKind.WINDOW_EXPIRED
        assert "7 days" in result.message
        assert await tracker.store.get_all(Collection.DISPUTES) == []
        assert (await _evaluation(tracker, evaluation_id)).status == EvaluationStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_last_day_of_window_is_open(self, tracker, agent_manager, make_evaluation):
        first_day = (utc_now() - timedelta(days=7)).date()
        evaluation_id = await make_evaluation(
            date=datetime.combine(first_day, time.min, tzinfo=timezone.utc),
        )

        result = await tracker.disputes.file_dispute(agent_manager, evaluation_id, "Last day")

        assert result.success is True, result.message
        assert (await _evaluation(tracker, evaluation_id)).status == EvaluationStatus.DISPUTED

    @pytest.mark.asyncio
    async def test_window_follows_setting(self, tracker, admin, agent_manager, make_evaluation):
        evaluation_id = await make_evaluation(date=utc_now() - timedelta(days=8))
        await tracker.settings.set_value(admin, "dispute_time_limit_days", 10)

        result = await tracker.disputes.file_dispute(agent_manager, evaluation_id, "In time")

        assert result.success is True

    @pytest.mark.asyncio
    async def test_agent_cannot_file(self, tracker, agent, make_evaluation):
        evaluation_id = await make_evaluation()

        result = await tracker.disputes.file_dispute(agent, evaluation_id, "Unfair")

        assert result.error == ErrorKind.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_reason_required(self, tracker, agent_manager, make_evaluation):
        evaluation_id = await make_evaluation()

        result = await tracker.disputes.file_dispute(agent_manager, evaluation_id, "   ")

        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_missing_evaluation(self, tracker, agent_manager):
        result = await tracker.disputes.file_dispute(agent_manager, "eval_missing", "Reason")
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_requested_change_must_be_integer(self, tracker, agent_manager, make_evaluation):
        evaluation_id = await make_evaluation()

        result = await tracker.disputes.file_dispute(
            agent_manager, evaluation_id, "Reason", requested_score_change="ten",
        )

        assert result.error == ErrorKind.VALIDATION_ERROR


# ── review_dispute ──────────────────────────────────────


class TestReviewDispute:

    @pytest.mark.asyncio
    async def test_approved_adds_adjustment(self, tracker, qa_manager, file_dispute):
        evaluation_id, dispute_id = await file_dispute()

        result = await tracker.disputes.review_dispute(
            qa_manager, dispute_id, "Approved", "Greeting was present", 10,
        )

        assert result.success is True
        assert result.data["score_before"] == 70
        assert result.data["new_score"] == 80
        evaluation = await _evaluation(tracker, evaluation_id)
        assert evaluation.score == 80
        assert evaluation.status == EvaluationStatus.COMPLETED

        dispute = await tracker.disputes.repository.get_by_id(dispute_id)
        assert dispute.status == DisputeStatus.APPROVED
        assert dispute.score_adjustment == 10
        assert dispute.reviewed_by == qa_manager.user_id

        resolutions = await tracker.disputes.repository.resolutions_for(dispute_id)
        assert len(resolutions) == 1
        assert resolutions[0].score_before == 70
        assert resolutions[0].score_after == 80

    @pytest.mark.asyncio
    async def test_adjustment_is_clamped_to_max(self, tracker, qa_manager, file_dispute):
        evaluation_id, dispute_id = await file_dispute()

        result = await tracker.disputes.review_dispute(
            qa_manager, dispute_id, "Approved", "Full marks", 50,
        )

        assert result.data["new_score"] == 100
        assert (await _evaluation(tracker, evaluation_id)).score == 100

    @pytest.mark.asyncio
    async def test_negative_adjustment_is_clamped_to_zero(self, tracker, qa_manager, file_dispute):
        evaluation_id, dispute_id = await file_dispute()

        result = await tracker.disputes.review_dispute(
            qa_manager, dispute_id, "PartiallyApproved", "Overscored", -90,
        )

        assert result.data["new_score"] == 0
        assert (await _evaluation(tracker, evaluation_id)).score == 0

    @pytest.mark.asyncio
    async def test_rejected_keeps_score(self, tracker, qa_manager, file_dispute):
        evaluation_id, dispute_id = await file_dispute()

        result = await tracker.disputes.review_dispute(
            qa_manager, dispute_id, "Rejected", "Score stands", 25,
        )

        assert result.success is True
        assert result.data["new_score"] == 70
        evaluation = await _evaluation(tracker, evaluation_id)
        assert evaluation.score == 70
        assert evaluation.status == EvaluationStatus.COMPLETED
        dispute = await tracker.disputes.repository.get_by_id(dispute_id)
        assert dispute.status == DisputeStatus.REJECTED
        assert dispute.score_adjustment == 0

    @pytest.mark.asyncio
    async def test_resolved_dispute_cannot_be_reviewed_again(
        self, tracker, qa_manager, file_dispute,
    ):
        evaluation_id, dispute_id = await file_dispute()
        await tracker.disputes.review_dispute(qa_manager, dispute_id, "Approved", "ok", 10)

        again = await tracker.disputes.review_dispute(qa_manager, dispute_id, "Approved", "ok", 10)

        assert again.error == ErrorKind.INVALID_STATE
        assert (await _evaluation(tracker, evaluation_id)).score == 80
        assert len(await tracker.disputes.repository.resolutions_for(dispute_id)) == 1

    @pytest.mark.asyncio
    async def test_analyst_cannot_review(self, tracker, analyst, file_dispute):
        _, dispute_id = await file_dispute()

        result = await tracker.disputes.review_dispute(analyst, dispute_id, "Approved", "ok", 5)

        assert result.error == ErrorKind.PERMISSION_DENIED
        assert result.message == "Permission denied: QA Manager role required to review disputes"

    @pytest.mark.asyncio
    async def test_invalid_decision(self, tracker, qa_manager, file_dispute):
        _, dispute_id = await file_dispute()

        result = await tracker.disputes.review_dispute(qa_manager, dispute_id, "Pending", "ok")

        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_review_notes_required(self, tracker, qa_manager, file_dispute):
        _, dispute_id = await file_dispute()

        result = await tracker.disputes.review_dispute(qa_manager, dispute_id, "Approved", "", 5)

        assert result.error == ErrorKind.VALIDATION_ERROR
        assert result.message == "Review notes are required"

    @pytest.mark.asyncio
    async def test_non_integer_adjustment(self, tracker, qa_manager, file_dispute):
        _, dispute_id = await file_dispute()

        result = await tracker.disputes.review_dispute(
            qa_manager, dispute_id, "Approved", "ok", 2.5,
        )

        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_stale_revision_conflicts(
        self, tracker, qa_manager, admin, file_dispute, monkeypatch,
    ):
        evaluation_id, dispute_id = await file_dispute()
        repo = tracker.disputes.repository
        stale = await repo.get_by_id(dispute_id)

        started = await tracker.disputes.start_review(admin, dispute_id)
        assert started.success is True

        async def stale_read(_dispute_id):
            return stale

        monkeypatch.setattr(repo, "get_by_id", stale_read)

        result = await tracker.disputes.review_dispute(
            qa_manager, dispute_id, "Approved", "Racing review", 10,
        )

        assert result.success is False
        assert result.error == ErrorKind.CONFLICT
        assert await tracker.store.get_all(Collection.DISPUTE_RESOLUTIONS) == []
        assert (await _evaluation(tracker, evaluation_id)).score == 70

    @pytest.mark.asyncio
    async def test_notifies_after_commit(self, tracker, qa_manager, file_dispute, monkeypatch):
        _, dispute_id = await file_dispute()
        sent = []
        monkeypatch.setattr(
            tracker.notifier, "dispute_resolved",
            lambda dispute, evaluation, score_before: sent.append(
                (dispute.id, evaluation.score, score_before)
            ),
        )

        await tracker.disputes.review_dispute(qa_manager, dispute_id, "Approved", "ok", 10)

        assert sent == [(dispute_id, 80, 70)]


# ── start_review / update / cancel ──────────────────────


class TestDisputeLifecycle:

    @pytest.mark.asyncio
    async def test_start_review_then_resolve(self, tracker, qa_manager, file_dispute):
        _, dispute_id = await file_dispute()

        started = await tracker.disputes.start_review(qa_manager, dispute_id)

        assert started.data["status"] == "InProgress"
        dispute = await tracker.disputes.repository.get_by_id(dispute_id)
        assert dispute.status == DisputeStatus.IN_PROGRESS

        resolved = await tracker.disputes.review_dispute(
            qa_manager, dispute_id, "PartiallyApproved", "Half right", 5,
        )
        assert resolved.data["new_score"] == 75

    @pytest.mark.asyncio
    async def test_start_review_twice(self, tracker, qa_manager, file_dispute):
        _, dispute_id = await file_dispute()
        await tracker.disputes.start_review(qa_manager, dispute_id)

        again = await tracker.disputes.start_review(qa_manager, dispute_id)

        assert again.error == ErrorKind.INVALID_STATE

    @pytest.mark.asyncio
    async def test_submitter_updates_pending(self, tracker, agent_manager, file_dispute):
        _, dispute_id = await file_dispute()

        result = await tracker.disputes.update_dispute(
            agent_manager, dispute_id, {"details": "Recording at 02:13", "requested_score_change": 10},
        )

        assert result.success is True
        dispute = await tracker.disputes.repository.get_by_id(dispute_id)
        assert dispute.details == "Recording at 02:13"
        assert dispute.requested_score_change == 10

    @pytest.mark.asyncio
    async def test_other_user_cannot_update(self, tracker, qa_manager, file_dispute):
        _, dispute_id = await file_dispute()

        result = await tracker.disputes.update_dispute(qa_manager, dispute_id, {"details": "x"})

        assert result.error == ErrorKind.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_in_progress_cannot_be_updated(
        self, tracker, agent_manager, qa_manager, file_dispute,
    ):
        _, dispute_id = await file_dispute()
        await tracker.disputes.start_review(qa_manager, dispute_id)

        result = await tracker.disputes.update_dispute(agent_manager, dispute_id, {"details": "x"})

        assert result.error == ErrorKind.INVALID_STATE

    @pytest.mark.asyncio
    async def test_unknown_update_field(self, tracker, agent_manager, file_dispute):
        _, dispute_id = await file_dispute()

        result = await tracker.disputes.update_dispute(agent_manager, dispute_id, {"status": "Approved"})

        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_cancel_restores_evaluation(self, tracker, agent_manager, file_dispute):
        evaluation_id, dispute_id = await file_dispute()

        result = await tracker.disputes.cancel_dispute(agent_manager, dispute_id)

        assert result.success is True
        assert await tracker.disputes.repository.get_by_id(dispute_id) is None
        assert (await _evaluation(tracker, evaluation_id)).status == EvaluationStatus.COMPLETED

        refiled = await tracker.disputes.file_dispute(agent_manager, evaluation_id, "Second look")
        assert refiled.success is True

    @pytest.mark.asyncio
    async def test_cancel_in_progress_refused(
        self, tracker, agent_manager, qa_manager, file_dispute,
    ):
        evaluation_id, dispute_id = await file_dispute()
        await tracker.disputes.start_review(qa_manager, dispute_id)

        result = await tracker.disputes.cancel_dispute(agent_manager, dispute_id)

        assert result.error == ErrorKind.INVALID_STATE
        assert result.message == "Only pending disputes can be changed (status is InProgress)"
        dispute = await tracker.disputes.repository.get_by_id(dispute_id)
        assert dispute.status == DisputeStatus.IN_PROGRESS
        assert (await _evaluation(tracker, evaluation_id)).status == EvaluationStatus.DISPUTED

    @pytest.mark.asyncio
    async def test_cancel_resolved_refused(
        self, tracker, agent_manager, qa_manager, file_dispute,
    ):
        evaluation_id, dispute_id = await file_dispute()
        await tracker.disputes.review_dispute(qa_manager, dispute_id, "Rejected", "Score stands")

        result = await tracker.disputes.cancel_dispute(agent_manager, dispute_id)

        assert result.error == ErrorKind.INVALID_STATE
        assert await tracker.disputes.repository.get_by_id(dispute_id) is not None
        assert (await _evaluation(tracker, evaluation_id)).status == EvaluationStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_non_submitter_cannot_cancel(self, tracker, qa_manager, file_dispute):
        evaluation_id, dispute_id = await file_dispute()

        result = await tracker.disputes.cancel_dispute(qa_manager, dispute_id)

        assert result.error == ErrorKind.PERMISSION_DENIED
        assert await tracker.disputes.repository.get_by_id(dispute_id) is not None
        assert (await _evaluation(tracker, evaluation_id)).status == EvaluationStatus.DISPUTED

    @pytest.mark.asyncio
    async def test_admin_cancels_any_dispute(self, tracker, admin, file_dispute):
        evaluation_id, dispute_id = await file_dispute()

        result = await tracker.disputes.cancel_dispute(admin, dispute_id)

        assert result.success is True
        assert await tracker.disputes.repository.get_by_id(dispute_id) is None
        assert (await _evaluation(tracker, evaluation_id)).status == EvaluationStatus.COMPLETED


# ── reads ───────────────────────────────────────────────


class TestDisputeReads:

    @pytest.mark.asyncio
    async def test_agent_sees_disputes_on_own_evaluations(
        self, tracker, agent, file_dispute,
    ):
        _, own = await file_dispute()
        await file_dispute(agent_id=OTHER_AGENT)

        visible = await tracker.disputes.list_disputes(agent)

        assert [d.id for d in visible] == [own]

    @pytest.mark.asyncio
    async def test_submitter_sees_own_disputes(self, tracker, agent_manager, file_dispute):
        await file_dispute()
        await file_dispute(agent_id=OTHER_AGENT)

        assert len(await tracker.disputes.list_disputes(agent_manager)) == 2

    @pytest.mark.asyncio
    async def test_get_dispute_with_resolution(self, tracker, qa_manager, file_dispute):
        evaluation_id, dispute_id = await file_dispute()
        await tracker.disputes.review_dispute(qa_manager, dispute_id, "Approved", "ok", 10)

        result = await tracker.disputes.get_dispute(qa_manager, dispute_id)

        assert result.data["dispute"].status == DisputeStatus.APPROVED
        assert result.data["evaluation"].id == evaluation_id
        assert result.data["resolution"].score_after == 80

    @pytest.mark.asyncio
    async def test_get_dispute_outside_scope(self, tracker, other_analyst, file_dispute):
        _, dispute_id = await file_dispute()

        result = await tracker.disputes.get_dispute(other_analyst, dispute_id)

        assert result.error == ErrorKind.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_disputes_for_evaluation(self, tracker, qa_manager, file_dispute):
        evaluation_id, dispute_id = await file_dispute()
        await file_dispute()

        disputes = await tracker.disputes.get_disputes_for_evaluation(qa_manager, evaluation_id)

        assert [d.id for d in disputes] == [dispute_id]

    @pytest.mark.asyncio
    async def test_list_propagates_storage_error(self, tracker, qa_manager, file_dispute, monkeypatch):
        await file_dispute()
        monkeypatch.setattr(
            tracker.disputes.repository, "list_filtered",
            AsyncMock(side_effect=StorageError("Record store query failed: connection reset")),
        )

        with pytest.raises(StorageError):
            await tracker.disputes.list_disputes(qa_manager)
