"""Dispute engine.

State machine per evaluation:

    NoDispute -> Pending -> InProgress -> {Approved | PartiallyApproved | Rejected}
                 Pending -> {Approved | PartiallyApproved | Rejected}
                 Pending -> (cancelled, record removed)

Pending and InProgress are active; at most one active dispute exists per
evaluation and the evaluation is Disputed while it does. Every
status-guarded write carries the revision read at the start of the
operation, so two reviewers racing on the same dispute cannot both
commit.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from qa_tracker.activity.log import ActivityLog
from qa_tracker.disputes.config import DisputeConfig
from qa_tracker.disputes.repository import DisputeRepository
from qa_tracker.disputes.schemas import (
    ADJUSTING_DECISIONS,
    DECISIONS,
    Dispute,
    DisputeResolution,
    DisputeStatus,
)
from qa_tracker.disputes.statistics import dispute_statistics, in_window
from qa_tracker.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    WindowExpiredError,
)
from qa_tracker.evaluations.repository import EvaluationRepository
from qa_tracker.evaluations.schemas import EvaluationStatus
from qa_tracker.evaluations.scoring import apply_adjustment, parse_int
from qa_tracker.evaluations.visibility import scope_for
from qa_tracker.identity.permissions import require_role
from qa_tracker.identity.repository import UserRepository
from qa_tracker.identity.schemas import IdentityContext, Role
from qa_tracker.observability.metrics import get_metrics
from qa_tracker.results import OperationResult, engine_operation
from qa_tracker.storage.record_store import RecordStore
from qa_tracker.storage.serialization import to_iso, utc_now
from qa_tracker.system_settings.service import DISPUTE_TIME_LIMIT_DAYS, SystemSettingsService

if TYPE_CHECKING:
    from qa_tracker.notifications.notifier import Notifier

logger = logging.getLogger(__name__)

UPDATABLE_DISPUTE_FIELDS: frozenset[str] = frozenset({
    "reason",
    "details",
    "additional_evidence",
    "requested_score_change",
})

VALID_DECISIONS: frozenset[str] = frozenset(d.value for d in DECISIONS)


def _optional_int(value: Any, field_name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return parse_int(value, field_name)
    except ValueError as e:
        raise ValidationError(str(e))


class DisputeService:
    """Dispute lifecycle operations and statistics."""

    def __init__(
        self,
        store: RecordStore,
        activity: ActivityLog,
        settings: SystemSettingsService,
        notifier: "Notifier | None" = None,
        config: DisputeConfig | None = None,
    ) -> None:
        self._store = store
        self._activity = activity
        self._settings = settings
        self._notifier = notifier
        self._config = config or DisputeConfig()
        self._disputes = DisputeRepository(store)
        self._evaluations = EvaluationRepository(store)
        self._users = UserRepository(store)

    @property
    def repository(self) -> DisputeRepository:
        return self._disputes

    async def time_limit_days(self) -> int:
        return await self._settings.get_int(
            DISPUTE_TIME_LIMIT_DAYS, self._config.default_time_limit_days,
        )

    def _check_length(self, field_name: str, value: str, limit: int) -> str:
        if len(value) > limit:
            raise ValidationError(f"{field_name} exceeds {limit} characters")
        return value

    async def _load_for_submitter(self, identity: IdentityContext, dispute_id: str) -> Dispute:
        """Load a Pending dispute the identity may change as its submitter."""
        dispute = await self._disputes.get_by_id(dispute_id)
        if dispute is None:
            raise NotFoundError(f"Dispute {dispute_id} not found")
        if not identity.is_authenticated or (
            dispute.submitted_by != identity.user_id and identity.role != Role.ADMIN
        ):
            raise PermissionDeniedError(
                "Permission denied: only the submitter or an Admin can change this dispute"
            )
        if dispute.status != DisputeStatus.PENDING:
            raise InvalidStateError(
                f"Only pending disputes can be changed (status is {dispute.status.value})"
            )
        return dispute

    # -- writes --

    @engine_operation("file_dispute", "Failed to submit dispute")
    async def file_dispute(
        self,
        identity: IdentityContext,
        evaluation_id: str,
        reason: str,
        details: str = "",
        additional_evidence: str = "",
        requested_score_change: Any = None,
    ) -> OperationResult:
        """File a dispute against an evaluation.

        The evaluation must have no active dispute and its date must be
        within the dispute window. The dispute is stored Pending with a
        zero adjustment and the evaluation becomes Disputed.
        """
        require_role(identity, Role.AGENT_MANAGER, "file disputes")

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to file a dispute")
        self._check_length("reason", reason, self._config.max_reason_length)
        details = self._check_length("details", details or "", self._config.max_details_length)
        additional_evidence = self._check_length(
            "additional_evidence", additional_evidence or "", self._config.max_details_length,
        )
        requested = _optional_int(requested_score_change, "requested_score_change")
        limit_days = await self.time_limit_days()

        async with self._store.transaction():
            evaluation = await self._evaluations.get_by_id(evaluation_id)
            if evaluation is None:
                raise NotFoundError(f"Evaluation {evaluation_id} not found")
            if await self._disputes.active_for_evaluation(evaluation_id):
                raise InvalidStateError("An active dispute already exists for this evaluation")

            deadline = (evaluation.date.astimezone(timezone.utc) + timedelta(days=limit_days)).date()
            if utc_now().date() > deadline:
                raise WindowExpiredError(
                    f"Dispute window has expired: disputes must be filed within "
                    f"{limit_days} days of the evaluation date"
                )

            dispute = await self._disputes.create(Dispute(
                evaluation_id=evaluation_id,
                submitted_by=identity.user_id,
                reason=reason,
                details=details,
                additional_evidence=additional_evidence,
                requested_score_change=requested,
            ))
            evaluation = await self._evaluations.update(
                evaluation_id,
                {"status": EvaluationStatus.DISPUTED.value, "last_updated": to_iso(utc_now())},
                expected_revision=evaluation.revision,
            )
            await self._activity.record(
                identity.user_id, "file_dispute", "dispute", dispute.id,
                evaluation_id=evaluation_id, reason=reason,
            )

        get_metrics().disputes_filed.inc()
        logger.info("Dispute %s filed on evaluation %s", dispute.id, evaluation_id)
        if self._notifier is not None:
            self._notifier.dispute_filed(dispute, evaluation)

        return OperationResult.ok(
            "Dispute submitted successfully",
            dispute_id=dispute.id,
            evaluation_id=evaluation_id,
        )

    @engine_operation("update_dispute", "Failed to update dispute")
    async def update_dispute(
        self,
        identity: IdentityContext,
        dispute_id: str,
        data: Mapping[str, Any],
    ) -> OperationResult:
        unknown = set(data) - UPDATABLE_DISPUTE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {sorted(unknown)}. "
                f"Allowed: {sorted(UPDATABLE_DISPUTE_FIELDS)}"
            )

        updates: dict[str, Any] = {}
        if "reason" in data:
            reason = str(data["reason"] or "").strip()
            if not reason:
                raise ValidationError("Reason cannot be empty")
            updates["reason"] = self._check_length("reason", reason, self._config.max_reason_length)
        for key in ("details", "additional_evidence"):
            if key in data:
                updates[key] = self._check_length(
                    key, str(data[key] or ""), self._config.max_details_length,
                )
        if "requested_score_change" in data:
            updates["requested_score_change"] = _optional_int(
                data["requested_score_change"], "requested_score_change",
            )

        async with self._store.transaction():
            dispute = await self._load_for_submitter(identity, dispute_id)
            dispute = await self._disputes.update(
                dispute_id, updates, expected_revision=dispute.revision,
            )
            await self._activity.record(
                identity.user_id, "update_dispute", "dispute", dispute_id,
                fields=sorted(updates),
            )

        return OperationResult.ok("Dispute updated successfully", dispute_id=dispute.id)

    @engine_operation("start_review", "Failed to start dispute review")
    async def start_review(self, identity: IdentityContext, dispute_id: str) -> OperationResult:
        """Move a Pending dispute to InProgress."""
        require_role(identity, Role.QA_MANAGER, "review disputes")

        async with self._store.transaction():
            dispute = await self._disputes.get_by_id(dispute_id)
            if dispute is None:
                raise NotFoundError(f"Dispute {dispute_id} not found")
            if dispute.status != DisputeStatus.PENDING:
                raise InvalidStateError(
                    f"Only pending disputes can be taken into review "
                    f"(status is {dispute.status.value})"
                )
            await self._disputes.update(
                dispute_id,
                {"status": DisputeStatus.IN_PROGRESS.value, "reviewed_by": identity.user_id},
                expected_revision=dispute.revision,
            )
            await self._activity.record(
                identity.user_id, "start_review", "dispute", dispute_id,
            )

        return OperationResult.ok(
            "Dispute review started",
            dispute_id=dispute_id,
            status=DisputeStatus.IN_PROGRESS.value,
        )

    @engine_operation("review_dispute", "Failed to review dispute")
    async def review_dispute(
        self,
        identity: IdentityContext,
        dispute_id: str,
        status: str,
        review_notes: str,
        score_adjustment: Any = 0,
    ) -> OperationResult:
        """Resolve an active dispute.

        Approved and PartiallyApproved add ``score_adjustment`` to the
        evaluation score, clamped to ``[0, max_possible]``. Rejected leaves
        the score unchanged and stores a zero adjustment. Either way the
        evaluation returns to Completed and one resolution is recorded.
        """
        require_role(identity, Role.QA_MANAGER, "review disputes")

        if status not in VALID_DECISIONS:
            raise ValidationError(
                f"Invalid decision {status!r}. Must be one of: {sorted(VALID_DECISIONS)}"
            )
        decision = DisputeStatus(status)
        review_notes = (review_notes or "").strip()
        if not review_notes:
            raise ValidationError("Review notes are required")
        self._check_length("review_notes", review_notes, self._config.max_details_length)
        try:
            adjustment = parse_int(
                0 if score_adjustment is None else score_adjustment, "score_adjustment",
            )
        except ValueError as e:
            raise ValidationError(str(e))
        if decision not in ADJUSTING_DECISIONS:
            adjustment = 0

        async with self._store.transaction():
            dispute = await self._disputes.get_by_id(dispute_id)
            if dispute is None:
                raise NotFoundError(f"Dispute {dispute_id} not found")
            if not dispute.is_active:
                raise InvalidStateError(
                    f"Only pending or in-progress disputes can be reviewed "
                    f"(status is {dispute.status.value})"
                )
            evaluation = await self._evaluations.get_by_id(dispute.evaluation_id)
            if evaluation is None:
                raise NotFoundError(f"Evaluation {dispute.evaluation_id} not found")

            score_before = evaluation.score
            score_after = apply_adjustment(score_before, adjustment, evaluation.max_possible)
            now = utc_now()

            dispute = await self._disputes.update(
                dispute_id,
                {
                    "status": decision.value,
                    "reviewed_by": identity.user_id,
                    "review_date": to_iso(now),
                    "review_notes": review_notes,
                    "score_adjustment": adjustment,
                },
                expected_revision=dispute.revision,
            )
            await self._disputes.add_resolution(DisputeResolution(
                dispute_id=dispute_id,
                resolved_by=identity.user_id,
                decision=decision,
                review_notes=review_notes,
                score_before=score_before,
                score_after=score_after,
                resolution_date=now,
            ))
            evaluation = await self._evaluations.update(
                evaluation.id,
                {
                    "score": score_after,
                    "status": EvaluationStatus.COMPLETED.value,
                    "last_updated": to_iso(now),
                },
                expected_revision=evaluation.revision,
            )
            await self._activity.record(
                identity.user_id, "review_dispute", "dispute", dispute_id,
                decision=decision.value, score_before=score_before, score_after=score_after,
            )

        get_metrics().record_dispute_resolved(decision.value)
        logger.info(
            "Dispute %s %s: score %d -> %d",
            dispute_id, decision.value, score_before, score_after,
        )
        if self._notifier is not None:
            self._notifier.dispute_resolved(dispute, evaluation, score_before)

        return OperationResult.ok(
            "Dispute reviewed successfully",
            dispute_id=dispute_id,
            decision=decision.value,
            score_before=score_before,
            new_score=score_after,
            max_possible=evaluation.max_possible,
        )

    @engine_operation("cancel_dispute", "Failed to cancel dispute")
    async def cancel_dispute(self, identity: IdentityContext, dispute_id: str) -> OperationResult:
        """Withdraw a Pending dispute and return the evaluation to Completed."""
        async with self._store.transaction():
            dispute = await self._load_for_submitter(identity, dispute_id)

            await self._disputes.delete(dispute_id)
            evaluation = await self._evaluations.get_by_id(dispute.evaluation_id)
            if evaluation is not None:
                await self._evaluations.update(
                    evaluation.id,
                    {"status": EvaluationStatus.COMPLETED.value, "last_updated": to_iso(utc_now())},
                    expected_revision=evaluation.revision,
                )
            await self._activity.record(
                identity.user_id, "cancel_dispute", "dispute", dispute_id,
                evaluation_id=dispute.evaluation_id,
            )

        get_metrics().disputes_cancelled.inc()
        return OperationResult.ok(
            "Dispute cancelled successfully",
            dispute_id=dispute_id,
            evaluation_id=dispute.evaluation_id,
        )

    # -- reads --

    async def _visible(self, identity: IdentityContext, disputes: list[Dispute]) -> list[Dispute]:
        """Disputes whose evaluation is visible or that the identity submitted."""
        if not identity.is_authenticated:
            return []
        scope = await scope_for(identity, self._users)
        if scope.see_all:
            return disputes

        visible: list[Dispute] = []
        cache: dict[str, bool] = {}
        for dispute in disputes:
            if dispute.submitted_by == identity.user_id:
                visible.append(dispute)
                continue
            if dispute.evaluation_id not in cache:
                evaluation = await self._evaluations.get_by_id(dispute.evaluation_id)
                cache[dispute.evaluation_id] = evaluation is not None and scope.allows(evaluation)
            if cache[dispute.evaluation_id]:
                visible.append(dispute)
        return visible

    @engine_operation("get_dispute", "Failed to load dispute")
    async def get_dispute(self, identity: IdentityContext, dispute_id: str) -> OperationResult:
        """Load a dispute with its evaluation and latest resolution."""
        dispute = await self._disputes.get_by_id(dispute_id)
        if dispute is None:
            raise NotFoundError(f"Dispute {dispute_id} not found")
        if not await self._visible(identity, [dispute]):
            raise PermissionDeniedError("Permission denied: you cannot view this dispute")

        resolutions = await self._disputes.resolutions_for(dispute_id)
        return OperationResult.ok(
            "Dispute loaded",
            dispute=dispute,
            evaluation=await self._evaluations.get_by_id(dispute.evaluation_id),
            resolution=resolutions[-1] if resolutions else None,
        )

    async def list_disputes(
        self,
        identity: IdentityContext,
        *,
        status: str | None = None,
        evaluation_id: str | None = None,
        submitted_by: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Dispute]:
        """Disputes visible to the identity, newest first.

        Collection reads return plain lists rather than an
        ``OperationResult``.

        Raises:
            StorageError: If the record store cannot be read.
        """
        criteria: dict[str, Any] = {}
        if status is not None:
            criteria["status"] = status
        if evaluation_id is not None:
            criteria["evaluation_id"] = evaluation_id
        if submitted_by is not None:
            criteria["submitted_by"] = submitted_by

        disputes = [
            d for d in await self._disputes.list_filtered(criteria)
            if in_window(d.submission_date, start_date, end_date)
        ]
        disputes.sort(key=lambda d: d.submission_date, reverse=True)
        return await self._visible(identity, disputes)

    async def get_disputes_for_evaluation(
        self,
        identity: IdentityContext,
        evaluation_id: str,
    ) -> list[Dispute]:
        return await self.list_disputes(identity, evaluation_id=evaluation_id)

    async def get_statistics(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> dict[str, Any]:
        """Dispute statistics over submissions within the window (inclusive).

        Raises:
            StorageError: If the record store cannot be read.
        """
        return dispute_statistics(await self._disputes.list_all(), start_date, end_date)
