"""Evaluation engine.

Creates, updates, reads and deletes evaluations. Every write runs in a
single record-store transaction together with its answers, its audit
queue link and its activity entry, so a failure part-way leaves nothing
behind. Notifications go out only after the transaction commits.
"""

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

from qa_tracker.activity.log import ActivityLog
from qa_tracker.audit_queue.repository import AuditQueueRepository
from qa_tracker.audit_queue.schemas import QueueStatus
from qa_tracker.disputes.repository import DisputeRepository
from qa_tracker.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from qa_tracker.evaluations.config import EvaluationConfig
from qa_tracker.evaluations.repository import EvaluationRepository
from qa_tracker.evaluations.schemas import (
    VALID_EVALUATION_STATUSES,
    Answer,
    Evaluation,
    EvaluationStatus,
)
from qa_tracker.evaluations.scoring import parse_int, total_scores
from qa_tracker.evaluations.visibility import scope_for
from qa_tracker.identity.permissions import has_permission, require_role
from qa_tracker.identity.repository import UserRepository
from qa_tracker.identity.schemas import IdentityContext, Role
from qa_tracker.observability.metrics import get_metrics
from qa_tracker.question_sets.repository import QuestionSetRepository
from qa_tracker.question_sets.schemas import Question
from qa_tracker.results import OperationResult, engine_operation
from qa_tracker.storage.record_store import RecordStore
from qa_tracker.storage.serialization import parse_datetime, to_iso, utc_now

if TYPE_CHECKING:
    from qa_tracker.notifications.notifier import Notifier

logger = logging.getLogger(__name__)

UPDATABLE_EVALUATION_FIELDS: frozenset[str] = frozenset({
    "strengths",
    "areas_for_improvement",
    "comments",
    "status",
})

_TEXT_FIELDS = ("strengths", "areas_for_improvement", "comments")


class EvaluationService:
    """Evaluation lifecycle operations.

    Write operations take an explicit ``IdentityContext`` and return an
    ``OperationResult``; they never raise.
    """

    def __init__(
        self,
        store: RecordStore,
        activity: ActivityLog,
        notifier: "Notifier | None" = None,
        config: EvaluationConfig | None = None,
    ) -> None:
        self._store = store
        self._activity = activity
        self._notifier = notifier
        self._config = config or EvaluationConfig()
        self._evaluations = EvaluationRepository(store)
        self._disputes = DisputeRepository(store)
        self._question_sets = QuestionSetRepository(store)
        self._users = UserRepository(store)
        self._queue = AuditQueueRepository(store)

    @property
    def repository(self) -> EvaluationRepository:
        return self._evaluations

    # -- validation helpers --

    def _clean_text(self, data: Mapping[str, Any]) -> dict[str, str]:
        cleaned: dict[str, str] = {}
        for key in _TEXT_FIELDS:
            if key in data:
                value = str(data[key] or "")
                if len(value) > self._config.max_text_length:
                    raise ValidationError(
                        f"{key} exceeds {self._config.max_text_length} characters"
                    )
                cleaned[key] = value
        return cleaned

    def _build_answer(
        self,
        evaluation_id: str,
        raw: Mapping[str, Any],
        questions: dict[str, Question],
        question_set_id: str,
    ) -> Answer:
        if not isinstance(raw, Mapping):
            raise ValidationError("Each answer must be an object")
        question_id = str(raw.get("question_id") or "").strip()
        if not question_id:
            raise ValidationError("Each answer needs a question_id")
        question = questions.get(question_id)
        if question is None:
            raise ValidationError(
                f"Question {question_id} does not belong to question set {question_set_id}"
            )

        try:
            score = parse_int(raw.get("score"), f"Score for question {question_id}")
            if raw.get("max_score") is None:
                max_score = question.possible_score
            else:
                max_score = parse_int(raw["max_score"], f"Max score for question {question_id}")
        except ValueError as e:
            raise ValidationError(str(e))
        if max_score < 0:
            raise ValidationError(f"Max score for question {question_id} cannot be negative")

        try:
            return Answer(
                evaluation_id=evaluation_id,
                question_id=question_id,
                question_text=question.text,
                answer_value=str(raw.get("answer_value") or ""),
                score=score,
                max_score=max_score,
                comments=str(raw.get("comments") or raw.get("comment") or ""),
            )
        except ValueError as e:
            raise ValidationError(str(e))

    async def _questions_by_id(self, question_set_id: str) -> dict[str, Question]:
        questions = await self._question_sets.questions_for_set(question_set_id)
        return {q.id: q for q in questions}

    # -- writes --

    @engine_operation("create_evaluation", "Failed to create evaluation")
    async def create_evaluation(
        self,
        identity: IdentityContext,
        data: Mapping[str, Any],
        answers: Sequence[Mapping[str, Any]],
        *,
        notify: bool = True,
    ) -> OperationResult:
        """Score an interaction and persist the evaluation with its answers.

        Args:
            identity: Acting evaluator; needs QAAnalyst or above.
            data: Evaluation fields. ``agent_id``, ``question_set_id`` and
                ``interaction_type`` are required; ``date``, ``customer_id``,
                ``interaction_id``, feedback text and ``queue_item_id`` are
                optional.
            answers: Non-empty sequence of ``{question_id, score,
                max_score?, answer_value?, comments?}``.
            notify: Set False to skip the agent/manager notification.

        Returns:
            Result carrying ``evaluation_id``, ``score``, ``max_possible``
            and ``percentage``.
        """
        require_role(identity, Role.QA_ANALYST, "create evaluations")

        agent_id = str(data.get("agent_id") or "").strip().lower()
        question_set_id = str(data.get("question_set_id") or "").strip()
        interaction_type = str(data.get("interaction_type") or "").strip()
        missing = [
            name for name, value in (
                ("agent_id", agent_id),
                ("question_set_id", question_set_id),
                ("interaction_type", interaction_type),
            ) if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if isinstance(answers, (str, bytes)) or not isinstance(answers, Sequence) or not answers:
            raise ValidationError("At least one answer is required")
        if len(answers) > self._config.max_answers:
            raise ValidationError(
                f"Too many answers: {len(answers)} (max {self._config.max_answers})"
            )
        text = self._clean_text(data)
        try:
            date = parse_datetime(data.get("date")) or utc_now()
        except ValueError:
            raise ValidationError("date must be an ISO-8601 date")
        queue_item_id = data.get("queue_item_id") or None

        async with self._store.transaction():
            if await self._users.get_by_id(agent_id) is None:
                raise NotFoundError(f"Agent {agent_id} not found")
            if await self._question_sets.get_by_id(question_set_id) is None:
                raise NotFoundError(f"Question set {question_set_id} not found")

            evaluation = Evaluation(
                agent_id=agent_id,
                evaluator_id=identity.user_id,
                question_set_id=question_set_id,
                interaction_type=interaction_type,
                date=date,
                customer_id=str(data.get("customer_id") or ""),
                interaction_id=str(data.get("interaction_id") or ""),
                status=EvaluationStatus.COMPLETED,
                queue_item_id=queue_item_id,
                **text,
            )

            questions = await self._questions_by_id(question_set_id)
            built: list[Answer] = []
            seen: set[str] = set()
            for raw in answers:
                answer = self._build_answer(evaluation.id, raw, questions, question_set_id)
                if answer.question_id in seen:
                    raise ValidationError(f"Question {answer.question_id} is answered twice")
                seen.add(answer.question_id)
                built.append(answer)
            evaluation.score, evaluation.max_possible = total_scores(built)

            queue_item = None
            if queue_item_id:
                queue_item = await self._queue.get_by_id(queue_item_id)
                if queue_item is None:
                    raise NotFoundError(f"Audit queue item {queue_item_id} not found")
                if queue_item.status == QueueStatus.COMPLETED:
                    raise ValidationError("Audit queue item is already completed")

            evaluation = await self._evaluations.create(evaluation)
            for answer in built:
                await self._evaluations.add_answer(answer)
            if queue_item is not None:
                await self._queue.update(
                    queue_item.id,
                    {"status": QueueStatus.COMPLETED.value, "evaluation_id": evaluation.id},
                    expected_revision=queue_item.revision,
                )
            await self._activity.record(
                identity.user_id, "create_evaluation", "evaluation", evaluation.id,
                agent_id=agent_id, score=evaluation.score, max_possible=evaluation.max_possible,
            )

        get_metrics().record_evaluation_created(evaluation.percentage)
        logger.info(
            "Evaluation %s created for %s: %d/%d",
            evaluation.id, agent_id, evaluation.score, evaluation.max_possible,
        )
        if notify and self._config.notify_on_create and self._notifier is not None:
            self._notifier.evaluation_completed(evaluation)

        return OperationResult.ok(
            "Evaluation created successfully",
            evaluation_id=evaluation.id,
            score=evaluation.score,
            max_possible=evaluation.max_possible,
            percentage=round(evaluation.percentage, 1),
        )

    @engine_operation("update_evaluation", "Failed to update evaluation")
    async def update_evaluation(
        self,
        identity: IdentityContext,
        evaluation_id: str,
        data: Mapping[str, Any],
        answers: Sequence[Mapping[str, Any]] | None = None,
    ) -> OperationResult:
        """Edit feedback, status, or answers of an evaluation.

        Only the original evaluator, a QA manager or an Admin may edit, and
        never while the evaluation is disputed. Supplied answers replace
        the existing answer to the same question or are appended; totals
        are then recomputed from the full answer set.
        """
        require_role(identity, Role.QA_ANALYST, "update evaluations")

        unknown = set(data) - UPDATABLE_EVALUATION_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {sorted(unknown)}. "
                f"Allowed: {sorted(UPDATABLE_EVALUATION_FIELDS)}"
            )
        updates: dict[str, Any] = dict(self._clean_text(data))
        if "status" in data:
            status = data["status"]
            if status not in VALID_EVALUATION_STATUSES:
                raise ValidationError(
                    f"Invalid status {status!r}. "
                    f"Must be one of: {sorted(VALID_EVALUATION_STATUSES)}"
                )
            if status == EvaluationStatus.DISPUTED:
                raise ValidationError("Status Disputed is set only by filing a dispute")
            updates["status"] = EvaluationStatus(status).value
        if answers is not None and (
            isinstance(answers, (str, bytes)) or not isinstance(answers, Sequence)
        ):
            raise ValidationError("answers must be a list")

        async with self._store.transaction():
            evaluation = await self._evaluations.get_by_id(evaluation_id)
            if evaluation is None:
                raise NotFoundError(f"Evaluation {evaluation_id} not found")
            if evaluation.status == EvaluationStatus.DISPUTED:
                raise InvalidStateError("Cannot update an evaluation while it is disputed")
            if evaluation.evaluator_id != identity.user_id and not has_permission(
                identity, Role.QA_MANAGER,
            ):
                raise PermissionDeniedError(
                    "Permission denied: only the original evaluator or a QA Manager "
                    "can update this evaluation"
                )

            answers_changed = 0
            if answers:
                questions = await self._questions_by_id(evaluation.question_set_id)
                existing = {
                    a.question_id: a for a in await self._evaluations.answers_for(evaluation_id)
                }
                seen: set[str] = set()
                for raw in answers:
                    answer = self._build_answer(
                        evaluation_id, raw, questions, evaluation.question_set_id,
                    )
                    if answer.question_id in seen:
                        raise ValidationError(f"Question {answer.question_id} is answered twice")
                    seen.add(answer.question_id)

                    current = existing.get(answer.question_id)
                    if current is None:
                        await self._evaluations.add_answer(answer)
                    else:
                        await self._evaluations.update_answer(current.id, {
                            "score": answer.score,
                            "max_score": answer.max_score,
                            "answer_value": answer.answer_value or current.answer_value,
                            "comments": answer.comments or current.comments,
                        })
                    answers_changed += 1

                updates["score"], updates["max_possible"] = total_scores(
                    await self._evaluations.answers_for(evaluation_id)
                )

            updates["last_updated"] = to_iso(utc_now())
            evaluation = await self._evaluations.update(
                evaluation_id, updates, expected_revision=evaluation.revision,
            )
            await self._activity.record(
                identity.user_id, "update_evaluation", "evaluation", evaluation_id,
                fields=sorted(k for k in updates if k != "last_updated"),
                answers_changed=answers_changed,
            )

        return OperationResult.ok(
            "Evaluation updated successfully",
            evaluation_id=evaluation.id,
            score=evaluation.score,
            max_possible=evaluation.max_possible,
            percentage=round(evaluation.percentage, 1),
        )

    @engine_operation("delete_evaluation", "Failed to delete evaluation")
    async def delete_evaluation(
        self,
        identity: IdentityContext,
        evaluation_id: str,
    ) -> OperationResult:
        """Delete an evaluation and everything that hangs off it.

        Children go first: answers, then each dispute's resolutions and
        the dispute itself, then the evaluation.
        """
        require_role(identity, Role.QA_MANAGER, "delete evaluations")

        async with self._store.transaction():
            evaluation = await self._evaluations.get_by_id(evaluation_id)
            if evaluation is None:
                raise NotFoundError(f"Evaluation {evaluation_id} not found")

            answers = await self._evaluations.answers_for(evaluation_id)
            for answer in answers:
                await self._evaluations.delete_answer(answer.id)

            disputes = await self._disputes.for_evaluation(evaluation_id)
            resolutions_removed = 0
            for dispute in disputes:
                for resolution in await self._disputes.resolutions_for(dispute.id):
                    await self._disputes.delete_resolution(resolution.id)
                    resolutions_removed += 1
                await self._disputes.delete(dispute.id)

            await self._evaluations.delete(evaluation_id)
            await self._activity.record(
                identity.user_id, "delete_evaluation", "evaluation", evaluation_id,
                answers=len(answers), disputes=len(disputes),
            )

        get_metrics().evaluations_deleted.inc()
        logger.info("Evaluation %s deleted", evaluation_id)
        return OperationResult.ok(
            "Evaluation deleted successfully",
            evaluation_id=evaluation_id,
            answers_removed=len(answers),
            disputes_removed=len(disputes),
            resolutions_removed=resolutions_removed,
        )

    # -- reads --

    @engine_operation("get_evaluation", "Failed to load evaluation")
    async def get_evaluation(
        self,
        identity: IdentityContext,
        evaluation_id: str,
    ) -> OperationResult:
        """Load one evaluation with its answers and disputes.

        An evaluation outside the caller's visibility reads as permission
        denied.
        """
        evaluation = await self._evaluations.get_by_id(evaluation_id)
        if evaluation is None:
            raise NotFoundError(f"Evaluation {evaluation_id} not found")
        scope = await scope_for(identity, self._users)
        if not scope.allows(evaluation):
            raise PermissionDeniedError("Permission denied: you cannot view this evaluation")

        return OperationResult.ok(
            "Evaluation loaded",
            evaluation=evaluation,
            answers=await self._evaluations.answers_for(evaluation_id),
            disputes=await self._disputes.for_evaluation(evaluation_id),
        )

    async def list_evaluations(
        self,
        identity: IdentityContext,
        *,
        agent_id: str | None = None,
        evaluator_id: str | None = None,
        status: str | None = None,
        question_set_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Evaluation]:
        """Evaluations visible to the identity, newest first.

        Raises:
            StorageError: If the record store cannot be read.
        """
        scope = await scope_for(identity, self._users)
        evaluations = await self._evaluations.list_evaluations(
            agent_id=agent_id,
            evaluator_id=evaluator_id,
            status=status,
            question_set_id=question_set_id,
            start_date=start_date,
            end_date=end_date,
        )
        return scope.filter(evaluations)

    async def get_for_agent(self, identity: IdentityContext, agent_id: str) -> list[Evaluation]:
        return await self.list_evaluations(identity, agent_id=agent_id)

    async def get_by_evaluator(
        self,
        identity: IdentityContext,
        evaluator_id: str,
    ) -> list[Evaluation]:
        return await self.list_evaluations(identity, evaluator_id=evaluator_id)

