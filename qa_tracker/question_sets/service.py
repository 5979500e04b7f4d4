"""Question set management.

Management operations require QAManager (Admin passes every check);
reads are open to any caller. A question set referenced by an
evaluation can never be deleted, and a question referenced by an
answer is deactivated rather than removed.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from qa_tracker.activity.log import ActivityLog
from qa_tracker.errors import InvalidStateError, NotFoundError, ValidationError
from qa_tracker.identity.permissions import require_role
from qa_tracker.identity.schemas import IdentityContext, Role
from qa_tracker.question_sets.repository import QuestionSetRepository
from qa_tracker.question_sets.schemas import Question, QuestionSet
from qa_tracker.results import OperationResult, engine_operation
from qa_tracker.storage.record_store import RecordStore
from qa_tracker.storage.serialization import to_iso, utc_now

logger = logging.getLogger(__name__)

UPDATABLE_SET_FIELDS: frozenset[str] = frozenset({
    "name",
    "description",
    "interaction_type",
    "active",
})

UPDATABLE_QUESTION_FIELDS: frozenset[str] = frozenset({
    "text",
    "type",
    "weight",
    "possible_score",
    "critical",
    "options",
    "help_text",
    "active",
})


def _reject_unknown(data: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {sorted(unknown)}. Allowed: {sorted(allowed)}"
        )


def _build_question(question_set_id: str, data: Mapping[str, Any]) -> Question:
    try:
        return Question(
            question_set_id=question_set_id,
            text=str(data.get("text") or "").strip(),
            type=data.get("type", "YesNo"),
            weight=data.get("weight", 1),
            possible_score=data.get("possible_score", 1),
            critical=bool(data.get("critical", False)),
            options=list(data.get("options") or []),
            help_text=str(data.get("help_text") or ""),
        )
    except ValueError as e:
        raise ValidationError(str(e))


class QuestionSetService:
    """Create, edit, and delete question sets and questions."""

    def __init__(self, store: RecordStore, activity: ActivityLog) -> None:
        self._store = store
        self._repo = QuestionSetRepository(store)
        self._activity = activity

    @property
    def repository(self) -> QuestionSetRepository:
        return self._repo

    @engine_operation("create_question_set", "Failed to create question set")
    async def create_question_set(
        self,
        identity: IdentityContext,
        data: Mapping[str, Any],
        questions: Sequence[Mapping[str, Any]] = (),
    ) -> OperationResult:
        """Create a question set, optionally with its initial questions."""
        require_role(identity, Role.QA_MANAGER, "manage question sets")

        try:
            question_set = QuestionSet(
                name=str(data.get("name") or "").strip(),
                interaction_type=str(data.get("interaction_type") or "").strip(),
                description=str(data.get("description") or ""),
                active=bool(data.get("active", True)),
                created_by=identity.user_id,
            )
        except ValueError as e:
            raise ValidationError(str(e))
        built = [_build_question(question_set.id, q) for q in questions]

        async with self._store.transaction():
            created = await self._repo.create(question_set)
            for question in built:
                await self._repo.add_question(question)
            await self._activity.record(
                identity.user_id, "create_question_set", "question_set", created.id,
                questions=len(built),
            )

        logger.info("Question set %s created with %d questions", created.id, len(built))
        return OperationResult.ok(
            "Question set created successfully",
            question_set_id=created.id,
            question_set=created,
        )

    @engine_operation("update_question_set", "Failed to update question set")
    async def update_question_set(
        self,
        identity: IdentityContext,
        question_set_id: str,
        data: Mapping[str, Any],
    ) -> OperationResult:
        require_role(identity, Role.QA_MANAGER, "manage question sets")
        _reject_unknown(data, UPDATABLE_SET_FIELDS)

        updates: dict[str, Any] = {}
        for key in ("name", "interaction_type"):
            if key in data:
                value = str(data[key] or "").strip()
                if not value:
                    raise ValidationError(f"{key.replace('_', ' ').capitalize()} cannot be empty")
                updates[key] = value
        if "description" in data:
            updates["description"] = str(data["description"] or "")
        if "active" in data:
            updates["active"] = bool(data["active"])
        updates["last_modified"] = to_iso(utc_now())

        async with self._store.transaction():
            question_set = await self._repo.update(question_set_id, updates)
            if question_set is None:
                raise NotFoundError(f"Question set {question_set_id} not found")
            await self._activity.record(
                identity.user_id, "update_question_set", "question_set", question_set_id,
            )

        return OperationResult.ok("Question set updated successfully", question_set=question_set)

    @engine_operation("delete_question_set", "Failed to delete question set")
    async def delete_question_set(
        self,
        identity: IdentityContext,
        question_set_id: str,
    ) -> OperationResult:
        """Delete a set and its questions unless an evaluation uses it."""
        require_role(identity, Role.QA_MANAGER, "manage question sets")

        async with self._store.transaction():
            if await self._repo.get_by_id(question_set_id) is None:
                raise NotFoundError(f"Question set {question_set_id} not found")

            in_use = await self._repo.count_evaluations(question_set_id)
            if in_use:
                raise InvalidStateError(
                    f"Cannot delete question set: it is used in {in_use} evaluation(s)"
                )

            questions = await self._repo.questions_for_set(question_set_id)
            for question in questions:
                await self._repo.delete_question(question.id)
            await self._repo.delete(question_set_id)
            await self._activity.record(
                identity.user_id, "delete_question_set", "question_set", question_set_id,
                questions_removed=len(questions),
            )

        return OperationResult.ok(
            "Question set deleted successfully",
            question_set_id=question_set_id,
            questions_removed=len(questions),
        )

    @engine_operation("add_question", "Failed to add question")
    async def add_question(
        self,
        identity: IdentityContext,
        question_set_id: str,
        data: Mapping[str, Any],
    ) -> OperationResult:
        require_role(identity, Role.QA_MANAGER, "manage question sets")
        question = _build_question(question_set_id, data)

        async with self._store.transaction():
            if await self._repo.get_by_id(question_set_id) is None:
                raise NotFoundError(f"Question set {question_set_id} not found")
            created = await self._repo.add_question(question)
            await self._repo.update(question_set_id, {"last_modified": to_iso(utc_now())})
            await self._activity.record(
                identity.user_id, "add_question", "question", created.id,
                question_set_id=question_set_id,
            )

        return OperationResult.ok(
            "Question added successfully", question_id=created.id, question=created,
        )

    @engine_operation("update_question", "Failed to update question")
    async def update_question(
        self,
        identity: IdentityContext,
        question_id: str,
        data: Mapping[str, Any],
    ) -> OperationResult:
        require_role(identity, Role.QA_MANAGER, "manage question sets")
        _reject_unknown(data, UPDATABLE_QUESTION_FIELDS)

        async with self._store.transaction():
            current = await self._repo.get_question(question_id)
            if current is None:
                raise NotFoundError(f"Question {question_id} not found")

            merged = current.to_record()
            merged.update(data)
            # Re-run field validation on the merged question
            candidate = _build_question(current.question_set_id, merged)
            updates = {
                key: value
                for key, value in candidate.to_record().items()
                if key in data
            }
            if "active" in data:
                updates["active"] = bool(data["active"])

            question = await self._repo.update_question(question_id, updates)
            await self._repo.update(
                current.question_set_id, {"last_modified": to_iso(utc_now())},
            )
            await self._activity.record(
                identity.user_id, "update_question", "question", question_id,
                fields=sorted(updates),
            )

        return OperationResult.ok("Question updated successfully", question=question)

    @engine_operation("delete_question", "Failed to delete question")
    async def delete_question(self, identity: IdentityContext, question_id: str) -> OperationResult:
        """Remove a question, or deactivate it when answers reference it."""
        require_role(identity, Role.QA_MANAGER, "manage question sets")

        async with self._store.transaction():
            question = await self._repo.get_question(question_id)
            if question is None:
                raise NotFoundError(f"Question {question_id} not found")

            if await self._repo.count_answers(question_id):
                await self._repo.update_question(question_id, {"active": False})
                deactivated = True
            else:
                await self._repo.delete_question(question_id)
                deactivated = False
            await self._activity.record(
                identity.user_id, "delete_question", "question", question_id,
                deactivated=deactivated,
            )

        message = (
            "Question is used in existing evaluations and was deactivated"
            if deactivated
            else "Question deleted successfully"
        )
        return OperationResult.ok(message, question_id=question_id, deactivated=deactivated)

    async def get_question_set(
        self,
        question_set_id: str,
        *,
        active_questions_only: bool = False,
    ) -> tuple[QuestionSet, list[Question]] | None:
        question_set = await self._repo.get_by_id(question_set_id)
        if question_set is None:
            return None
        questions = await self._repo.questions_for_set(
            question_set_id, active_only=active_questions_only,
        )
        return question_set, questions

    async def list_question_sets(self, *, active_only: bool = False) -> list[QuestionSet]:
        return await self._repo.list_sets(active_only=active_only)
