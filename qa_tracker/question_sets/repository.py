"""Question set and question repository."""

import logging
from typing import Any

from qa_tracker.question_sets.schemas import Question, QuestionSet
from qa_tracker.storage.record_store import Collection, RecordStore

logger = logging.getLogger(__name__)


class QuestionSetRepository:
    """Persistence for question sets and their questions."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    # -- question sets --

    async def create(self, question_set: QuestionSet) -> QuestionSet:
        await self._store.insert(Collection.QUESTION_SETS, question_set.to_record())
        return await self.get_by_id(question_set.id)

    async def get_by_id(self, question_set_id: str) -> QuestionSet | None:
        record = await self._store.get_by_id(Collection.QUESTION_SETS, question_set_id)
        return QuestionSet.from_record(record) if record else None

    async def update(self, question_set_id: str, fields: dict[str, Any]) -> QuestionSet | None:
        record = await self._store.update_by_id(
            Collection.QUESTION_SETS, question_set_id, fields,
        )
        return QuestionSet.from_record(record) if record else None

    async def delete(self, question_set_id: str) -> bool:
        return await self._store.delete_by_id(Collection.QUESTION_SETS, question_set_id)

    async def list_sets(self, *, active_only: bool = False) -> list[QuestionSet]:
        if active_only:
            records = await self._store.get_filtered(Collection.QUESTION_SETS, {"active": True})
        else:
            records = await self._store.get_all(Collection.QUESTION_SETS)
        return sorted((QuestionSet.from_record(r) for r in records), key=lambda s: s.name)

    async def count_evaluations(self, question_set_id: str) -> int:
        return await self._store.count(
            Collection.EVALUATIONS, {"question_set_id": question_set_id},
        )

    # -- questions --

    async def add_question(self, question: Question) -> Question:
        await self._store.insert(Collection.QUESTIONS, question.to_record())
        return await self.get_question(question.id)

    async def get_question(self, question_id: str) -> Question | None:
        record = await self._store.get_by_id(Collection.QUESTIONS, question_id)
        return Question.from_record(record) if record else None

    async def update_question(self, question_id: str, fields: dict[str, Any]) -> Question | None:
        record = await self._store.update_by_id(Collection.QUESTIONS, question_id, fields)
        return Question.from_record(record) if record else None

    async def delete_question(self, question_id: str) -> bool:
        return await self._store.delete_by_id(Collection.QUESTIONS, question_id)

    async def questions_for_set(
        self,
        question_set_id: str,
        *,
        active_only: bool = False,
    ) -> list[Question]:
        """Questions of a set in insertion order."""
        criteria: dict[str, Any] = {"question_set_id": question_set_id}
        if active_only:
            criteria["active"] = True
        records = await self._store.get_filtered(Collection.QUESTIONS, criteria)
        return [Question.from_record(r) for r in records]

    async def count_answers(self, question_id: str) -> int:
        return await self._store.count(
            Collection.EVALUATION_ANSWERS, {"question_id": question_id},
        )
