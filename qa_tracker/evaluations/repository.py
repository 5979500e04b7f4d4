"""Evaluation and answer repository."""

import logging
from datetime import datetime
from typing import Any

from qa_tracker.evaluations.schemas import Answer, Evaluation
from qa_tracker.storage.record_store import Collection, RecordStore
from qa_tracker.storage.serialization import parse_datetime, window_end

logger = logging.getLogger(__name__)


class EvaluationRepository:
    """Persistence for evaluations and their answers."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def create(self, evaluation: Evaluation) -> Evaluation:
        await self._store.insert(Collection.EVALUATIONS, evaluation.to_record())
        return await self.get_by_id(evaluation.id)

    async def get_by_id(self, evaluation_id: str) -> Evaluation | None:
        record = await self._store.get_by_id(Collection.EVALUATIONS, evaluation_id)
        return Evaluation.from_record(record) if record else None

    async def update(
        self,
        evaluation_id: str,
        fields: dict[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> Evaluation | None:
        record = await self._store.update_by_id(
            Collection.EVALUATIONS, evaluation_id, fields,
            expected_revision=expected_revision,
        )
        return Evaluation.from_record(record) if record else None

    async def delete(self, evaluation_id: str) -> bool:
        return await self._store.delete_by_id(Collection.EVALUATIONS, evaluation_id)

    async def list_evaluations(
        self,
        *,
        agent_id: str | None = None,
        evaluator_id: str | None = None,
        status: str | None = None,
        question_set_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Evaluation]:
        """Query evaluations with optional filters.

        Equality filters are pushed to the store; the date window is
        inclusive on both ends and applied here; a date-only end bound
        covers that whole day.

        Returns:
            Evaluations ordered by date, newest first.
        """
        criteria: dict[str, Any] = {}
        if agent_id is not None:
            criteria["agent_id"] = agent_id
        if evaluator_id is not None:
            criteria["evaluator_id"] = evaluator_id
        if status is not None:
            criteria["status"] = status
        if question_set_id is not None:
            criteria["question_set_id"] = question_set_id

        if criteria:
            records = await self._store.get_filtered(Collection.EVALUATIONS, criteria)
        else:
            records = await self._store.get_all(Collection.EVALUATIONS)

        evaluations = [Evaluation.from_record(r) for r in records]
        start_date = parse_datetime(start_date)
        end_limit = window_end(end_date)
        if start_date is not None:
            evaluations = [e for e in evaluations if e.date >= start_date]
        if end_limit is not None:
            evaluations = [e for e in evaluations if e.date < end_limit]
        evaluations.sort(key=lambda e: e.date, reverse=True)
        return evaluations

    # -- answers --

    async def add_answer(self, answer: Answer) -> Answer:
        await self._store.insert(Collection.EVALUATION_ANSWERS, answer.to_record())
        return answer

    async def update_answer(self, answer_id: str, fields: dict[str, Any]) -> Answer | None:
        record = await self._store.update_by_id(
            Collection.EVALUATION_ANSWERS, answer_id, fields,
        )
        return Answer.from_record(record) if record else None

    async def answers_for(self, evaluation_id: str) -> list[Answer]:
        records = await self._store.get_filtered(
            Collection.EVALUATION_ANSWERS, {"evaluation_id": evaluation_id},
        )
        return [Answer.from_record(r) for r in records]

    async def get_answer(self, answer_id: str) -> Answer | None:
        record = await self._store.get_by_id(Collection.EVALUATION_ANSWERS, answer_id)
        return Answer.from_record(record) if record else None

    async def delete_answer(self, answer_id: str) -> bool:
        return await self._store.delete_by_id(Collection.EVALUATION_ANSWERS, answer_id)
