"""Composes domain notifications and hands them to the dispatcher.

Engines call the ``evaluation_completed``, ``dispute_filed`` and
``dispute_resolved`` hooks after their transaction commits. Each hook
schedules a background task and returns immediately; recipient lookup
and delivery failures are logged and never reach the engine.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from qa_tracker.disputes.schemas import Dispute
from qa_tracker.evaluations.schemas import Evaluation
from qa_tracker.identity.repository import UserRepository
from qa_tracker.identity.schemas import Role, User
from qa_tracker.notifications import templates
from qa_tracker.notifications.dispatcher import NotificationDispatcher
from qa_tracker.notifications.schemas import Notification, render

logger = logging.getLogger(__name__)


def _name(user: User | None, fallback: str) -> str:
    return user.name if user and user.name else fallback


class Notifier:
    """Fire-and-forget notification hooks for the engines."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        users: UserRepository,
        *,
        enabled: bool = True,
    ) -> None:
        self._dispatcher = dispatcher
        self._users = users
        self._enabled = enabled
        self._pending: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._enabled

    # -- engine hooks --

    def evaluation_completed(self, evaluation: Evaluation) -> None:
        self._schedule(lambda: self.compose_evaluation_completed(evaluation))

    def dispute_filed(self, dispute: Dispute, evaluation: Evaluation) -> None:
        self._schedule(lambda: self.compose_dispute_filed(dispute, evaluation))

    def dispute_resolved(
        self,
        dispute: Dispute,
        evaluation: Evaluation,
        score_before: int,
    ) -> None:
        self._schedule(
            lambda: self.compose_dispute_resolved(dispute, evaluation, score_before)
        )

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- composition --

    async def compose_evaluation_completed(self, evaluation: Evaluation) -> Notification:
        """Notify the agent and the agent's manager."""
        agent = await self._users.get_by_id(evaluation.agent_id)
        evaluator = await self._users.get_by_id(evaluation.evaluator_id)
        recipients = [evaluation.agent_id]
        if agent and agent.manager_id:
            recipients.append(agent.manager_id)

        context = {
            "evaluation_id": evaluation.id,
            "agent_name": _name(agent, evaluation.agent_id),
            "evaluator_name": _name(evaluator, evaluation.evaluator_id),
            "interaction_type": evaluation.interaction_type,
            "score": evaluation.score,
            "max_possible": evaluation.max_possible,
            "percentage": f"{evaluation.percentage:.1f}",
            "date": evaluation.date.date().isoformat(),
            "strengths": evaluation.strengths or "-",
            "areas_for_improvement": evaluation.areas_for_improvement or "-",
        }
        return self._build(
            "evaluation_completed",
            recipients,
            templates.EVALUATION_COMPLETED_SUBJECT,
            templates.EVALUATION_COMPLETED_BODY,
            context,
        )

    async def compose_dispute_filed(
        self,
        dispute: Dispute,
        evaluation: Evaluation,
    ) -> Notification:
        """Notify the evaluator and every active QA manager."""
        agent = await self._users.get_by_id(evaluation.agent_id)
        submitter = await self._users.get_by_id(dispute.submitted_by)
        managers = await self._users.list_users(role=Role.QA_MANAGER, active_only=True)
        recipients = [evaluation.evaluator_id] + [m.id for m in managers]

        requested = dispute.requested_score_change
        context = {
            "dispute_id": dispute.id,
            "evaluation_id": evaluation.id,
            "agent_name": _name(agent, evaluation.agent_id),
            "submitter_name": _name(submitter, dispute.submitted_by),
            "reason": dispute.reason,
            "details": dispute.details or "-",
            "score": evaluation.score,
            "max_possible": evaluation.max_possible,
            "requested_score_change": f"{requested:+d}" if requested is not None else "not specified",
        }
        return self._build(
            "dispute_filed",
            recipients,
            templates.DISPUTE_FILED_SUBJECT,
            templates.DISPUTE_FILED_BODY,
            context,
        )

    async def compose_dispute_resolved(
        self,
        dispute: Dispute,
        evaluation: Evaluation,
        score_before: int,
    ) -> Notification:
        """Notify the agent, the submitter if different, and the evaluator."""
        reviewer = await self._users.get_by_id(dispute.reviewed_by or "")
        recipients = [evaluation.agent_id]
        if dispute.submitted_by != evaluation.agent_id:
            recipients.append(dispute.submitted_by)
        recipients.append(evaluation.evaluator_id)

        context = {
            "dispute_id": dispute.id,
            "evaluation_id": evaluation.id,
            "decision": dispute.status.value,
            "reviewer_name": _name(reviewer, dispute.reviewed_by or ""),
            "review_notes": dispute.review_notes,
            "score_before": score_before,
            "score_after": evaluation.score,
            "max_possible": evaluation.max_possible,
        }
        return self._build(
            "dispute_resolved",
            recipients,
            templates.DISPUTE_RESOLVED_SUBJECT,
            templates.DISPUTE_RESOLVED_BODY,
            context,
        )

    # -- internals --

    @staticmethod
    def _build(
        kind: str,
        recipients: list[str],
        subject: str,
        template: str,
        context: dict[str, Any],
    ) -> Notification:
        return Notification(
            kind=kind,
            recipients=recipients,
            subject=render(subject, context),
            template=template,
            context=context,
        )

    def _schedule(self, compose: Callable[[], Awaitable[Notification]]) -> None:
        if not self._enabled:
            return
        task = asyncio.create_task(self._deliver(compose))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, compose: Callable[[], Awaitable[Notification]]) -> None:
        try:
            notification = await compose()
            await self._dispatcher.dispatch(notification)
        except Exception:
            logger.exception("Notification delivery failed")
