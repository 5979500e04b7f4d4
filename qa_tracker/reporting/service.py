"""Dashboard and trend reporting.

Recomputed from stored records on every call; nothing is cached. Each
report covers only the evaluations visible to the requesting identity.
"""

import logging
from datetime import datetime

from qa_tracker.disputes.repository import DisputeRepository
from qa_tracker.disputes.schemas import Dispute
from qa_tracker.disputes.statistics import dispute_statistics
from qa_tracker.errors import ValidationError
from qa_tracker.evaluations.repository import EvaluationRepository
from qa_tracker.evaluations.schemas import Evaluation
from qa_tracker.evaluations.visibility import scope_for
from qa_tracker.identity.repository import UserRepository
from qa_tracker.identity.schemas import IdentityContext
from qa_tracker.reporting.aggregations import (
    VALID_PERIODS,
    agent_summary,
    average_percentage,
    dispute_rate,
    group_trend,
    pass_rate,
    status_counts,
)
from qa_tracker.results import OperationResult, engine_operation
from qa_tracker.storage.record_store import RecordStore
from qa_tracker.system_settings.service import PASSING_SCORE_PERCENTAGE, SystemSettingsService

logger = logging.getLogger(__name__)

DEFAULT_PASSING_PERCENTAGE = 80


class StatisticsService:
    """Read-side reports over evaluations and disputes."""

    def __init__(self, store: RecordStore, settings: SystemSettingsService) -> None:
        self._settings = settings
        self._evaluations = EvaluationRepository(store)
        self._disputes = DisputeRepository(store)
        self._users = UserRepository(store)

    async def passing_percentage(self) -> int:
        return await self._settings.get_int(PASSING_SCORE_PERCENTAGE, DEFAULT_PASSING_PERCENTAGE)

    async def _visible_data(
        self,
        identity: IdentityContext,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> tuple[list[Evaluation], list[Dispute]]:
        scope = await scope_for(identity, self._users)
        evaluations = scope.filter(await self._evaluations.list_evaluations(
            start_date=start_date, end_date=end_date,
        ))
        ids = {e.id for e in evaluations}
        disputes = [d for d in await self._disputes.list_all() if d.evaluation_id in ids]
        return evaluations, disputes

    @engine_operation("dashboard", "Failed to build dashboard")
    async def dashboard(
        self,
        identity: IdentityContext,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> OperationResult:
        """Headline numbers for the identity's visible evaluations.

        Disputes are those filed against the selected evaluations,
        regardless of their own submission date.
        """
        passing = await self.passing_percentage()
        evaluations, disputes = await self._visible_data(identity, start_date, end_date)

        return OperationResult.ok(
            "Dashboard computed",
            total_evaluations=len(evaluations),
            average_percentage=average_percentage(evaluations),
            passing_score_percentage=passing,
            pass_rate=pass_rate(evaluations, passing),
            dispute_rate=dispute_rate(evaluations, disputes),
            by_status=status_counts(evaluations),
            agents=agent_summary(evaluations, passing),
            disputes=dispute_statistics(disputes),
        )

    @engine_operation("trends", "Failed to compute trends")
    async def trends(
        self,
        identity: IdentityContext,
        period: str = "week",
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> OperationResult:
        if period not in VALID_PERIODS:
            raise ValidationError(
                f"Invalid period {period!r}. Must be one of: {sorted(VALID_PERIODS)}"
            )
        passing = await self.passing_percentage()
        evaluations, disputes = await self._visible_data(identity, start_date, end_date)

        return OperationResult.ok(
            "Trends computed",
            period=period,
            passing_score_percentage=passing,
            buckets=group_trend(evaluations, disputes, period, passing),
        )
