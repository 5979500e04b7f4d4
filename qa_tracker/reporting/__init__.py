"""Reporting - pass rate, dispute rate, trends and dashboards."""

from qa_tracker.reporting.aggregations import (
    VALID_PERIODS,
    agent_summary,
    average_percentage,
    dispute_rate,
    group_trend,
    pass_rate,
    period_key,
    score_percentage,
    status_counts,
)
from qa_tracker.reporting.service import StatisticsService

__all__ = [
    "StatisticsService",
    "VALID_PERIODS",
    "agent_summary",
    "average_percentage",
    "dispute_rate",
    "group_trend",
    "pass_rate",
    "period_key",
    "score_percentage",
    "status_counts",
]
