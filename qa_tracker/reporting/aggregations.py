"""Pure aggregation functions over evaluations and disputes.

Every function here is side-effect free and recomputed on demand.
Rates are percentages rounded to one decimal.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Literal

from qa_tracker.disputes.schemas import Dispute
from qa_tracker.evaluations.schemas import Evaluation, EvaluationStatus

Period = Literal["week", "month"]
VALID_PERIODS: frozenset[str] = frozenset({"week", "month"})


def score_percentage(evaluation: Evaluation) -> float:
    """Score as a percentage of max_possible (0.0 when max_possible is 0)."""
    if evaluation.max_possible <= 0:
        return 0.0
    return evaluation.score / evaluation.max_possible * 100


def pass_rate(evaluations: Sequence[Evaluation], passing_pct: float) -> float:
    """Share of evaluations scoring at or above ``passing_pct``."""
    if not evaluations:
        return 0.0
    passed = sum(1 for e in evaluations if score_percentage(e) >= passing_pct)
    return round(passed / len(evaluations) * 100, 1)


def average_percentage(evaluations: Sequence[Evaluation]) -> float:
    if not evaluations:
        return 0.0
    return round(sum(score_percentage(e) for e in evaluations) / len(evaluations), 1)


def dispute_rate(evaluations: Sequence[Evaluation], disputes: Iterable[Dispute]) -> float:
    """Share of evaluations that were ever disputed or are disputed now."""
    if not evaluations:
        return 0.0
    disputed_ids = {d.evaluation_id for d in disputes}
    disputed = sum(
        1 for e in evaluations
        if e.id in disputed_ids or e.status == EvaluationStatus.DISPUTED
    )
    return round(disputed / len(evaluations) * 100, 1)


def period_key(moment: datetime, period: Period) -> str:
    """Bucket key: ISO week ``YYYY-Www`` or month ``YYYY-MM``."""
    if period == "week":
        iso_year, iso_week, _ = moment.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if period == "month":
        return f"{moment.year}-{moment.month:02d}"
    raise ValueError(f"Invalid period {period!r}. Must be one of: {sorted(VALID_PERIODS)}")


def group_trend(
    evaluations: Sequence[Evaluation],
    disputes: Iterable[Dispute],
    period: Period = "week",
    passing_pct: float = 80.0,
) -> list[dict[str, Any]]:
    """Bucket evaluations by date and disputes by submission date.

    Returns:
        One entry per bucket, ascending by key, with ``period``,
        ``evaluations``, ``average_percentage``, ``pass_rate`` and
        ``disputes``.
    """
    evaluation_buckets: dict[str, list[Evaluation]] = defaultdict(list)
    for evaluation in evaluations:
        evaluation_buckets[period_key(evaluation.date, period)].append(evaluation)

    dispute_counts: dict[str, int] = defaultdict(int)
    for dispute in disputes:
        dispute_counts[period_key(dispute.submission_date, period)] += 1

    trend = []
    for key in sorted(set(evaluation_buckets) | set(dispute_counts)):
        bucket = evaluation_buckets.get(key, [])
        trend.append({
            "period": key,
            "evaluations": len(bucket),
            "average_percentage": average_percentage(bucket),
            "pass_rate": pass_rate(bucket, passing_pct),
            "disputes": dispute_counts.get(key, 0),
        })
    return trend


def agent_summary(
    evaluations: Sequence[Evaluation],
    passing_pct: float = 80.0,
) -> list[dict[str, Any]]:
    """Per-agent evaluation count, average percentage and pass rate."""
    by_agent: dict[str, list[Evaluation]] = defaultdict(list)
    for evaluation in evaluations:
        by_agent[evaluation.agent_id].append(evaluation)

    return [
        {
            "agent_id": agent_id,
            "evaluations": len(items),
            "average_percentage": average_percentage(items),
            "pass_rate": pass_rate(items, passing_pct),
        }
        for agent_id, items in sorted(by_agent.items())
    ]


def status_counts(evaluations: Iterable[Evaluation]) -> dict[str, int]:
    """Evaluation counts per status, zero-filled."""
    counts = {status.value: 0 for status in EvaluationStatus}
    for evaluation in evaluations:
        counts[evaluation.status.value] += 1
    return counts
