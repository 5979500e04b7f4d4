"""Aggregate statistics over disputes."""

from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from qa_tracker.disputes.schemas import ADJUSTING_DECISIONS, Dispute, DisputeStatus
from qa_tracker.storage.serialization import parse_datetime, window_end


def in_window(
    moment: datetime,
    start_date: datetime | None,
    end_date: datetime | None,
) -> bool:
    """Inclusive date-window check; open ends are unbounded.

    Naive bounds are taken as UTC. A date-only end bound includes that
    whole day.
    """
    start_date = parse_datetime(start_date)
    end_limit = window_end(end_date)
    if start_date is not None and moment < start_date:
        return False
    if end_limit is not None and moment >= end_limit:
        return False
    return True


def approval_rate(disputes: Iterable[Dispute]) -> float:
    """Approved and partially approved share of resolved disputes.

    Returns:
        Percentage rounded to one decimal, 0.0 when nothing is resolved.
    """
    approved = rejected = 0
    for dispute in disputes:
        if dispute.status in ADJUSTING_DECISIONS:
            approved += 1
        elif dispute.status == DisputeStatus.REJECTED:
            rejected += 1
    resolved = approved + rejected
    if resolved == 0:
        return 0.0
    return round(approved / resolved * 100, 1)


def dispute_statistics(
    disputes: Iterable[Dispute],
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict[str, Any]:
    """Summarize disputes submitted within an optional window.

    Returns:
        Dict with ``total``, zero-filled ``by_status``, ``approval_rate``,
        ``by_reason``, ``by_submitter`` and ``average_adjustment`` (mean
        adjustment of approved and partially approved disputes).
    """
    selected = [
        d for d in disputes
        if in_window(d.submission_date, start_date, end_date)
    ]

    by_status = {status.value: 0 for status in DisputeStatus}
    for dispute in selected:
        by_status[dispute.status.value] += 1

    adjustments = [d.score_adjustment for d in selected if d.status in ADJUSTING_DECISIONS]
    average_adjustment = round(sum(adjustments) / len(adjustments), 1) if adjustments else 0.0

    return {
        "total": len(selected),
        "by_status": by_status,
        "approval_rate": approval_rate(selected),
        "by_reason": dict(Counter(d.reason for d in selected).most_common()),
        "by_submitter": dict(Counter(d.submitted_by for d in selected).most_common()),
        "average_adjustment": average_adjustment,
    }
