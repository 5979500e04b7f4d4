"""Disputes - challenges to evaluation scores and their resolution.

Components:
- Dispute / DisputeResolution: Typed records with the status model
- DisputeRepository: Persistence for disputes and resolutions
- DisputeService: File, update, review and cancel with invariant checks
- dispute_statistics: Approval rate and grouped counts
"""

from qa_tracker.disputes.config import DisputeConfig
from qa_tracker.disputes.repository import DisputeRepository
from qa_tracker.disputes.schemas import (
    ACTIVE_STATUSES,
    DECISIONS,
    VALID_DISPUTE_STATUSES,
    Dispute,
    DisputeResolution,
    DisputeStatus,
)
from qa_tracker.disputes.service import DisputeService
from qa_tracker.disputes.statistics import approval_rate, dispute_statistics

__all__ = [
    "ACTIVE_STATUSES",
    "DECISIONS",
    "Dispute",
    "DisputeConfig",
    "DisputeRepository",
    "DisputeResolution",
    "DisputeService",
    "DisputeStatus",
    "VALID_DISPUTE_STATUSES",
    "approval_rate",
    "dispute_statistics",
]
