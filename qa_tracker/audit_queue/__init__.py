"""Audit queue - interactions waiting to be evaluated."""

from qa_tracker.audit_queue.repository import AuditQueueRepository
from qa_tracker.audit_queue.schemas import VALID_QUEUE_STATUSES, QueueItem, QueueStatus
from qa_tracker.audit_queue.service import AuditQueueService

__all__ = [
    "AuditQueueRepository",
    "AuditQueueService",
    "QueueItem",
    "QueueStatus",
    "VALID_QUEUE_STATUSES",
]
