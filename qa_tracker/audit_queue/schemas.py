"""Schema definitions for the audit queue.

Maps 1:1 to the ``audit_queue`` collection. A queue item is an agent
interaction waiting to be evaluated; creating an evaluation for it marks
it Completed and links the evaluation.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from qa_tracker.storage.record_store import new_record_id
from qa_tracker.storage.serialization import parse_datetime, to_iso, utc_now


class QueueStatus(str, enum.Enum):
    PENDING = "Pending"
    ASSIGNED = "Assigned"
    COMPLETED = "Completed"


VALID_QUEUE_STATUSES: frozenset[str] = frozenset(s.value for s in QueueStatus)


@dataclass
class QueueItem:
    """An interaction awaiting evaluation."""

    agent_id: str
    interaction_id: str
    interaction_type: str
    customer_id: str = ""
    interaction_date: datetime | None = None
    assigned_to: str | None = None
    status: QueueStatus = QueueStatus.PENDING
    evaluation_id: str | None = None
    id: str = field(default_factory=lambda: new_record_id("queue"))
    created_at: datetime = field(default_factory=utc_now)
    revision: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.status, QueueStatus):
            if self.status not in VALID_QUEUE_STATUSES:
                raise ValueError(
                    f"Invalid status {self.status!r}. "
                    f"Must be one of: {sorted(VALID_QUEUE_STATUSES)}"
                )
            self.status = QueueStatus(self.status)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "interaction_id": self.interaction_id,
            "interaction_type": self.interaction_type,
            "customer_id": self.customer_id,
            "interaction_date": to_iso(self.interaction_date),
            "assigned_to": self.assigned_to,
            "status": self.status.value,
            "evaluation_id": self.evaluation_id,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "QueueItem":
        return cls(
            id=record["id"],
            agent_id=record.get("agent_id", ""),
            interaction_id=record.get("interaction_id", ""),
            interaction_type=record.get("interaction_type", ""),
            customer_id=record.get("customer_id", ""),
            interaction_date=parse_datetime(record.get("interaction_date")),
            assigned_to=record.get("assigned_to"),
            status=record.get("status", QueueStatus.PENDING.value),
            evaluation_id=record.get("evaluation_id"),
            created_at=parse_datetime(record.get("created_at")) or utc_now(),
            revision=record.get("revision", 0),
        )
