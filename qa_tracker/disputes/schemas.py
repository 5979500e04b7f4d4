"""Schema definitions for disputes and dispute resolutions.

Maps 1:1 to the ``disputes`` and ``dispute_resolutions`` collections.
A dispute challenges one evaluation's score; at most one dispute per
evaluation may be active (Pending or InProgress) at a time. Each review
appends exactly one immutable resolution.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from qa_tracker.storage.record_store import new_record_id
from qa_tracker.storage.serialization import parse_datetime, to_iso, utc_now


class DisputeStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    APPROVED = "Approved"
    PARTIALLY_APPROVED = "PartiallyApproved"
    REJECTED = "Rejected"


VALID_DISPUTE_STATUSES: frozenset[str] = frozenset(s.value for s in DisputeStatus)

ACTIVE_STATUSES: frozenset[DisputeStatus] = frozenset({
    DisputeStatus.PENDING,
    DisputeStatus.IN_PROGRESS,
})

# Decisions a reviewer may record
DECISIONS: frozenset[DisputeStatus] = frozenset({
    DisputeStatus.APPROVED,
    DisputeStatus.PARTIALLY_APPROVED,
    DisputeStatus.REJECTED,
})

# Decisions that apply the score adjustment
ADJUSTING_DECISIONS: frozenset[DisputeStatus] = frozenset({
    DisputeStatus.APPROVED,
    DisputeStatus.PARTIALLY_APPROVED,
})


@dataclass
class Dispute:
    """A formal challenge to an evaluation's score.

    Attributes:
        evaluation_id: Evaluation being disputed.
        submitted_by: User id of the submitter (an agent manager).
        reason: Short reason category, required.
        details: Free-text explanation.
        additional_evidence: Free-text evidence or links.
        requested_score_change: Signed points the submitter asks for.
        status: Lifecycle status.
        reviewed_by: Reviewer user id once resolved.
        review_date: Resolution time.
        review_notes: Reviewer notes once resolved.
        score_adjustment: Signed adjustment applied; 0 unless approved.
        id: Identifier (disp_{uuid_hex[:12]}).
        submission_date: When the dispute was filed.
        revision: Store revision at read time.
    """

    evaluation_id: str
    submitted_by: str
    reason: str
    details: str = ""
    additional_evidence: str = ""
    requested_score_change: int | None = None
    status: DisputeStatus = DisputeStatus.PENDING
    reviewed_by: str | None = None
    review_date: datetime | None = None
    review_notes: str = ""
    score_adjustment: int = 0
    id: str = field(default_factory=lambda: new_record_id("disp"))
    submission_date: datetime = field(default_factory=utc_now)
    revision: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.status, DisputeStatus):
            if self.status not in VALID_DISPUTE_STATUSES:
                raise ValueError(
                    f"Invalid status {self.status!r}. "
                    f"Must be one of: {sorted(VALID_DISPUTE_STATUSES)}"
                )
            self.status = DisputeStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "evaluation_id": self.evaluation_id,
            "submitted_by": self.submitted_by,
            "submission_date": to_iso(self.submission_date),
            "reason": self.reason,
            "details": self.details,
            "additional_evidence": self.additional_evidence,
            "requested_score_change": self.requested_score_change,
            "status": self.status.value,
            "reviewed_by": self.reviewed_by,
            "review_date": to_iso(self.review_date),
            "review_notes": self.review_notes,
            "score_adjustment": self.score_adjustment,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Dispute":
        return cls(
            id=record["id"],
            evaluation_id=record["evaluation_id"],
            submitted_by=record.get("submitted_by", ""),
            submission_date=parse_datetime(record.get("submission_date")) or utc_now(),
            reason=record.get("reason", ""),
            details=record.get("details", ""),
            additional_evidence=record.get("additional_evidence", ""),
            requested_score_change=record.get("requested_score_change"),
            status=record.get("status", DisputeStatus.PENDING.value),
            reviewed_by=record.get("reviewed_by"),
            review_date=parse_datetime(record.get("review_date")),
            review_notes=record.get("review_notes", ""),
            score_adjustment=record.get("score_adjustment", 0),
            revision=record.get("revision", 0),
        )


@dataclass(frozen=True)
class DisputeResolution:
    """Immutable audit record of one review decision."""

    dispute_id: str
    resolved_by: str
    decision: DisputeStatus
    review_notes: str
    score_before: int
    score_after: int
    id: str = field(default_factory=lambda: new_record_id("res"))
    resolution_date: datetime = field(default_factory=utc_now)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "dispute_id": self.dispute_id,
            "resolution_date": to_iso(self.resolution_date),
            "resolved_by": self.resolved_by,
            "decision": DisputeStatus(self.decision).value,
            "review_notes": self.review_notes,
            "score_before": self.score_before,
            "score_after": self.score_after,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "DisputeResolution":
        return cls(
            id=record["id"],
            dispute_id=record["dispute_id"],
            resolution_date=parse_datetime(record.get("resolution_date")) or utc_now(),
            resolved_by=record.get("resolved_by", ""),
            decision=DisputeStatus(record["decision"]),
            review_notes=record.get("review_notes", ""),
            score_before=record.get("score_before", 0),
            score_after=record.get("score_after", 0),
        )
