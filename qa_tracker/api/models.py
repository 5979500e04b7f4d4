"""
Request and response models for the QA tracker API.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from qa_tracker.audit_queue.schemas import QueueStatus
from qa_tracker.disputes.schemas import DisputeStatus
from qa_tracker.evaluations.schemas import EvaluationStatus
from qa_tracker.identity.schemas import Role
from qa_tracker.question_sets.schemas import QuestionType


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str | None = Field(
        default=None,
        description="Error category (permission_denied, not_found, conflict, ...)",
    )


class ComponentHealth(BaseModel):
    """Health status of an individual component."""

    status: str = Field(..., description="Component status: healthy, degraded or unhealthy")
    latency_ms: float | None = Field(default=None, description="Check latency")
    details: dict[str, Any] | None = Field(default=None, description="Extra details")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Overall status: healthy, degraded or unhealthy")
    store_backend: str = Field(..., description="Record store backend in use")
    notifications_enabled: bool = Field(default=False)
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    version: str = Field(default="0.1.0")


class OperationResponse(BaseModel):
    """Outcome of a write or computed report."""

    success: bool = Field(..., description="Whether the operation committed")
    message: str = Field(..., description="Human-readable result message")
    data: dict[str, Any] = Field(default_factory=dict, description="Operation payload")
    latency_ms: float = Field(..., description="Processing latency in milliseconds")


# ── Items ──────────────────────────────────────────────


class _ItemModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserItem(_ItemModel):
    id: str
    name: str
    role: Role
    department: str = ""
    manager_id: str | None = None
    active: bool = True
    created_at: datetime


class QuestionItem(_ItemModel):
    id: str
    question_set_id: str
    text: str
    type: QuestionType
    weight: int
    possible_score: int
    critical: bool = False
    options: list[str] = Field(default_factory=list)
    help_text: str = ""
    active: bool = True


class QuestionSetItem(_ItemModel):
    id: str
    name: str
    description: str = ""
    interaction_type: str
    active: bool = True
    created_by: str | None = None
    last_modified: datetime


class AnswerItem(_ItemModel):
    id: str
    question_id: str
    question_text: str = ""
    answer_value: str = ""
    score: int
    max_score: int
    comments: str = ""


class EvaluationItem(_ItemModel):
    id: str
    date: datetime
    agent_id: str
    evaluator_id: str
    question_set_id: str
    interaction_type: str
    customer_id: str = ""
    interaction_id: str = ""
    score: int
    max_possible: int
    percentage: float
    status: EvaluationStatus
    strengths: str = ""
    areas_for_improvement: str = ""
    comments: str = ""
    queue_item_id: str | None = None
    last_updated: datetime


class DisputeItem(_ItemModel):
    id: str
    evaluation_id: str
    submitted_by: str
    submission_date: datetime
    reason: str
    details: str = ""
    additional_evidence: str = ""
    requested_score_change: int | None = None
    status: DisputeStatus
    reviewed_by: str | None = None
    review_date: datetime | None = None
    review_notes: str = ""
    score_adjustment: int = 0


class ResolutionItem(_ItemModel):
    id: str
    dispute_id: str
    resolution_date: datetime
    resolved_by: str
    decision: DisputeStatus
    review_notes: str
    score_before: int
    score_after: int


class SettingItem(_ItemModel):
    key: str
    value: str
    description: str = ""
    updated_by: str | None = None
    updated_at: datetime


class AuditQueueItem(_ItemModel):
    id: str
    agent_id: str
    interaction_id: str
    interaction_type: str
    customer_id: str = ""
    interaction_date: datetime | None = None
    assigned_to: str | None = None
    status: QueueStatus
    evaluation_id: str | None = None
    created_at: datetime


# ── Requests ───────────────────────────────────────────


class AnswerInput(BaseModel):
    """One scored answer; max_score defaults to the question's possible score."""

    question_id: str = Field(..., description="Question being answered")
    score: int = Field(..., description="Awarded points")
    max_score: int | None = Field(default=None, description="Achievable points")
    answer_value: str = Field(default="", description="Recorded answer")
    comments: str = Field(default="", description="Evaluator comment")


class EvaluationCreateRequest(BaseModel):
    """Request model for scoring an interaction."""

    agent_id: str = Field(..., description="Evaluated agent (email)")
    question_set_id: str = Field(..., description="Question set the answers belong to")
    interaction_type: str = Field(..., description="Call, Chat, Email, ...")
    date: datetime | None = Field(default=None, description="Evaluation date, now if omitted")
    customer_id: str = ""
    interaction_id: str = ""
    strengths: str = ""
    areas_for_improvement: str = ""
    comments: str = ""
    queue_item_id: str | None = Field(default=None, description="Audit queue item to complete")
    answers: list[AnswerInput] = Field(default_factory=list)
    notify: bool = Field(default=True, description="Notify the agent and their manager")


class EvaluationUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    strengths: str | None = None
    areas_for_improvement: str | None = None
    comments: str | None = None
    status: EvaluationStatus | None = None
    answers: list[AnswerInput] | None = None


class DisputeCreateRequest(BaseModel):
    """Request model for filing a dispute."""

    evaluation_id: str = Field(..., description="Evaluation being disputed")
    reason: str = Field(..., description="Reason category")
    details: str = ""
    additional_evidence: str = ""
    requested_score_change: int | None = None


class DisputeUpdateRequest(BaseModel):
    """Partial update of a pending dispute."""

    reason: str | None = None
    details: str | None = None
    additional_evidence: str | None = None
    requested_score_change: int | None = None


class DisputeReviewRequest(BaseModel):
    """Resolution decision for an active dispute."""

    status: str = Field(..., description="Approved, PartiallyApproved or Rejected")
    review_notes: str = Field(..., description="Reviewer notes, required")
    score_adjustment: int = Field(default=0, description="Signed points to apply")


class QuestionInput(BaseModel):
    text: str
    type: QuestionType = QuestionType.YES_NO
    weight: int = 1
    possible_score: int = 1
    critical: bool = False
    options: list[str] = Field(default_factory=list)
    help_text: str = ""


class QuestionUpdateRequest(BaseModel):
    text: str | None = None
    type: QuestionType | None = None
    weight: int | None = None
    possible_score: int | None = None
    critical: bool | None = None
    options: list[str] | None = None
    help_text: str | None = None
    active: bool | None = None


class QuestionSetCreateRequest(BaseModel):
    name: str
    interaction_type: str
    description: str = ""
    active: bool = True
    questions: list[QuestionInput] = Field(default_factory=list)


class QuestionSetUpdateRequest(BaseModel):
    name: str | None = None
    interaction_type: str | None = None
    description: str | None = None
    active: bool | None = None


class UserCreateRequest(BaseModel):
    email: str = Field(..., description="Email address, used as the user id")
    name: str
    role: Role
    department: str = ""
    manager_id: str | None = None
    active: bool = True


class UserUpdateRequest(BaseModel):
    name: str | None = None
    role: Role | None = None
    department: str | None = None
    manager_id: str | None = None
    active: bool | None = None


class SettingUpdateRequest(BaseModel):
    value: str | int = Field(..., description="New value")
    description: str | None = None


class QueueItemCreateRequest(BaseModel):
    agent_id: str
    interaction_id: str
    interaction_type: str
    customer_id: str = ""
    interaction_date: datetime | None = None


class QueueAssignRequest(BaseModel):
    assignee_id: str = Field(..., description="QA analyst or QA manager to assign")


# ── Responses ──────────────────────────────────────────


class EvaluationListResponse(BaseModel):
    evaluations: list[EvaluationItem]
    total: int
    latency_ms: float


class EvaluationDetailResponse(BaseModel):
    evaluation: EvaluationItem
    answers: list[AnswerItem]
    disputes: list[DisputeItem]
    latency_ms: float


class DisputeListResponse(BaseModel):
    disputes: list[DisputeItem]
    total: int
    latency_ms: float


class DisputeDetailResponse(BaseModel):
    dispute: DisputeItem
    evaluation: EvaluationItem | None = None
    resolution: ResolutionItem | None = None
    latency_ms: float


class DisputeStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    approval_rate: float
    by_reason: dict[str, int]
    by_submitter: dict[str, int]
    average_adjustment: float
    latency_ms: float


class QuestionSetListResponse(BaseModel):
    question_sets: list[QuestionSetItem]
    total: int
    latency_ms: float


class QuestionSetDetailResponse(BaseModel):
    question_set: QuestionSetItem
    questions: list[QuestionItem]
    latency_ms: float


class UserListResponse(BaseModel):
    users: list[UserItem]
    total: int
    latency_ms: float


class SettingListResponse(BaseModel):
    settings: list[SettingItem]
    total: int
    latency_ms: float


class AuditQueueListResponse(BaseModel):
    items: list[AuditQueueItem]
    total: int
    latency_ms: float
