"""Schema definitions for evaluations and their answers.

Maps 1:1 to the ``evaluations`` and ``evaluation_answers`` collections.
An evaluation owns its answers through ``evaluation_id``; its ``score``
and ``max_possible`` are always the totals of those answers, adjusted
only by dispute resolutions.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from qa_tracker.storage.record_store import new_record_id
from qa_tracker.storage.serialization import parse_datetime, to_iso, utc_now


class EvaluationStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    DISPUTED = "Disputed"


VALID_EVALUATION_STATUSES: frozenset[str] = frozenset(s.value for s in EvaluationStatus)


@dataclass
class Answer:
    """A scored answer to one question of an evaluation.

    ``question_text`` is copied from the question at scoring time so the
    answer stays readable after the question is edited or deactivated.
    """

    evaluation_id: str
    question_id: str
    score: int
    max_score: int
    question_text: str = ""
    answer_value: str = ""
    comments: str = ""
    id: str = field(default_factory=lambda: new_record_id("ans"))
    revision: int = 0

    def __post_init__(self) -> None:
        if not (0 <= self.score <= self.max_score):
            raise ValueError(
                f"Invalid score {self.score} for question {self.question_id}. "
                f"Must be between 0 and {self.max_score}."
            )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "evaluation_id": self.evaluation_id,
            "question_id": self.question_id,
            "question_text": self.question_text,
            "answer_value": self.answer_value,
            "score": self.score,
            "max_score": self.max_score,
            "comments": self.comments,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Answer":
        return cls(
            id=record["id"],
            evaluation_id=record["evaluation_id"],
            question_id=record["question_id"],
            question_text=record.get("question_text", ""),
            answer_value=record.get("answer_value", ""),
            score=record.get("score", 0),
            max_score=record.get("max_score", 0),
            comments=record.get("comments", ""),
            revision=record.get("revision", 0),
        )


@dataclass
class Evaluation:
    """A scored assessment of one agent interaction.

    Attributes:
        agent_id: User id of the evaluated agent.
        evaluator_id: User id of the analyst who scored it.
        question_set_id: Template the answers were scored against.
        interaction_type: Channel of the interaction (Call, Chat, Email...).
        score: Total awarded points, 0 <= score <= max_possible.
        max_possible: Total achievable points.
        status: Lifecycle status; Disputed while a dispute is active.
        date: Evaluation date; starts the dispute window.
        customer_id: Optional customer reference.
        interaction_id: Optional reference to the scored interaction.
        strengths: Free-text feedback.
        areas_for_improvement: Free-text feedback.
        comments: Free-text feedback.
        queue_item_id: Audit queue item this evaluation completed, if any.
        id: Identifier (eval_{uuid_hex[:12]}).
        last_updated: Last write time.
        revision: Store revision at read time.
    """

    agent_id: str
    evaluator_id: str
    question_set_id: str
    interaction_type: str
    score: int = 0
    max_possible: int = 0
    status: EvaluationStatus = EvaluationStatus.COMPLETED
    date: datetime = field(default_factory=utc_now)
    customer_id: str = ""
    interaction_id: str = ""
    strengths: str = ""
    areas_for_improvement: str = ""
    comments: str = ""
    queue_item_id: str | None = None
    id: str = field(default_factory=lambda: new_record_id("eval"))
    last_updated: datetime = field(default_factory=utc_now)
    revision: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.status, EvaluationStatus):
            if self.status not in VALID_EVALUATION_STATUSES:
                raise ValueError(
                    f"Invalid status {self.status!r}. "
                    f"Must be one of: {sorted(VALID_EVALUATION_STATUSES)}"
                )
            self.status = EvaluationStatus(self.status)

    @property
    def percentage(self) -> float:
        """Score as a percentage of max_possible, 0.0 when nothing is scorable."""
        if self.max_possible <= 0:
            return 0.0
        return self.score / self.max_possible * 100

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": to_iso(self.date),
            "agent_id": self.agent_id,
            "evaluator_id": self.evaluator_id,
            "question_set_id": self.question_set_id,
            "interaction_type": self.interaction_type,
            "customer_id": self.customer_id,
            "interaction_id": self.interaction_id,
            "score": self.score,
            "max_possible": self.max_possible,
            "status": self.status.value,
            "strengths": self.strengths,
            "areas_for_improvement": self.areas_for_improvement,
            "comments": self.comments,
            "queue_item_id": self.queue_item_id,
            "last_updated": to_iso(self.last_updated),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Evaluation":
        return cls(
            id=record["id"],
            date=parse_datetime(record.get("date")) or utc_now(),
            agent_id=record.get("agent_id", ""),
            evaluator_id=record.get("evaluator_id", ""),
            question_set_id=record.get("question_set_id", ""),
            interaction_type=record.get("interaction_type", ""),
            customer_id=record.get("customer_id", ""),
            interaction_id=record.get("interaction_id", ""),
            score=record.get("score", 0),
            max_possible=record.get("max_possible", 0),
            status=record.get("status", EvaluationStatus.COMPLETED.value),
            strengths=record.get("strengths", ""),
            areas_for_improvement=record.get("areas_for_improvement", ""),
            comments=record.get("comments", ""),
            queue_item_id=record.get("queue_item_id"),
            last_updated=parse_datetime(record.get("last_updated")) or utc_now(),
            revision=record.get("revision", 0),
        )
