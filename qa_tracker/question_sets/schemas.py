"""Schema definitions for question sets and their questions.

Maps 1:1 to the ``question_sets`` and ``questions`` collections. A
question set is the scoring template an evaluation is filled against;
questions belong to exactly one set through ``question_set_id``.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from qa_tracker.storage.record_store import new_record_id
from qa_tracker.storage.serialization import parse_datetime, to_iso, utc_now


class QuestionType(str, enum.Enum):
    YES_NO = "YesNo"
    MULTIPLE_CHOICE = "MultipleChoice"
    NUMERIC = "Numeric"
    TEXT = "Text"


VALID_QUESTION_TYPES: frozenset[str] = frozenset(t.value for t in QuestionType)


@dataclass
class QuestionSet:
    """A named collection of scoring questions for an interaction type.

    Attributes:
        name: Display name.
        interaction_type: Channel the set applies to (e.g. Call, Chat, Email).
        description: Free text.
        active: Inactive sets stay readable but are hidden from new work.
        created_by: User id of the creator.
        id: Identifier (qset_{uuid_hex[:12]}).
        last_modified: Last write time.
        revision: Store revision at read time.
    """

    name: str
    interaction_type: str
    description: str = ""
    active: bool = True
    created_by: str | None = None
    id: str = field(default_factory=lambda: new_record_id("qset"))
    last_modified: datetime = field(default_factory=utc_now)
    revision: int = 0

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Question set name is required")
        if not self.interaction_type or not self.interaction_type.strip():
            raise ValueError("Interaction type is required")

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "interaction_type": self.interaction_type,
            "active": self.active,
            "created_by": self.created_by,
            "last_modified": to_iso(self.last_modified),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "QuestionSet":
        return cls(
            id=record["id"],
            name=record.get("name", ""),
            description=record.get("description", ""),
            interaction_type=record.get("interaction_type", ""),
            active=record.get("active", True),
            created_by=record.get("created_by"),
            last_modified=parse_datetime(record.get("last_modified")) or utc_now(),
            revision=record.get("revision", 0),
        )


@dataclass
class Question:
    """A single scoring question.

    ``possible_score`` is the default ``max_score`` of an answer to this
    question. Questions referenced by an answer are soft-deleted by
    clearing ``active``.
    """

    question_set_id: str
    text: str
    type: QuestionType = QuestionType.YES_NO
    weight: int = 1
    possible_score: int = 1
    critical: bool = False
    options: list[str] = field(default_factory=list)
    help_text: str = ""
    active: bool = True
    id: str = field(default_factory=lambda: new_record_id("q"))
    revision: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.type, QuestionType):
            if self.type not in VALID_QUESTION_TYPES:
                raise ValueError(
                    f"Invalid question type {self.type!r}. "
                    f"Must be one of: {sorted(VALID_QUESTION_TYPES)}"
                )
            self.type = QuestionType(self.type)
        if not self.text or not self.text.strip():
            raise ValueError("Question text is required")
        if isinstance(self.weight, bool) or not isinstance(self.weight, int) or self.weight < 1:
            raise ValueError(f"Invalid weight {self.weight!r}. Must be a positive integer.")
        if (
            isinstance(self.possible_score, bool)
            or not isinstance(self.possible_score, int)
            or self.possible_score < 0
        ):
            raise ValueError(
                f"Invalid possible_score {self.possible_score!r}. "
                "Must be a non-negative integer."
            )
        if self.type == QuestionType.MULTIPLE_CHOICE and not self.options:
            raise ValueError("Multiple choice questions need at least one option")

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question_set_id": self.question_set_id,
            "text": self.text,
            "type": self.type.value,
            "weight": self.weight,
            "possible_score": self.possible_score,
            "critical": self.critical,
            "options": list(self.options),
            "help_text": self.help_text,
            "active": self.active,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Question":
        return cls(
            id=record["id"],
            question_set_id=record["question_set_id"],
            text=record.get("text", ""),
            type=record.get("type", QuestionType.YES_NO.value),
            weight=record.get("weight", 1),
            possible_score=record.get("possible_score", 1),
            critical=record.get("critical", False),
            options=list(record.get("options") or []),
            help_text=record.get("help_text", ""),
            active=record.get("active", True),
            revision=record.get("revision", 0),
        )
