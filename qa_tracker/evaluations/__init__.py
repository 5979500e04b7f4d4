"""Evaluations - scored assessments of agent interactions.

Components:
- Evaluation / Answer: Typed records for evaluations and their answers
- EvaluationRepository: Persistence and filtered queries
- EvaluationService: Create, update, delete and role-scoped reads
- VisibilityScope: Which evaluations an identity may read
"""

from qa_tracker.evaluations.config import EvaluationConfig
from qa_tracker.evaluations.repository import EvaluationRepository
from qa_tracker.evaluations.schemas import (
    VALID_EVALUATION_STATUSES,
    Answer,
    Evaluation,
    EvaluationStatus,
)
from qa_tracker.evaluations.scoring import apply_adjustment, total_scores
from qa_tracker.evaluations.service import EvaluationService
from qa_tracker.evaluations.visibility import VisibilityScope, scope_for

__all__ = [
    "Answer",
    "Evaluation",
    "EvaluationConfig",
    "EvaluationRepository",
    "EvaluationService",
    "EvaluationStatus",
    "VALID_EVALUATION_STATUSES",
    "VisibilityScope",
    "apply_adjustment",
    "scope_for",
    "total_scores",
]
