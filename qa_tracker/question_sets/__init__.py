"""Question sets - scoring templates and their questions.

Components:
- QuestionSet / Question: Typed records for the two collections
- QuestionSetRepository: Persistence and reference counts
- QuestionSetService: QA manager operations with the delete guards
"""

from qa_tracker.question_sets.repository import QuestionSetRepository
from qa_tracker.question_sets.schemas import (
    VALID_QUESTION_TYPES,
    Question,
    QuestionSet,
    QuestionType,
)
from qa_tracker.question_sets.service import QuestionSetService

__all__ = [
    "Question",
    "QuestionSet",
    "QuestionSetRepository",
    "QuestionSetService",
    "QuestionType",
    "VALID_QUESTION_TYPES",
]
