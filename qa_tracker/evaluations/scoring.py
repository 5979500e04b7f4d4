"""Score arithmetic for evaluations.

Scores are unweighted sums: an evaluation's ``score`` is the sum of its
answers' scores and ``max_possible`` the sum of their ``max_score``.
Question weights are informational and do not enter the totals.
"""

from collections.abc import Iterable

from qa_tracker.evaluations.schemas import Answer


def total_scores(answers: Iterable[Answer]) -> tuple[int, int]:
    """Return ``(score, max_possible)`` for a set of answers."""
    score = 0
    max_possible = 0
    for answer in answers:
        score += answer.score
        max_possible += answer.max_score
    return score, max_possible


def apply_adjustment(score: int, adjustment: int, max_possible: int) -> int:
    """Add a signed adjustment and clamp the result to ``[0, max_possible]``."""
    return max(0, min(max_possible, score + adjustment))


def percentage(score: int, max_possible: int) -> float:
    if max_possible <= 0:
        return 0.0
    return score / max_possible * 100


def parse_int(value: object, field_name: str) -> int:
    """Coerce an integer-valued input, rejecting bools, fractions and text.

    Raises:
        ValueError: If the value is not a whole number.
    """
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValueError(f"{field_name} must be a whole number")
