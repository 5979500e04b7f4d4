"""Tests for score arithmetic."""

import pytest

from qa_tracker.evaluations.schemas import Answer
from qa_tracker.evaluations.scoring import apply_adjustment, parse_int, percentage, total_scores


def _answer(score: int, max_score: int) -> Answer:
    return Answer(evaluation_id="eval_1", question_id="q", score=score, max_score=max_score)


class TestTotals:

    def test_unweighted_sum(self):
        assert total_scores([_answer(40, 50), _answer(30, 50), _answer(1, 1)]) == (71, 101)

    def test_empty(self):
        assert total_scores([]) == (0, 0)

    def test_percentage(self):
        assert percentage(70, 100) == 70.0
        assert percentage(5, 0) == 0.0


class TestApplyAdjustment:

    @pytest.mark.parametrize("score,adjustment,max_possible,expected", [
        (70, 10, 100, 80),
        (70, 50, 100, 100),
        (70, -90, 100, 0),
        (70, 0, 100, 70),
        (0, -1, 0, 0),
    ])
    def test_clamped(self, score, adjustment, max_possible, expected):
        assert apply_adjustment(score, adjustment, max_possible) == expected


class TestParseInt:

    @pytest.mark.parametrize("value,expected", [(5, 5), ("7", 7), (" -3 ", -3), (4.0, 4)])
    def test_accepts_whole_numbers(self, value, expected):
        assert parse_int(value, "score") == expected

    @pytest.mark.parametrize("value", [True, False, 2.5, "2.5", "abc", None, [1]])
    def test_rejects_everything_else(self, value):
        with pytest.raises(ValueError, match="score must be a whole number"):
            parse_int(value, "score")
