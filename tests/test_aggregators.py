"""Tests for correctness aggregation and scoring."""

import pytest

from coursegraph.grading import (
    Correctness,
    all_correct_required,
    compute_score,
    count_correctness,
    format_score,
    proportional_correctness,
    worst_case_correctness,
)

C = Correctness


class TestCountCorrectness:
    """Tests for count_correctness()."""

    def test_all_states_present(self):
        counts = count_correctness(["correct", "correct", "incorrect"])
        assert counts[C.CORRECT] == 2
        assert counts[C.INCORRECT] == 1
        assert counts[C.INVALID] == 0
        assert counts["total"] == 3

    def test_rejects_unknown_values(self):
        with pytest.raises(ValueError, match="Invalid correctness"):
            count_correctness(["correct", "maybe"])


class TestWorstCase:
    """Tests for worst_case_correctness()."""

    @pytest.mark.parametrize(
        "values, expected",
        [
            ([], C.UNSUBMITTED),
            (["correct", "correct"], C.CORRECT),
            (["incorrect", "incorrect"], C.INCORRECT),
            (["correct", "incorrect"], C.PARTIALLY_CORRECT),
            (["correct", "partiallyCorrect"], C.PARTIALLY_CORRECT),
            (["incorrect", "partiallyCorrect"], C.INCORRECT),
            (["correct", "submitted"], C.SUBMITTED),
            (["correct", "incomplete", "submitted"], C.INCOMPLETE),
            (["incomplete", "unsubmitted"], C.UNSUBMITTED),
            (["unsubmitted", "invalid", "correct"], C.INVALID),
        ],
    )
    def test_outcomes(self, values, expected):
        assert worst_case_correctness(values) == expected

    def test_accepts_enum_members(self):
        assert worst_case_correctness([C.CORRECT]) == C.CORRECT

    def test_all_correct_required_matches(self):
        values = ["correct", "incorrect"]
        assert all_correct_required(values) == worst_case_correctness(values)

    def test_fails_fast(self):
        with pytest.raises(ValueError):
            worst_case_correctness(["right"])


class TestProportional:
    """Tests for proportional_correctness()."""

    @pytest.mark.parametrize(
        "values, expected",
        [
            ([], C.UNSUBMITTED),
            (["correct"] * 3, C.CORRECT),
            (["incorrect"] * 2, C.INCORRECT),
            (["correct", "incorrect", "incorrect"], C.PARTIALLY_CORRECT),
            (["partiallyCorrect"], C.PARTIALLY_CORRECT),
            (["correct", "submitted"], C.SUBMITTED),
        ],
    )
    def test_outcomes(self, values, expected):
        assert proportional_correctness(values) == expected


class TestScores:
    """Tests for compute_score() and format_score()."""

    def test_compute_score(self):
        score = compute_score(["correct", "partiallyCorrect", "incorrect", "unsubmitted"])
        assert score.score == pytest.approx(1.5 / 4)
        assert score.attempted == 3
        assert score.total == 4

    def test_compute_score_empty(self):
        assert compute_score([]) == (0.0, 0, 0)

    def test_fraction(self):
        assert format_score(["correct", "correct", "incorrect"]) == "2/3"

    def test_percent(self):
        assert format_score(["correct", "correct", "incorrect"], "percent") == "67%"
        assert format_score(["correct", "incorrect"], "percent") == "50%"
        assert format_score(["correct"] + ["incorrect"] * 7, "percent") == "13%"

    def test_percent_empty(self):
        assert format_score([], "percent") == "0%"
        assert format_score([]) == "0/0"

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown score format"):
            format_score(["correct"], "stars")  # type: ignore[arg-type]
