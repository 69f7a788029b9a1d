"""Correctness aggregation strategies.

Different contexts combine per-item results differently:

- worst_case_correctness: any failure blocks (prerequisite checks)
- all_correct_required: mastery gating, same ordering as worst case
- proportional_correctness: partial credit for mixed results

All strategies fail fast on values outside the correctness vocabulary.
"""

from collections import Counter
from collections.abc import Iterable
from typing import Literal, NamedTuple

from ..core.status import Correctness, validate_correctness

PARTIAL_CREDIT = 0.5

# States that mean "not graded yet", checked worst first
_BLOCKING = (
    Correctness.INVALID,
    Correctness.UNSUBMITTED,
    Correctness.INCOMPLETE,
    Correctness.SUBMITTED,
)


class Score(NamedTuple):
    score: float  # 0..1
    attempted: int
    total: int


def count_correctness(values: Iterable[str]) -> Counter:
    """Count each correctness state; every state is present, plus ``total``.

    Raises:
        ValueError: On a value outside the vocabulary
    """
    counts: Counter = Counter({c: 0 for c in Correctness})
    total = 0
    for value in values:
        counts[validate_correctness(value)] += 1
        total += 1
    counts["total"] = total
    return counts


def _first_blocking(counts: Counter) -> Correctness | None:
    for state in _BLOCKING:
        if counts[state]:
            return state
    return None


def worst_case_correctness(values: Iterable[str]) -> Correctness:
    """The worst state present; a mix of correct and incorrect is partial.

    An empty input is unsubmitted.
    """
    counts = count_correctness(values)
    if not counts["total"]:
        return Correctness.UNSUBMITTED
    if blocking := _first_blocking(counts):
        return blocking
    if counts[Correctness.INCORRECT]:
        if counts[Correctness.CORRECT]:
            return Correctness.PARTIALLY_CORRECT
        return Correctness.INCORRECT
    if counts[Correctness.PARTIALLY_CORRECT]:
        return Correctness.PARTIALLY_CORRECT
    return Correctness.CORRECT


all_correct_required = worst_case_correctness


def proportional_correctness(values: Iterable[str]) -> Correctness:
    """Correct if all correct, incorrect if all incorrect, otherwise partial."""
    counts = count_correctness(values)
    total = counts["total"]
    if not total:
        return Correctness.UNSUBMITTED
    if blocking := _first_blocking(counts):
        return blocking
    if counts[Correctness.CORRECT] == total:
        return Correctness.CORRECT
    if counts[Correctness.INCORRECT] == total:
        return Correctness.INCORRECT
    return Correctness.PARTIALLY_CORRECT


def compute_score(values: Iterable[str]) -> Score:
    """Numeric score in [0, 1].

    Correct counts 1, partially correct counts PARTIAL_CREDIT. Only correct,
    partially correct and incorrect items count as attempted.
    """
    counts = count_correctness(values)
    total = counts["total"]
    correct = counts[Correctness.CORRECT]
    partial = counts[Correctness.PARTIALLY_CORRECT]
    attempted = correct + partial + counts[Correctness.INCORRECT]
    raw = correct + partial * PARTIAL_CREDIT
    return Score(score=raw / total if total else 0.0, attempted=attempted, total=total)


def format_score(
    values: Iterable[str], format: Literal["fraction", "percent"] = "fraction"
) -> str:
    """Display form of the correct count: ``"2/3"`` or ``"67%"``."""
    counts = count_correctness(values)
    total = counts["total"]
    correct = counts[Correctness.CORRECT]
    if format == "percent":
        pct = int(correct / total * 100 + 0.5) if total else 0
        return f"{pct}%"
    if format != "fraction":
        raise ValueError(f"Unknown score format {format!r}, expected fraction or percent")
    return f"{correct}/{total}"
