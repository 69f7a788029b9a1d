"""Correctness and completion: two orthogonal status vocabularies.

CORRECTNESS answers "did you get it right?", COMPLETION answers "did you
finish it?". A learner can finish without passing (quiz done, 40%) or pass
without finishing (waived), so the two are tracked separately.

Values are camelCase strings because they are used verbatim in expressions:

    @q.correct === correctness.correct
"""

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType


# =============================================================================
# Correctness
# =============================================================================


class Correctness(str, Enum):
    """Grading outcome of a response."""

    UNSUBMITTED = "unsubmitted"  # no submission yet
    SUBMITTED = "submitted"  # awaiting grading
    CORRECT = "correct"
    PARTIALLY_CORRECT = "partiallyCorrect"
    INCORRECT = "incorrect"
    INCOMPLETE = "incomplete"  # e.g. 1 of 3 blanks filled
    INVALID = "invalid"  # malformed input ("hello" in a numeric field)


# Lower = worse; used by worst-case aggregation
CORRECTNESS_PRIORITY: Mapping[Correctness, int] = MappingProxyType(
    {
        Correctness.INVALID: 0,
        Correctness.UNSUBMITTED: 1,
        Correctness.INCOMPLETE: 2,
        Correctness.SUBMITTED: 3,
        Correctness.INCORRECT: 4,
        Correctness.PARTIALLY_CORRECT: 5,
        Correctness.CORRECT: 6,
    }
)


# =============================================================================
# Completion
# =============================================================================


class Completion(str, Enum):
    """Progress through an activity."""

    NOT_STARTED = "notStarted"
    IN_PROGRESS = "inProgress"
    DONE = "done"
    SKIPPED = "skipped"  # explicitly bypassed
    CLOSED = "closed"  # deadline passed or attempts exhausted


# Lower = less complete
COMPLETION_PRIORITY: Mapping[Completion, int] = MappingProxyType(
    {
        Completion.NOT_STARTED: 0,
        Completion.SKIPPED: 1,
        Completion.IN_PROGRESS: 2,
        Completion.CLOSED: 3,
        Completion.DONE: 4,
    }
)


# =============================================================================
# Expression vocabularies
# =============================================================================

CORRECTNESS_VOCABULARY: Mapping[str, str] = MappingProxyType(
    {c.value: c.value for c in Correctness}
)
COMPLETION_VOCABULARY: Mapping[str, str] = MappingProxyType(
    {c.value: c.value for c in Completion}
)

# Identifiers that resolve to a status vocabulary inside expressions
ENUMERATIONS: Mapping[str, Mapping[str, str]] = MappingProxyType(
    {"correctness": CORRECTNESS_VOCABULARY, "completion": COMPLETION_VOCABULARY}
)


# =============================================================================
# Validation
# =============================================================================


def validate_correctness(value: object) -> Correctness:
    """Return ``value`` as a Correctness, failing fast on anything else.

    Raises:
        ValueError: Listing the valid values
    """
    try:
        return Correctness(value)
    except ValueError:
        valid = ", ".join(c.value for c in Correctness)
        raise ValueError(
            f"Invalid correctness value: {value!r}. Valid values: {valid}"
        ) from None


def validate_completion(value: object) -> Completion:
    """Return ``value`` as a Completion, failing fast on anything else.

    Raises:
        ValueError: Listing the valid values
    """
    try:
        return Completion(value)
    except ValueError:
        valid = ", ".join(c.value for c in Completion)
        raise ValueError(
            f"Invalid completion value: {value!r}. Valid values: {valid}"
        ) from None


# =============================================================================
# Visibility
# =============================================================================


def _answered(correctness: str | None) -> bool:
    return correctness not in (None, Correctness.UNSUBMITTED, Correctness.INVALID)


VISIBILITY_HANDLERS = MappingProxyType(
    {
        "always": lambda c: True,
        "never": lambda c: False,
        "answered": _answered,
        "attempted": _answered,
        "correct": lambda c: c == Correctness.CORRECT,
    }
)


def should_show(show_when: str, correctness: str | None = None) -> bool:
    """Whether conditional content (explanations, answers) is visible.

    Args:
        show_when: One of always, never, answered, attempted, correct
        correctness: The owning problem's current correctness

    Raises:
        ValueError: If ``show_when`` is not a known option
    """
    handler = VISIBILITY_HANDLERS.get(show_when)
    if handler is None:
        valid = ", ".join(VISIBILITY_HANDLERS)
        raise ValueError(f"Invalid showWhen={show_when!r}. Valid options: {valid}")
    return handler(correctness)
