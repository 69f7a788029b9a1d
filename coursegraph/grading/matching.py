"""Pure match predicates for graders and expressions.

A match function compares learner input with an expected answer and returns
a MatchResult rather than a bare bool, so graders can tell a wrong answer
from malformed or missing input:

    match        input matches
    no_match     valid input, wrong answer
    invalid      input is malformed ("abc" for a number)
    unsubmitted  empty or missing input
"""

import cmath
import logging
import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict

from ..core.status import Correctness

logger = logging.getLogger(__name__)

_RANGE_SHAPE_RE = re.compile(r"^\s*[\[(].*[\])]\s*$")
_RANGE_RE = re.compile(r"^([\[(])\s*([^,]+?)\s*,\s*([^\])]*?)\s*([\])])$")
_BARE_IMAGINARY_RE = re.compile(r"(^|[+-])j")


class MatchState(str, Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    INVALID = "invalid"
    UNSUBMITTED = "unsubmitted"


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: MatchState
    message: str | None = None

    @property
    def matched(self) -> bool:
        return self.state == MatchState.MATCH


MATCH = MatchResult(state=MatchState.MATCH)
NO_MATCH = MatchResult(state=MatchState.NO_MATCH)
UNSUBMITTED = MatchResult(state=MatchState.UNSUBMITTED)


def invalid(message: str) -> MatchResult:
    return MatchResult(state=MatchState.INVALID, message=message)


def _option(options: Mapping[str, Any] | None, name: str, default: Any = None) -> Any:
    if not options:
        return default
    return options.get(name, default)


# =============================================================================
# String matching
# =============================================================================


def string_match(
    input: Any, answer: Any, options: Mapping[str, Any] | None = None
) -> MatchResult:
    """Compare trimmed input with ``answer``.

    Options:
        ignoreCase: Case-insensitive comparison
        regexp: Treat ``answer`` as a regular expression that must match the
            whole input
    """
    student = "" if input is None else str(input).strip()
    expected = "" if answer is None else str(answer)
    if not student:
        return UNSUBMITTED

    ignore_case = _option(options, "ignoreCase") is True
    if _option(options, "regexp") is True:
        try:
            pattern = re.compile(expected, re.IGNORECASE if ignore_case else 0)
        except re.error as e:
            logger.warning("Invalid answer pattern %r: %s", expected, e)
            return invalid("Invalid regular expression pattern")
        return MATCH if pattern.fullmatch(student) else NO_MATCH

    if ignore_case:
        return MATCH if student.lower() == expected.lower() else NO_MATCH
    return MATCH if student == expected else NO_MATCH


# =============================================================================
# Numerical matching
# =============================================================================


class NumericRange(NamedTuple):
    lower: complex
    upper: complex
    lower_inclusive: bool
    upper_inclusive: bool


def parse_complex(value: Any) -> complex:
    """Parse a real or complex number; ``i`` and ``j`` both mark imaginary.

    Unparseable values give ``nan``, never an exception.
    """
    if isinstance(value, complex):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return complex(value, 0)
    if not isinstance(value, str):
        return complex(math.nan, math.nan)
    text = value.strip().replace(" ", "").replace("i", "j").replace("I", "j").replace("J", "j")
    if not text:
        return complex(math.nan, math.nan)
    text = _BARE_IMAGINARY_RE.sub(r"\g<1>1j", text)
    try:
        return complex(text)
    except ValueError:
        return complex(math.nan, math.nan)


def parse_tolerance(tolerance: Any, base: float = 0.0) -> float:
    """Absolute tolerance; ``"N%"`` is N percent of ``base``. ``nan`` if malformed."""
    if tolerance is None or tolerance == "":
        return 0.0
    if isinstance(tolerance, (int, float)) and not isinstance(tolerance, bool):
        return abs(tolerance)
    text = str(tolerance).strip()
    try:
        if text.endswith("%"):
            base = 0.0 if math.isnan(base) else base
            return abs(float(text[:-1]) / 100 * base)
        return abs(float(text))
    except ValueError:
        return math.nan


def parse_range(text: Any) -> NumericRange | None:
    """Parse ``[a, b]``, ``(a, b)`` or a half-open mix; None if not a range."""
    m = _RANGE_RE.match(str(text).strip())
    if not m:
        return None
    return NumericRange(
        lower=parse_complex(m.group(2)),
        upper=parse_complex(m.group(3)),
        lower_inclusive=m.group(1) == "[",
        upper_inclusive=m.group(4) == "]",
    )


def in_range(value: complex, bounds: NumericRange, tolerance: float = 0.0) -> bool:
    if value.imag or bounds.lower.imag or bounds.upper.imag:
        return False
    x, lower, upper = value.real, bounds.lower.real, bounds.upper.real
    below = (x < lower - tolerance) if bounds.lower_inclusive else (x <= lower - tolerance)
    above = (x > upper + tolerance) if bounds.upper_inclusive else (x >= upper + tolerance)
    return not (below or above)


def compare_with_tolerance(student: Any, expected: Any, tolerance: float = 0.0) -> bool:
    s = parse_complex(student)
    e = parse_complex(expected)
    if cmath.isnan(s) or cmath.isnan(e):
        return False
    return abs(s - e) <= tolerance


def numerical_match(
    input: Any, answer: Any, options: Mapping[str, Any] | None = None
) -> MatchResult:
    """Compare a numeric input with an answer value or range.

    Options:
        tolerance: Absolute (``0.1``) or relative to the answer (``"5%"``);
            for ranges a percentage is relative to the range width
    """
    if input is None or str(input).strip() == "":
        return UNSUBMITTED

    student = parse_complex(input)
    if cmath.isnan(student):
        return invalid("Invalid number")

    tolerance_option = _option(options, "tolerance")
    answer_text = str(answer)
    if _RANGE_SHAPE_RE.match(answer_text):
        bounds = parse_range(answer_text)
        if bounds is None or cmath.isnan(bounds.lower) or cmath.isnan(bounds.upper):
            logger.warning("Invalid numeric range %r", answer_text)
            return invalid("Invalid range specification")
        base = abs(bounds.upper.real - bounds.lower.real)
        tolerance = parse_tolerance(tolerance_option, base)
        if math.isnan(tolerance):
            return invalid(f"Invalid tolerance {tolerance_option!r}")
        return MATCH if in_range(student, bounds, tolerance) else NO_MATCH

    expected = parse_complex(answer)
    if cmath.isnan(expected):
        logger.warning("Invalid numeric answer %r", answer)
        return invalid(f"Answer {answer!r} is not a valid number")
    tolerance = parse_tolerance(tolerance_option, abs(expected))
    if math.isnan(tolerance):
        return invalid(f"Invalid tolerance {tolerance_option!r}")
    return MATCH if compare_with_tolerance(student, expected, tolerance) else NO_MATCH


# =============================================================================
# Correctness mapping
# =============================================================================

_CORRECTNESS_FOR_STATE = {
    MatchState.MATCH: Correctness.CORRECT,
    MatchState.NO_MATCH: Correctness.INCORRECT,
    MatchState.INVALID: Correctness.INVALID,
    MatchState.UNSUBMITTED: Correctness.UNSUBMITTED,
}


def grade_match(result: MatchResult) -> Correctness:
    """Map a match outcome onto the correctness vocabulary."""
    return _CORRECTNESS_FOR_STATE[result.state]
