"""Grading consumer: status vocabularies, aggregation, matching and gates."""

from ..core.status import (
    COMPLETION_PRIORITY,
    CORRECTNESS_PRIORITY,
    Completion,
    Correctness,
    should_show,
    validate_completion,
    validate_correctness,
)
from .aggregators import (
    Score,
    all_correct_required,
    compute_score,
    count_correctness,
    format_score,
    proportional_correctness,
    worst_case_correctness,
)
from .gating import (
    build_context,
    default_function_registry,
    evaluate_gate,
    grade_target,
)
from .matching import (
    MatchResult,
    MatchState,
    NumericRange,
    grade_match,
    numerical_match,
    parse_complex,
    parse_range,
    parse_tolerance,
    string_match,
)

__all__ = [
    "COMPLETION_PRIORITY",
    "CORRECTNESS_PRIORITY",
    "Completion",
    "Correctness",
    "should_show",
    "validate_completion",
    "validate_correctness",
    "Score",
    "all_correct_required",
    "compute_score",
    "count_correctness",
    "format_score",
    "proportional_correctness",
    "worst_case_correctness",
    "build_context",
    "default_function_registry",
    "evaluate_gate",
    "grade_target",
    "MatchResult",
    "MatchState",
    "NumericRange",
    "grade_match",
    "numerical_match",
    "parse_complex",
    "parse_range",
    "parse_tolerance",
    "string_match",
]
