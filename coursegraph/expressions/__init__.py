"""Expression language for conditions and grading.

Public surface:
    parse / try_parse / parse_result   source -> AST
    evaluate                           AST + context -> value
    create_context                     build an evaluation context
    FunctionRegistry                   named pure functions for expressions
"""

from .evaluator import ExpressionContext, create_context, evaluate, to_text
from .functions import MATH, OBJECT, FunctionRegistry, wordcount
from .nodes import to_dict as ast_to_dict
from .parser import ParseResult, parse, parse_result, try_parse
from .references import (
    Interpolation,
    Reference,
    References,
    extract_and_merge,
    extract_interpolations,
    extract_references,
    extract_structured_references,
    interpolate,
    merge_references,
)

__all__ = [
    "ExpressionContext",
    "create_context",
    "evaluate",
    "to_text",
    "MATH",
    "OBJECT",
    "FunctionRegistry",
    "wordcount",
    "ast_to_dict",
    "ParseResult",
    "parse",
    "parse_result",
    "try_parse",
    "Interpolation",
    "Reference",
    "References",
    "extract_and_merge",
    "extract_interpolations",
    "extract_references",
    "extract_structured_references",
    "interpolate",
    "merge_references",
]
