"""Expression commands: parse, evaluate and analyze expressions."""

import json
from pathlib import Path

import typer

from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output
from ...errors import ExpressionEvaluationError, ExpressionSyntaxError
from ...expressions import (
    ast_to_dict,
    create_context,
    evaluate,
    extract_references,
    extract_structured_references,
    parse,
)
from ...grading import default_function_registry

expr_app = typer.Typer(help="Parse, evaluate and analyze expressions")
app.add_typer(expr_app, name="expr")


def _parse_or_exit(expression: str, out: Output):
    try:
        return parse(expression)
    except ExpressionSyntaxError as e:
        out.error(
            e.message,
            category="syntax_error",
            location=f"offset {e.offset}",
            exit_code=ExitCode.SYNTAX_ERROR,
        )
        out.set_data("offset", e.offset)
        out.raw(f"  {e.source}\n  {' ' * e.offset}^")
        raise typer.Exit(out.finish())


def _load_context_data(context: str | None, out: Output) -> dict:
    """Context data from a JSON file path or an inline JSON object."""
    if not context:
        return {}
    try:
        if context.lstrip().startswith("{"):
            data = json.loads(context)
        else:
            path = Path(context)
            if not path.exists():
                out.error(f"File not found: {path}", exit_code=ExitCode.FILE_NOT_FOUND)
                raise typer.Exit(out.finish())
            data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        out.error(
            f"Invalid context JSON: {e}",
            suggestion="Pass a JSON file path or an inline JSON object",
        )
        raise typer.Exit(out.finish())
    if not isinstance(data, dict):
        out.error("Context must be a JSON object")
        raise typer.Exit(out.finish())
    return data


@expr_app.command("parse")
def parse_command(
    expression: str = typer.Argument(..., help="Expression source"),
):
    """Parse an expression and print its syntax tree.

    EXIT CODES:
        0 = Success
        4 = Syntax error

    EXAMPLES:
        coursegraph expr parse "@q.correct === correctness.correct"
    """
    out = Output(console=console, json_mode=get_json_mode())
    ast = _parse_or_exit(expression, out)
    tree = ast_to_dict(ast)
    out.success("Parsed expression", ast=tree)
    out.raw(json.dumps(tree, indent=2, default=str))
    raise typer.Exit(out.finish())


@expr_app.command("eval")
def eval_command(
    expression: str = typer.Argument(..., help="Expression source"),
    context: str | None = typer.Option(
        None,
        "--context",
        "-c",
        help="JSON file or inline JSON with component_state, static_content, global_vars",
    ),
):
    """Evaluate an expression against a context.

    EXIT CODES:
        0 = Success
        1 = Invalid context
        4 = Syntax error
        5 = Evaluation error

    EXAMPLES:
        coursegraph expr eval "1 + 2 * 3"
        coursegraph expr eval "@q.correct === correctness.correct" \\
            --context '{"component_state": {"q": {"correct": "correct"}}}'
    """
    out = Output(console=console, json_mode=get_json_mode())
    ast = _parse_or_exit(expression, out)
    data = _load_context_data(context, out)

    try:
        value = evaluate(ast, create_context(data, functions=default_function_registry()))
    except ExpressionEvaluationError as e:
        out.error(str(e), category="evaluation_error", exit_code=ExitCode.EVALUATION_ERROR)
        raise typer.Exit(out.finish())

    out.set_data("value", value)
    out.raw(json.dumps(value, default=str))
    raise typer.Exit(out.finish())


@expr_app.command("refs")
def refs_command(
    expression: str = typer.Argument(..., help="Expression source"),
):
    """List the @, # and $ references an expression reads.

    EXAMPLES:
        coursegraph expr refs "@a.value + @b.value > $threshold"
    """
    out = Output(console=console, json_mode=get_json_mode())
    _parse_or_exit(expression, out)

    refs = extract_references(expression)
    structured = extract_structured_references(expression)
    out.set_data("component_state", structured.component_state)
    out.set_data("static_content", structured.static_content)
    out.set_data("global_vars", structured.global_vars)

    if not refs:
        out.text("[dim]No references[/dim]")
    else:
        out.table(
            "References",
            ["Reference", "Fields"],
            [[f"{r.sigil}{r.id}", ".".join(r.fields)] for r in refs],
        )
    raise typer.Exit(out.finish())
