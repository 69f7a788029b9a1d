"""Key command: show how a reference resolves under a scope."""

import typer

from ..app import app, console, get_json_mode
from ..utils import Output
from ...config import get_config
from ...errors import MalformedReferenceError, UnsupportedReferenceError
from ...ids import classify, to_canonical_key, to_scoped_state_key


@app.command("key")
def key_command(
    ref: str = typer.Argument(..., help="Reference (foo, ./foo, /foo)"),
    scope: str | None = typer.Option(
        None, "--scope", "-s", help="Current scope (defaults to defaults.scope)"
    ),
):
    """Show the classification, canonical key and scoped state key of a reference.

    EXIT CODES:
        0 = Success
        1 = Malformed or unsupported reference

    EXAMPLES:
        coursegraph key shared --scope list:0     # -> list:0:shared
        coursegraph key /shared --scope list:0    # -> shared
    """
    out = Output(console=console, json_mode=get_json_mode())
    if scope is None:
        scope = get_config().defaults.scope

    try:
        info = classify(ref)
        canonical = to_canonical_key(ref, scope)
        state_key = to_scoped_state_key(ref, scope)
    except MalformedReferenceError as e:
        out.error(str(e), location=ref, category="malformed_reference")
        raise typer.Exit(out.finish())
    except UnsupportedReferenceError as e:
        out.error(
            str(e),
            location=ref,
            category="unsupported_reference",
            suggestion="Use a relative (foo) or absolute (/foo) reference",
        )
        raise typer.Exit(out.finish())

    out.success(
        f"{ref} ({info.kind.value})",
        reference=ref,
        kind=info.kind.value,
        scope=scope,
        canonical_key=canonical,
        state_key=state_key,
    )
    out.text(f"  scope         = {scope or '[dim](root)[/dim]'}")
    out.text(f"  canonical key = {canonical}")
    out.text(f"  state key     = {state_key}")
    raise typer.Exit(out.finish())
