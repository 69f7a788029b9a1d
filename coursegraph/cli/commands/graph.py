"""Graph commands: validate a content graph and preview its resolution."""

import json
from pathlib import Path
from typing import Any

import typer
import yaml
from rich.markup import escape
from rich.tree import Tree

from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, format_validation_for_json
from ...config import get_config
from ...graph import GraphFormatError, load_graph, validate_graph
from ...render import ComponentRegistry, ComponentSpec, ResolutionEngine, render_tree, repeat_scopes
from ...state import InMemoryStateStore


graph_app = typer.Typer(help="Validate and preview content graphs")
app.add_typer(graph_app, name="graph")


class PermissiveRegistry(ComponentRegistry):
    """Registry accepting every tag as a plain container.

    Tags named in ``repeatable`` render their kids ``count`` times.
    """

    def __init__(self, repeatable: list[str] | None = None):
        super().__init__()
        for tag in dict.fromkeys(repeatable or []):
            self.register(ComponentSpec(tag=tag, child_scopes=repeat_scopes("count")))

    def lookup(self, tag: str) -> ComponentSpec | None:
        spec = super().lookup(tag)
        if spec is None:
            spec = self.register(ComponentSpec(tag=tag))
        return spec


def _resolve_path(path: Path | None, out: Output) -> Path:
    if path is None:
        default = get_config().defaults.graph_path
        if not default:
            out.error(
                "No graph file given",
                suggestion="Pass a file or run: coursegraph config set defaults.graph_path <file>",
                exit_code=ExitCode.FILE_NOT_FOUND,
            )
            raise typer.Exit(out.finish())
        path = Path(default)
    if not path.exists():
        out.error(
            f"File not found: {path}",
            exit_code=ExitCode.FILE_NOT_FOUND,
            suggestion=f"Check the file path: {path.absolute()}",
        )
        raise typer.Exit(out.finish())
    return path


def _load_or_exit(path: Path, out: Output):
    try:
        return load_graph(path)
    except (GraphFormatError, json.JSONDecodeError, yaml.YAMLError) as e:
        out.error(f"Invalid graph file: {e}", category="graph_format")
        raise typer.Exit(out.finish())


@graph_app.command("validate")
def validate_command(
    graph_file: Path | None = typer.Argument(
        None, help="Graph file (.yaml or .json); defaults to defaults.graph_path"
    ),
    tags: list[str] = typer.Option(
        [], "--tag", "-t", help="Known component tag; when given, other tags are warnings (repeatable)"
    ),
    strict: bool = typer.Option(False, "--strict", help="Treat warnings as errors"),
):
    """Check references, ids and cycles in a content graph.

    With --tag, nodes whose tag is not in the list are reported as warnings.

    EXIT CODES:
        0 = Valid graph
        1 = Validation errors
        3 = File not found
    """
    out = Output(console=console, json_mode=get_json_mode())
    path = _resolve_path(graph_file, out)
    store = _load_or_exit(path, out)
    out.success(f"Loaded {len(store)} nodes from {path}", graph_file=str(path), node_count=len(store))

    registry = ComponentRegistry([ComponentSpec(tag=t) for t in dict.fromkeys(tags)]) if tags else None
    result = validate_graph(store, registry)
    if out.json_mode:
        out.set_data("validation", format_validation_for_json(result))

    for issue in result.errors:
        out.error(
            f"{issue.location}: {escape(issue.message)}",
            location=issue.location,
            category=issue.category,
            suggestion=issue.suggestion,
        )
    for issue in result.warnings:
        out.warning(
            f"{issue.location}: {escape(issue.message)}",
            location=issue.location,
            category=issue.category,
            suggestion=issue.suggestion,
        )
    if strict and result.warnings and result.valid:
        out.error(f"{len(result.warnings)} warning(s) treated as errors (--strict)")

    if result.valid and not (strict and result.warnings):
        out.success("Graph is valid")
    raise typer.Exit(out.finish())


def _add_branch(tree: Tree, node: dict[str, Any]) -> None:
    if node["state"] != "fulfilled":
        tree.add(f"[red]{node['state']}[/red] {escape(str(node.get('error', node.get('key', ''))))}")
        return
    if "error" in node:
        err = node["error"]
        tree.add(f"[red]⚠ {err['kind']}[/red] {escape(err['message'])}")
        return
    if "text" in node:
        tree.add(escape(repr(node["text"])))
        return
    if "html" in node:
        branch = tree.add(f"<{node['html']}>")
        for kid in node["kids"]:
            _add_branch(branch, kid)
        return
    if "tag" not in node:
        tree.add(repr(node.get("value")))
        return
    branch = tree.add(f"[bold]{node['tag']}[/bold] {node['key']} [dim]state={node['state_key']}[/dim]")
    for copy in node.get("copies", []):
        copy_branch = branch.add(f"[cyan]copy {copy['scope']}[/cyan]")
        for kid in copy["kids"]:
            _add_branch(copy_branch, kid)
    for kid in node.get("kids", []):
        _add_branch(branch, kid)


@graph_app.command("show")
def show_command(
    graph_file: Path | None = typer.Argument(
        None, help="Graph file (.yaml or .json); defaults to defaults.graph_path"
    ),
    key: str | None = typer.Option(None, "--key", "-k", help="Reference to resolve (default: first node)"),
    scope: str | None = typer.Option(None, "--scope", "-s", help="Scope to resolve in"),
    repeat: list[str] = typer.Option(
        [], "--repeat", "-r", help="Tag rendered 'count' times per instance (repeatable)"
    ),
):
    """Resolve a node and print its instance tree.

    Every tag is accepted as a plain container, so this previews structure
    and scoping rather than component behavior.

    EXIT CODES:
        0 = Resolved
        3 = File not found
        6 = Resolution did not complete

    EXAMPLES:
        coursegraph graph show course.yaml --key intro
        coursegraph graph show course.yaml --key list --repeat List
    """
    out = Output(console=console, json_mode=get_json_mode())
    path = _resolve_path(graph_file, out)
    store = _load_or_exit(path, out)
    if not len(store):
        out.error("Graph has no nodes")
        raise typer.Exit(out.finish())
    if key is None:
        key = next(iter(store.keys()))
    if scope is None:
        scope = get_config().defaults.scope

    engine = ResolutionEngine(store, PermissiveRegistry(repeat), state=InMemoryStateStore())
    handle = engine.resolve(key, scope)
    tree = render_tree(handle)
    out.set_data("tree", tree)

    if not handle.done():
        out.error(
            f"Resolution of {key!r} is still pending",
            exit_code=ExitCode.RESOLUTION_ERROR,
        )
    elif handle.rejected():
        out.error(str(handle.error), exit_code=ExitCode.RESOLUTION_ERROR)
    elif not out.json_mode:
        root = Tree(f"[bold]{path.name}[/bold] → {key} [dim](scope={scope or 'root'})[/dim]")
        _add_branch(root, tree)
        console.print(root)
    raise typer.Exit(out.finish())
