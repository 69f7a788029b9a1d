"""CLI utilities for dual-mode output (human-friendly + machine-readable).

This module provides utilities for CLI commands to support both:
- Human mode (default): Rich formatting with colors and tables
- Machine mode (--json): Structured JSON output for scripts and tools

Example:
    from ..utils import Output, ExitCode

    @app.command()
    def my_command():
        out = Output(console=console, json_mode=get_json_mode())
        out.success("Loaded graph", path="course.yaml", node_count=12)
        out.table("Nodes", ["Key", "Tag"], [["intro", "Markdown"]])
        raise typer.Exit(out.finish())
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, PrivateAttr
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..core.models import ValidationResult


class ExitCode:
    """Standardized exit codes for CLI commands.

    Scripts can check $? and know exactly what failed:
        0 = Success
        1 = Validation error (invalid graph, reference or config value)
        3 = File not found
        4 = Expression syntax error
        5 = Expression evaluation error
        6 = Resolution error (rejected handle, unresolved node)
    """

    SUCCESS = 0
    VALIDATION_ERROR = 1
    FILE_NOT_FOUND = 3
    SYNTAX_ERROR = 4
    EVALUATION_ERROR = 5
    RESOLUTION_ERROR = 6


class Output(BaseModel):
    """Dual-mode output handler for CLI commands.

    In human mode: Uses Rich for pretty terminal output.
    In JSON mode: Collects structured data and outputs JSON at the end.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    console: Console
    json_mode: bool = False

    _data: dict[str, Any] = PrivateAttr()
    _exit_code: int = PrivateAttr(default=ExitCode.SUCCESS)

    def model_post_init(self, __context: Any) -> None:
        self._data = {
            "status": "success",
            "warnings": [],
            "errors": [],
        }

    def _report(
        self,
        bucket: str,
        marker: str,
        message: str,
        location: str | None,
        category: str | None,
        suggestion: str | None,
    ) -> None:
        if self.json_mode:
            issue = {"message": message, "location": location}
            issue.update(category=category, suggestion=suggestion)
            self._data[bucket].append({k: v for k, v in issue.items() if v})
            return
        where = f" [dim]({escape(location)})[/dim]" if location else ""
        self.console.print(f"{marker} {message}{where}")
        if suggestion:
            self.console.print(f"  [dim]→ {suggestion}[/dim]")

    def success(self, message: str, **data: Any) -> None:
        """Output a success message with optional data."""
        if self.json_mode:
            self._data.update(data)
        else:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(
        self,
        message: str,
        *,
        location: str | None = None,
        category: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        """Record a warning; it never changes the exit code."""
        self._report("warnings", "[yellow]⚠[/yellow]", message, location, category, suggestion)

    def error(
        self,
        message: str,
        *,
        location: str | None = None,
        category: str | None = None,
        suggestion: str | None = None,
        exit_code: int = ExitCode.VALIDATION_ERROR,
    ) -> None:
        """Record an error and remember the exit code to finish with."""
        self._exit_code = exit_code
        self._data["status"] = "error"
        self._report("errors", "[red]✗[/red]", message, location, category, suggestion)

    def text(self, message: str) -> None:
        """Output plain text (human mode only)."""
        if not self.json_mode:
            self.console.print(message)

    def raw(self, message: str) -> None:
        """Output text without Rich markup processing (human mode only)."""
        if not self.json_mode:
            self.console.print(message, markup=False, highlight=False)

    def table(
        self,
        title: str,
        columns: list[str],
        rows: list[list[str]],
        *,
        data_key: str | None = None,
    ) -> None:
        """Output a formatted table.

        Args:
            title: Table title
            columns: Column headers
            rows: Table rows (list of lists)
            data_key: Key to use in JSON output (defaults to snake_case of title)
        """
        key = data_key or title.lower().replace(" ", "_")

        if self.json_mode:
            self._data[key] = [dict(zip(columns, row)) for row in rows]
        else:
            table = Table(title=title, show_header=True, header_style="bold")
            for col in columns:
                table.add_column(col)
            for row in rows:
                table.add_row(*row)
            self.console.print(table)

    def set_data(self, key: str, value: Any) -> None:
        """Set arbitrary data in JSON output."""
        self._data[key] = value

    def finish(self) -> int:
        """Finalize output and return exit code.

        In JSON mode, prints the accumulated data as JSON to stdout.
        Returns the exit code that should be passed to typer.Exit().
        """
        if self.json_mode:
            self._data["exit_code"] = self._exit_code
            print(json.dumps(self._data, indent=2, default=str))

        return self._exit_code


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Route log records through Rich on the stderr console."""
    from .app import err_console

    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if debug:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, markup=False)],
        force=True,
    )
    logging.getLogger("coursegraph").setLevel(level)


def format_validation_for_json(result: ValidationResult) -> dict[str, Any]:
    """Convert ValidationResult to JSON-serializable dict."""
    return {
        "valid": result.valid,
        "error_count": len(result.errors),
        "warning_count": len(result.warnings),
        "errors": [e.model_dump(mode="json", exclude={"severity"}) for e in result.errors],
        "warnings": [
            w.model_dump(mode="json", exclude={"severity"}) for w in result.warnings
        ],
    }
