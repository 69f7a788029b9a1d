"""Config command for viewing and managing coursegraph configuration."""

import typer

from ..app import app, console, get_json_mode
from ..utils import Output
from ...config import CONFIG_FILE, CoursegraphConfig, _parse_bool, get_config, reset_config


# Dotted key -> type of its default; every config field is settable
SETTABLE_KEYS: dict[str, type] = {
    f"{zone}.{name}": type(default)
    for zone, values in CoursegraphConfig().to_dict().items()
    for name, default in values.items()
}


def _print_keys() -> None:
    console.print()
    console.print("Available keys:")
    for k in sorted(SETTABLE_KEYS):
        console.print(f"  {k}")


@app.command("config")
def config_command(
    action: str = typer.Argument(
        ...,
        help="Action: show, set, reset",
    ),
    key: str | None = typer.Argument(
        None,
        help="Config key (e.g. render.max_depth, defaults.scope)",
    ),
    value: str | None = typer.Argument(
        None,
        help="Value to set",
    ),
):
    """View or modify coursegraph configuration.

    Examples:
        coursegraph config show
        coursegraph config set render.max_depth 32
        coursegraph config set defaults.graph_path course.yaml
        coursegraph config reset
    """
    if action == "show":
        _show_config()
    elif action == "set":
        if not key or value is None:
            console.print("[red]Usage:[/red] coursegraph config set <key> <value>")
            _print_keys()
            raise typer.Exit(1)
        _set_config(key, value)
    elif action == "reset":
        _reset_config()
    else:
        console.print(f"[red]Unknown action:[/red] {action}")
        console.print("Valid actions: show, set, reset")
        raise typer.Exit(1)


def _show_config():
    """Display current resolved configuration."""
    config = get_config()

    if get_json_mode():
        out = Output(console=console, json_mode=True)
        out.set_data("config", config.to_dict())
        out.set_data("config_file", str(CONFIG_FILE))
        out.finish()
        return

    console.print()
    console.print("[bold]Coursegraph Configuration[/bold]")
    console.print("─" * 40)

    console.print()
    console.print("[bold cyan]Render[/bold cyan] (resolution engine)")
    console.print(f"  max_depth         = {config.render.max_depth}")
    console.print(f"  log_inline_errors = {config.render.log_inline_errors}")

    console.print()
    console.print("[bold cyan]Expressions[/bold cyan]")
    console.print(f"  max_source_length = {config.expressions.max_source_length}")

    console.print()
    console.print("[bold cyan]Defaults[/bold cyan]")
    console.print(f"  graph_path = {config.defaults.graph_path or '[dim](none)[/dim]'}")
    console.print(f"  scope      = {config.defaults.scope or '[dim](root)[/dim]'}")

    console.print()
    if CONFIG_FILE.exists():
        console.print(f"Config file: {CONFIG_FILE}")
    else:
        console.print(f"Config file: [dim]not created yet[/dim] ({CONFIG_FILE})")
    console.print()


def _set_config(key: str, value: str):
    """Set a config value and save."""
    kind = SETTABLE_KEYS.get(key)
    if kind is None:
        console.print(f"[red]Unknown key:[/red] {key}")
        _print_keys()
        raise typer.Exit(1)

    config = get_config()
    zone, field_name = key.split(".", 1)
    target = getattr(config, zone)

    if kind is int:
        try:
            setattr(target, field_name, int(value))
        except ValueError:
            console.print(f"[red]Invalid integer value:[/red] {value}")
            raise typer.Exit(1)
    elif kind is bool:
        parsed = _parse_bool(value)
        if parsed is None:
            console.print(f"[red]Invalid boolean value:[/red] {value}")
            raise typer.Exit(1)
        setattr(target, field_name, parsed)
    else:
        setattr(target, field_name, value)

    config.save()
    reset_config()  # Clear cached singleton so next get_config() reloads

    console.print(f"[green]✓[/green] Set {key} = {value}")
    console.print(f"  Saved to {CONFIG_FILE}")


def _reset_config():
    """Reset config to defaults."""
    if CONFIG_FILE.exists():
        CONFIG_FILE.unlink()
        reset_config()
        console.print("[green]✓[/green] Config reset to defaults")
        console.print(f"  Removed {CONFIG_FILE}")
    else:
        console.print("Config already at defaults (no config file exists)")
