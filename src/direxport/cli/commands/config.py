"""
Config commands.

Commands for showing the effective configuration and validating files.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Inspect and validate configuration",
    no_args_is_help=True,
)

# Keys whose values are never printed
SECRET_KEYS = {"static_token"}


def _flatten(data: dict[str, Any], prefix: str = "") -> list[tuple[str, Any]]:
    rows: list[tuple[str, Any]] = []
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            rows.extend(_flatten(value, f"{name}."))
        elif key in SECRET_KEYS and value:
            rows.append((name, "********"))
        else:
            rows.append((name, value))
    return rows


@app.command("show")
def show_config(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: configs/app.yaml)",
    ),
) -> None:
    """Show the effective configuration, with secrets masked."""
    from direxport.core.config.loader import ConfigError, load_app_config

    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    table = Table(title="Effective Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    for name, value in _flatten(config.model_dump(mode="json")):
        display = "-" if value is None else str(value)
        table.add_row(name, escape(display))

    console.print(table)


@app.command("validate")
def validate_config(
    config_path: Path = typer.Argument(..., help="Path to the YAML file to validate"),
) -> None:
    """Validate a configuration file.

    Examples:
        direxport config validate configs/app.yaml
    """
    from direxport.core.config.loader import validate_config_file

    errors = validate_config_file(config_path)

    if errors:
        err_console.print(f"[red]Invalid configuration:[/red] {escape(str(config_path))}")
        for error in errors:
            err_console.print(f"  • {escape(error)}")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] {escape(str(config_path))} is valid")
