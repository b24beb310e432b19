"""
Directory Export CLI - Main entry point.

Runs directory exports on demand and inspects the configuration they use.
"""

from __future__ import annotations

from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.traceback import install as install_rich_traceback

from direxport import __app_name__, __version__

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

# Create main app
app = typer.Typer(
    name=__app_name__,
    help="Export directory users, groups and memberships to an ingestion endpoint",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Directory Export - users, groups and memberships to batched delivery."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import config, export  # noqa: E402

app.command("run")(export.run_command)
app.add_typer(config.app, name="config", help="Inspect and validate configuration")


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
