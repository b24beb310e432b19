"""
Export command for running a directory export.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from direxport.core.orchestrator import ExportRun

console = Console()
err_console = Console(stderr=True)


def run_command(
    trigger: str = typer.Option(
        "manual",
        "--trigger",
        "-t",
        help="Describes what started this run (recorded in telemetry)",
    ),
    extended: bool = typer.Option(
        False,
        "--extended/--no-extended",
        help="Include extended user properties",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: configs/app.yaml)",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the run summary as JSON",
    ),
) -> None:
    """Run a full export: users, then groups, then group memberships.

    Exits with status 1 if the run fails.

    Examples:
        direxport run
        direxport run --trigger nightly --extended
        direxport run -c configs/prod.yaml --json
    """
    from direxport.core.config.loader import ConfigError, load_app_config
    from direxport.core.logging import json_dumps, setup_logging
    from direxport.core.orchestrator import ExportRunner

    try:
        config = load_app_config(config_path)
        runner = ExportRunner.from_config(config)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(2)

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )

    export_run = asyncio.run(runner.run(trigger, include_extended_properties=extended))

    if as_json:
        typer.echo(json_dumps(export_run.to_dict()))
    else:
        _show_summary(export_run)

    if not export_run.succeeded:
        raise typer.Exit(1)


def _show_summary(export_run: ExportRun) -> None:
    """Show summary table of an export run."""
    table = Table(title="Export Summary")

    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    outcome_style = "green" if export_run.succeeded else "red"

    table.add_row("Export ID", export_run.export_id)
    table.add_row("Outcome", f"[{outcome_style}]{export_run.outcome.value}[/{outcome_style}]")
    table.add_row("Users", str(export_run.users_processed))
    table.add_row("Groups", str(export_run.groups_processed))
    table.add_row("Memberships", str(export_run.memberships_processed))
    table.add_row(
        "Groups exported",
        f"{export_run.successful_group_count}/{export_run.total_groups}",
    )
    table.add_row("Membership success", f"{export_run.membership_success_rate:.1%}")
    table.add_row("API calls", str(export_run.api_calls))
    table.add_row("Batches sent", str(export_run.batches_sent))
    table.add_row("Duration", f"{export_run.duration_seconds:.1f}s")

    console.print()
    console.print(table)

    if export_run.fault:
        fault = export_run.fault
        stage = export_run.failed_stage.value if export_run.failed_stage else "?"
        detail = escape(f"[{fault.category.value}] {fault.message}")
        console.print()
        console.print(f"[red]Failed in {stage} stage:[/red] {detail}")
        console.print(f"[dim]Operation: {escape(fault.operation)}[/dim]")

    failed = export_run.failed_groups
    if failed:
        console.print()
        console.print(f"[yellow]{len(failed)} group(s) failed:[/yellow]")
        for outcome in failed[:5]:  # Show first 5 failures
            reason = outcome.fault.message if outcome.fault else "unknown"
            console.print(f"  • {escape(outcome.group_id)}: {escape(reason)}")
        if len(failed) > 5:
            console.print(f"  [dim]... and {len(failed) - 5} more[/dim]")
