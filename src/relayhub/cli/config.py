"""
CLI: ``relayhub config`` — configuration inspection.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError
from rich.table import Table

from relayhub.cli.utils import console, err_console
from relayhub.core.settings import RelayHubSettings

app = typer.Typer(no_args_is_help=True)


def _load() -> RelayHubSettings:
    try:
        return RelayHubSettings()
    except ValidationError as e:
        err_console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show current configuration."""
    settings = _load()

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"RELAYHUB_{key.upper()}={value}", highlight=False)
        return

    if format != "table":
        err_console.print(f"[red]Unknown format:[/red] {format}")
        raise typer.Exit(code=2)

    table = Table(title="relayhub settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in settings.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


@app.command("validate")
def validate_config() -> None:
    """Validate configuration from the environment and ``.env``."""
    settings = _load()
    if settings.manager_timeout_ms < settings.default_timeout_ms:
        console.print(
            "[yellow]Warning:[/yellow] manager_timeout_ms is shorter than default_timeout_ms"
        )
    console.print("[green]Configuration OK[/green]")
