"""
CLI: ``relayhub serve`` — start the hub server.
"""

from __future__ import annotations

import typer
import uvicorn

from relayhub.cli.utils import console
from relayhub.core.settings import RelayHubSettings

app = typer.Typer(no_args_is_help=True)


@app.command("start")
def start(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address (default from settings)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port (default from settings)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the relayhub HTTP server.

    Runs a single worker: the tracker keeps its state in process memory.
    """
    settings = RelayHubSettings()
    host = host or settings.host
    port = port or settings.port

    console.print(f"[bold green]Starting relayhub[/bold green] on {host}:{port}")
    uvicorn.run(
        "relayhub.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=1,
        log_level=log_level,
    )
