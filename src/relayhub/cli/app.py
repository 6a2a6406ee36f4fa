"""
Root Typer application for the relayhub CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="relayhub",
    help="relayhub — command hub with correlation tracking for remote agents.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from relayhub import __version__

        typer.echo(f"relayhub {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """relayhub CLI — run the hub and inspect its configuration."""


from relayhub.cli.config import app as config_app  # noqa: E402
from relayhub.cli.serve import app as serve_app  # noqa: E402

app.add_typer(serve_app, name="serve", help="Start the hub server.")
app.add_typer(config_app, name="config", help="Configuration inspection.")
