"""Main Typer application, the entry point for the ``leakprobe`` CLI."""

from __future__ import annotations

import typer

from leakprobe import __version__
from leakprobe.cli.run import run_cmd

app = typer.Typer(
    name="leakprobe",
    help="Churn connections concurrently to expose resource leaks.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run a connect/close stress test against one endpoint.")(run_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"leakprobe {__version__}")
        raise typer.Exit


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
    """LeakProbe: churn connections concurrently to expose resource leaks."""
