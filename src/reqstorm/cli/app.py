"""Main Typer application, entry point for the ``reqstorm`` CLI."""

from __future__ import annotations

import typer

from reqstorm.cli.run import run_cmd

app = typer.Typer(
    name="reqstorm",
    help="Load-test an HTTP endpoint with a pool of concurrent workers.",
    rich_markup_mode="rich",
)

app.command()(run_cmd)


def main() -> None:
    """Console script entry point."""
    app()
