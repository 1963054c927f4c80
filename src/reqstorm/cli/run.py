"""The ``reqstorm`` command: run a load test with a live progress bar."""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)

from reqstorm import __version__
from reqstorm._internal.config import Parameters, load_config
from reqstorm._internal.errors import ReqstormError
from reqstorm._internal.logging import parse_log_level
from reqstorm.cli.report import print_summary
from reqstorm.engine.runner import run_load_test

console = Console(stderr=True)
report_console = Console()


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"reqstorm {__version__}")
        raise typer.Exit


def run_cmd(
    path: str = typer.Option(
        ...,
        "--path",
        "-t",
        help="Target URL every request is sent to.",
    ),
    requests: int = typer.Option(
        100,
        "--requests",
        "-r",
        help="Total number of requests to issue.",
        min=0,
    ),
    concurrency: int = typer.Option(
        10,
        "--concurrency",
        "-c",
        help="Number of concurrent workers.",
        min=1,
    ),
    precision: int = typer.Option(
        7,
        "--precision",
        "-p",
        help="Decimal places in the latency report.",
        min=0,
    ),
    ramp_up: float | None = typer.Option(
        None,
        "--ramp-up",
        help="Seconds over which worker start-up is staggered "
        "(default: REQSTORM_RAMP_UP or 1.0).",
        min=0.0,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    log_json: bool = typer.Option(
        False,
        "--log-json",
        help="Emit logs as one JSON object per line.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Send REQUESTS GET requests to a URL from CONCURRENCY workers and report latency."""
    try:
        config = load_config()
        log_level = logging.DEBUG if verbose else parse_log_level(config.log_level)
        params = Parameters(
            path=path,
            requests=requests,
            concurrency=concurrency,
            precision=precision,
            ramp_up_seconds=config.ramp_up_seconds if ramp_up is None else ramp_up,
        )
    except ReqstormError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]Target:[/bold]      {params.path}\n"
            f"[bold]Requests:[/bold]    {params.requests}\n"
            f"[bold]Concurrency:[/bold] {params.concurrency}\n"
            f"[bold]Ramp-up:[/bold]     {params.ramp_up_seconds}s",
            title="reqstorm",
            border_style="cyan",
        )
    )

    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    try:
        with progress:
            task_id = progress.add_task("Requests", total=params.requests)
            summary = run_load_test(
                params,
                config=config,
                on_progress=lambda n: progress.advance(task_id, n),
                log_level=log_level,
                json_logs=log_json,
            )
    except ReqstormError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    print_summary(summary, report_console)

    if summary.advisory is not None:
        console.print(f"[yellow]Warning:[/yellow] {summary.advisory}")
    if summary.cancelled:
        console.print(
            f"[yellow]Run cancelled:[/yellow] report covers "
            f"{summary.total_requests} of {params.requests} requests."
        )
