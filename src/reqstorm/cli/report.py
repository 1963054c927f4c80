"""Console rendering of a finished run."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.table import Table

if TYPE_CHECKING:
    from rich.console import Console

    from reqstorm.metrics.models import RunSummary


def build_latency_table(summary: RunSummary) -> Table:
    """Build the latency table: one ``Latency (s)`` row.

    Args:
        summary: Completed run summary.

    Returns:
        Formatted Rich Table.
    """
    table = Table(show_header=True, header_style="bold green")
    table.add_column("Measurement", style="bold")
    for heading in ("Average", "Median", "p80", "p90", "p99"):
        table.add_column(heading, justify="right")

    latency = summary.latency
    table.add_row(
        "Latency (s)",
        *(
            summary.format_latency(value)
            for value in (latency.mean, latency.p50, latency.p80, latency.p90, latency.p99)
        ),
    )
    return table


def print_summary(summary: RunSummary, console: Console) -> None:
    """Print the latency table followed by the status code listing.

    Args:
        summary: Completed run summary.
        console: Console to print the report on.
    """
    console.print(build_latency_table(summary))
    console.print("HTTP Status Codes:")
    for status, count in summary.status_counts.items():
        console.print(f"  * {status}: {count}")
