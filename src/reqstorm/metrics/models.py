"""Aggregation state and run summary dataclasses for reqstorm."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reqstorm._internal.types import StatusHistogram

__all__ = [
    "AggregateState",
    "LatencyStats",
    "RunSummary",
]


@dataclass
class AggregateState:
    """Running statistics owned by the result aggregator.

    Attributes:
        status_counts: Number of responses per HTTP status code.
        latencies: Every request latency in seconds, in arrival order.
        alive_workers: Workers that started and have not yet terminated.
        finished_workers: Started workers that reported ``Stopped``.
        dead_workers: Workers that reported ``Died``.
        idle_workers: Workers that reported ``Stopped`` without ever
            claiming a job. They are never counted as alive.
        max_alive_workers: Highest ``alive_workers`` value observed.
        started_workers: Number of ``Started`` events received.
        cancelled_workers: Workers that stopped because of cancellation.
        started_ids: Ids of workers that reported ``Started``.
        terminated_ids: Ids of workers that reported a terminal event.
    """

    status_counts: StatusHistogram = field(default_factory=dict)
    latencies: list[float] = field(default_factory=list)
    alive_workers: int = 0
    finished_workers: int = 0
    dead_workers: int = 0
    idle_workers: int = 0
    max_alive_workers: int = 0
    started_workers: int = 0
    cancelled_workers: int = 0
    started_ids: set[int] = field(default_factory=set)
    terminated_ids: set[int] = field(default_factory=set)

    @property
    def total_requests(self) -> int:
        """Return the number of requests that received a response."""
        return len(self.latencies)


@dataclass(frozen=True)
class LatencyStats:
    """Latency summary in seconds.

    Attributes:
        mean: Mean latency.
        p50: Median latency.
        p80: 80th percentile latency.
        p90: 90th percentile latency.
        p99: 99th percentile latency.
        min: Fastest request.
        max: Slowest request.
    """

    mean: float = 0.0
    p50: float = 0.0
    p80: float = 0.0
    p90: float = 0.0
    p99: float = 0.0
    min: float = 0.0
    max: float = 0.0


@dataclass
class RunSummary:
    """Final report of one load test run.

    Attributes:
        total_requests: Requests that received an HTTP response.
        status_counts: Responses per HTTP status code.
        latency: Latency statistics.
        concurrency: Configured worker count.
        max_alive_workers: Most workers observed alive at the same time.
        finished_workers: Workers that started and later stopped normally.
        dead_workers: Workers that died on a transport failure.
        idle_workers: Workers that stopped without claiming a job.
        cancelled: True if any worker stopped because of cancellation.
        precision: Decimal places for latency values in the report.
        duration_seconds: Wall-clock duration of the run, set by the runner.
        advisory: Warning text when fewer workers than configured were ever
            alive at once, otherwise None.
    """

    total_requests: int
    status_counts: StatusHistogram
    latency: LatencyStats
    concurrency: int
    max_alive_workers: int
    finished_workers: int
    dead_workers: int
    idle_workers: int = 0
    cancelled: bool = False
    precision: int = 7
    duration_seconds: float = 0.0
    advisory: str | None = None

    @property
    def requests_per_second(self) -> float:
        """Return the average throughput over the run."""
        if self.duration_seconds <= 0:
            return 0.0
        return self.total_requests / self.duration_seconds

    def format_latency(self, value: float) -> str:
        """Format a latency value with the configured precision."""
        return f"{value:.{self.precision}f}"
