"""Events sent from workers to the result aggregator."""

from __future__ import annotations

from dataclasses import dataclass

from reqstorm._internal.duration import duration_to_seconds


@dataclass(frozen=True)
class Started:
    """The worker claimed its first job and is ramping up.

    Attributes:
        worker_id: Index of the reporting worker.
    """

    worker_id: int


@dataclass(frozen=True)
class RequestDetails:
    """One request received an HTTP response.

    Attributes:
        worker_id: Index of the reporting worker.
        status_code: HTTP status code of the response.
        latency_ns: Wall-clock time from send to response, in nanoseconds.
    """

    worker_id: int
    status_code: int
    latency_ns: int

    @property
    def latency_seconds(self) -> float:
        """Return the latency as fractional seconds."""
        return duration_to_seconds(self.latency_ns)


@dataclass(frozen=True)
class Died:
    """The worker hit a transport failure and exits without draining jobs.

    Attributes:
        worker_id: Index of the reporting worker.
        error: Description of the transport failure.
    """

    worker_id: int
    error: str = ""


@dataclass(frozen=True)
class Stopped:
    """The worker ran out of jobs or observed cancellation.

    Attributes:
        worker_id: Index of the reporting worker.
        cancelled: True if the worker stopped because of cancellation.
    """

    worker_id: int
    cancelled: bool = False


ResultEvent = Started | RequestDetails | Died | Stopped
