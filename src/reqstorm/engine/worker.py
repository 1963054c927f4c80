"""Request workers and their lifecycle state machine."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from reqstorm._internal.errors import TransportError
from reqstorm._internal.logging import get_logger
from reqstorm.engine.protocol import Died, RequestDetails, Started, Stopped

if TYPE_CHECKING:
    from reqstorm.engine.cancellation import CancellationController
    from reqstorm.engine.channel import Channel, Sender
    from reqstorm.engine.job_source import Job
    from reqstorm.engine.protocol import ResultEvent
    from reqstorm.transport.http_client import HttpTransport

logger = get_logger("engine.worker")

# Longest stretch of ramp-up sleep between two cancellation checks
_CANCEL_POLL_INTERVAL = 0.05


class WorkerState(Enum):
    """Lifecycle of a worker.

    NOT_STARTED -> RAMPING -> ACTIVE -> DIED | STOPPED
    NOT_STARTED -> STOPPED (no job claimed, or cancelled before starting)
    RAMPING -> STOPPED (cancelled during the ramp-up delay)
    """

    NOT_STARTED = auto()
    RAMPING = auto()
    ACTIVE = auto()
    DIED = auto()
    STOPPED = auto()


@dataclass
class WorkerSlot:
    """Per-worker position in the pool.

    Attributes:
        index: Ordinal of the worker, also used as its id in events.
        ramp_up_delay: Seconds to wait after claiming the first job.
        has_ramped: Set once the ramp-up delay has elapsed.
    """

    index: int
    ramp_up_delay: float
    has_ramped: bool = False


def ramp_up_delays(concurrency: int, ramp_up_seconds: float) -> list[float]:
    """Spread worker start times evenly over ``ramp_up_seconds``.

    Worker ``i`` waits ``ramp_up_seconds * i / concurrency``, so the first
    worker starts immediately and no two workers share a delay unless the
    window is zero.

    Args:
        concurrency: Number of workers.
        ramp_up_seconds: Length of the ramp-up window.

    Returns:
        One delay per worker, in index order.
    """
    if concurrency <= 0:
        return []
    return [ramp_up_seconds * i / concurrency for i in range(concurrency)]


class Worker:
    """Drains the job channel, issuing one GET per job.

    Each worker owns one ``WorkerSlot`` and reports through its own
    ``Sender`` on the result channel, so its events reach the aggregator
    in the order it sent them.
    """

    def __init__(
        self,
        slot: WorkerSlot,
        jobs: Channel[Job],
        results: Sender[ResultEvent],
        client: HttpTransport,
        path: str,
        cancellation: CancellationController,
    ) -> None:
        """Initialize the worker.

        Args:
            slot: This worker's slot.
            jobs: Shared job channel.
            results: This worker's handle on the result channel. It is
                closed when ``run`` returns.
            client: Shared HTTP client.
            path: URL to request.
            cancellation: Shared cancellation flag.
        """
        self.slot = slot
        self._jobs = jobs
        self._results = results
        self._client = client
        self._path = path
        self._cancellation = cancellation
        self._state = WorkerState.NOT_STARTED
        self.requests_sent = 0

    @property
    def state(self) -> WorkerState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def worker_id(self) -> int:
        """Return the worker's index."""
        return self.slot.index

    async def run(self) -> WorkerState:
        """Run until the jobs run out, cancellation, or a transport failure.

        Returns:
            The terminal state, ``DIED`` or ``STOPPED``.
        """
        async with self._results:
            while True:
                job = await self._jobs.recv()
                if job is None:
                    return await self._stop(cancelled=False)

                if self._cancellation.is_cancelled:
                    return await self._stop(cancelled=True)

                if self._state is WorkerState.NOT_STARTED and not await self._ramp_up():
                    return await self._stop(cancelled=True)

                try:
                    start = time.perf_counter_ns()
                    response = await self._client.get(self._path)
                    latency_ns = time.perf_counter_ns() - start
                except TransportError as exc:
                    return await self._die(exc)

                self.requests_sent += 1
                await self._results.send(
                    RequestDetails(
                        worker_id=self.worker_id,
                        status_code=response.status_code,
                        latency_ns=latency_ns,
                    )
                )

    async def _ramp_up(self) -> bool:
        """Announce the worker and wait out its ramp-up delay.

        Returns:
            False if cancellation was requested during the delay.
        """
        self._state = WorkerState.RAMPING
        await self._results.send(Started(worker_id=self.worker_id))

        deadline = time.monotonic() + self.slot.ramp_up_delay
        while True:
            if self._cancellation.is_cancelled:
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(remaining, _CANCEL_POLL_INTERVAL))

        self.slot.has_ramped = True
        self._state = WorkerState.ACTIVE
        logger.debug(
            "Worker %d active after %.3fs ramp-up",
            self.worker_id,
            self.slot.ramp_up_delay,
        )
        return True

    async def _die(self, exc: TransportError) -> WorkerState:
        self._state = WorkerState.DIED
        logger.warning(
            "Worker %d died after %d requests: %s",
            self.worker_id,
            self.requests_sent,
            exc,
        )
        await self._results.send(Died(worker_id=self.worker_id, error=str(exc)))
        return self._state

    async def _stop(self, *, cancelled: bool) -> WorkerState:
        self._state = WorkerState.STOPPED
        logger.debug(
            "Worker %d stopped after %d requests (cancelled=%s)",
            self.worker_id,
            self.requests_sent,
            cancelled,
        )
        await self._results.send(Stopped(worker_id=self.worker_id, cancelled=cancelled))
        return self._state
