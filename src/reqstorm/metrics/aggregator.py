"""Single-consumer aggregation of worker result events.

The ``ResultAggregator`` is the only reader of the result channel and the
only owner of ``AggregateState``. It tracks worker liveness as events
arrive, buffers latency samples, and builds the ``RunSummary`` once the
channel closes (every worker has terminated).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from reqstorm._internal.errors import ProtocolError
from reqstorm._internal.logging import get_logger
from reqstorm.engine.protocol import Died, RequestDetails, Started, Stopped
from reqstorm.metrics.digest import LatencyDigest
from reqstorm.metrics.models import AggregateState, LatencyStats, RunSummary

if TYPE_CHECKING:
    from collections.abc import Callable

    from reqstorm._internal.types import ProgressCallback
    from reqstorm.engine.channel import Channel
    from reqstorm.engine.protocol import ResultEvent

logger = get_logger("metrics.aggregator")

_QUANTILES = (0.50, 0.80, 0.90, 0.99)


class ResultAggregator:
    """Consumes ``ResultEvent`` objects and produces the final summary.

    Attributes:
        concurrency: Configured worker count, used for the advisory check.
        precision: Decimal places carried into the summary.
        state: Running statistics. Read it only after ``run`` returns.
    """

    def __init__(
        self,
        concurrency: int,
        *,
        precision: int = 7,
        digest_factory: Callable[[], LatencyDigest] = LatencyDigest,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            concurrency: Configured number of workers.
            precision: Decimal places for latency values in the report.
            digest_factory: Builds the digest the samples are fed into.
            on_progress: Optional callback invoked with 1 for every
                completed request.
        """
        self.concurrency = concurrency
        self.precision = precision
        self.state = AggregateState()
        self._digest_factory = digest_factory
        self._on_progress = on_progress

    async def run(self, results: Channel[ResultEvent]) -> RunSummary:
        """Consume events until the result channel closes.

        Args:
            results: The result channel.

        Returns:
            The summary over everything received.

        Raises:
            ProtocolError: If a worker's events break the lifecycle order.
        """
        async for event in results:
            self.handle(event)
        return self.summarize()

    def handle(self, event: ResultEvent) -> None:
        """Apply one event to the running statistics.

        Args:
            event: Event received from a worker.

        Raises:
            ProtocolError: If the event is out of order for its worker.
        """
        state = self.state
        worker_id = event.worker_id

        if worker_id in state.terminated_ids:
            msg = f"Worker {worker_id} sent {type(event).__name__} after terminating"
            raise ProtocolError(msg)

        if isinstance(event, Started):
            if worker_id in state.started_ids:
                msg = f"Worker {worker_id} sent Started twice"
                raise ProtocolError(msg)
            state.started_ids.add(worker_id)
            state.started_workers += 1
            state.alive_workers += 1
            state.max_alive_workers = max(state.max_alive_workers, state.alive_workers)
        elif isinstance(event, RequestDetails):
            if worker_id not in state.started_ids:
                msg = f"Worker {worker_id} sent RequestDetails before Started"
                raise ProtocolError(msg)
            state.latencies.append(event.latency_seconds)
            state.status_counts[event.status_code] = (
                state.status_counts.get(event.status_code, 0) + 1
            )
            if self._on_progress is not None:
                self._on_progress(1)
        elif isinstance(event, Died):
            if worker_id not in state.started_ids:
                msg = f"Worker {worker_id} sent Died before Started"
                raise ProtocolError(msg)
            self._terminate(worker_id)
            state.dead_workers += 1
        elif isinstance(event, Stopped):
            if worker_id in state.started_ids:
                self._terminate(worker_id)
                state.finished_workers += 1
            else:
                # Never claimed a job, so it was never counted as alive
                state.terminated_ids.add(worker_id)
                state.idle_workers += 1
            if event.cancelled:
                state.cancelled_workers += 1
        else:
            msg = f"Unknown result event: {event!r}"
            raise ProtocolError(msg)

    def _terminate(self, worker_id: int) -> None:
        self.state.terminated_ids.add(worker_id)
        self.state.alive_workers -= 1

    def summarize(self) -> RunSummary:
        """Feed the buffered samples to a digest and build the summary.

        Returns:
            The run summary. ``duration_seconds`` is left for the caller.
        """
        state = self.state
        digest = self._digest_factory().ingest(state.latencies)
        p50, p80, p90, p99 = (digest.quantile(q) for q in _QUANTILES)
        latency = LatencyStats(
            mean=digest.mean(),
            p50=p50,
            p80=p80,
            p90=p90,
            p99=p99,
            min=digest.min(),
            max=digest.max(),
        )

        advisory: str | None = None
        if state.max_alive_workers < self.concurrency:
            advisory = (
                f"Only {state.max_alive_workers} of {self.concurrency} workers were "
                "ever alive at the same time. Workers may have died before the "
                "rest ramped up; consider raising OS limits such as open file "
                "descriptors (ulimit -n)."
            )
            logger.warning(advisory)

        logger.info(
            "Aggregated %d requests: workers started=%d finished=%d died=%d idle=%d "
            "max_alive=%d",
            state.total_requests,
            state.started_workers,
            state.finished_workers,
            state.dead_workers,
            state.idle_workers,
            state.max_alive_workers,
        )

        return RunSummary(
            total_requests=state.total_requests,
            status_counts=dict(sorted(state.status_counts.items())),
            latency=latency,
            concurrency=self.concurrency,
            max_alive_workers=state.max_alive_workers,
            finished_workers=state.finished_workers,
            dead_workers=state.dead_workers,
            idle_workers=state.idle_workers,
            cancelled=state.cancelled_workers > 0,
            precision=self.precision,
            advisory=advisory,
        )
