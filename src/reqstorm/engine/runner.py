"""Top-level load test orchestrator."""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from typing import TYPE_CHECKING, Any

from reqstorm._internal.config import ReqstormConfig
from reqstorm._internal.errors import EngineError, ReqstormError
from reqstorm._internal.logging import get_logger, setup_logging
from reqstorm.engine.cancellation import CancellationController
from reqstorm.engine.channel import Channel
from reqstorm.engine.job_source import Job, JobSource
from reqstorm.engine.worker import Worker, WorkerSlot, ramp_up_delays
from reqstorm.metrics.aggregator import ResultAggregator
from reqstorm.transport.http_client import HttpClient, validate_url

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from reqstorm._internal.config import Parameters
    from reqstorm._internal.types import ProgressCallback
    from reqstorm.engine.protocol import ResultEvent
    from reqstorm.metrics.models import RunSummary
    from reqstorm.transport.http_client import HttpTransport

logger = get_logger("engine.runner")


def _install_uvloop() -> None:
    """Install uvloop as the default event loop policy if available.

    Falls back to the default asyncio event loop on Windows or if uvloop
    is not installed.
    """
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


class LoadTestRunner:
    """Wires the job source, worker pool and aggregator for one run.

    ``run()`` starts one task for the job source, one per worker and one
    for the aggregator, and returns when all of them have finished.

    Attributes:
        params: Run parameters.
        config: Environment configuration (timeouts, pool size).
        cancellation: Flag shared with every worker. Call ``cancel()`` on it
            to stop the run early.
    """

    def __init__(
        self,
        params: Parameters,
        *,
        config: ReqstormConfig | None = None,
        client_factory: Callable[[], AbstractAsyncContextManager[HttpTransport]] | None = None,
        cancellation: CancellationController | None = None,
        on_progress: ProgressCallback | None = None,
        handle_signals: bool = True,
    ) -> None:
        """Initialize the runner.

        Args:
            params: Run parameters.
            config: Environment configuration. Defaults to built-in values.
            client_factory: Builds the HTTP client shared by all workers.
                It must return an async context manager, entered for the
                duration of the run. Defaults to an aiohttp ``HttpClient``.
            cancellation: Cancellation flag. A new one is created if omitted.
            on_progress: Callback invoked with 1 per completed request.
            handle_signals: Install SIGINT/SIGTERM handlers for the run.

        Raises:
            ConfigError: If the target URL is unusable and the default
                client is used.
        """
        self.params = params
        self.config = config or ReqstormConfig()
        self.cancellation = cancellation or CancellationController()
        self._on_progress = on_progress
        self._handle_signals = handle_signals

        if client_factory is None:
            validate_url(params.path)
            client_factory = self._default_client
        self._client_factory = client_factory

    def _default_client(self) -> HttpClient:
        return HttpClient(
            timeout=self.config.request_timeout,
            pool_size=max(self.config.connection_pool_size, self.params.concurrency),
        )

    async def run(self) -> RunSummary:
        """Execute the load test and return its summary.

        Returns:
            RunSummary over every request that received a response.

        Raises:
            EngineError: If the HTTP client cannot be created or a task
                fails unexpectedly.
        """
        params = self.params
        logger.info(
            "Starting load test: url=%s, requests=%d, concurrency=%d, ramp_up=%.2fs",
            params.path,
            params.requests,
            params.concurrency,
            params.ramp_up_seconds,
        )

        loop = asyncio.get_running_loop()
        start_time = time.monotonic()

        async with self._client_factory() as client:
            if self._handle_signals:
                self.cancellation.install_signal_handlers(loop)
            try:
                summary = await self._run_tasks(client)
            finally:
                if self._handle_signals:
                    self.cancellation.remove_signal_handlers(loop)

        summary.duration_seconds = time.monotonic() - start_time
        logger.info(
            "Load test completed: duration=%.2fs, requests=%d, rps=%.1f, p50=%.6fs, p99=%.6fs",
            summary.duration_seconds,
            summary.total_requests,
            summary.requests_per_second,
            summary.latency.p50,
            summary.latency.p99,
        )
        return summary

    async def _run_tasks(self, client: HttpTransport) -> RunSummary:
        params = self.params
        jobs: Channel[Job] = Channel(params.requests, name="job channel")
        results: Channel[ResultEvent] = Channel(params.requests, name="result channel")

        # Take every sender handle before any task runs, so neither channel
        # can close early.
        source = JobSource(params.requests)
        source_sender = source.open(jobs)
        workers = [
            Worker(
                slot=WorkerSlot(index=i, ramp_up_delay=delay),
                jobs=jobs,
                results=results.sender(),
                client=client,
                path=params.path,
                cancellation=self.cancellation,
            )
            for i, delay in enumerate(
                ramp_up_delays(params.concurrency, params.ramp_up_seconds)
            )
        ]
        aggregator = ResultAggregator(
            params.concurrency,
            precision=params.precision,
            on_progress=self._on_progress,
        )

        aggregator_task = asyncio.create_task(aggregator.run(results), name="aggregator")
        tasks: list[asyncio.Task[Any]] = [
            aggregator_task,
            asyncio.create_task(source.run(source_sender), name="job-source"),
        ]
        tasks.extend(
            asyncio.create_task(worker.run(), name=f"worker-{worker.worker_id}")
            for worker in workers
        )

        try:
            await asyncio.gather(*tasks)
        except Exception as exc:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.exception("Load test failed")
            if isinstance(exc, ReqstormError):
                raise EngineError(f"Load test failed: {exc}") from exc
            raise EngineError("Load test failed") from exc

        return aggregator_task.result()


def run_load_test(
    params: Parameters,
    *,
    config: ReqstormConfig | None = None,
    on_progress: ProgressCallback | None = None,
    log_level: int = logging.INFO,
    json_logs: bool = False,
) -> RunSummary:
    """Run a load test to completion in the current process.

    Installs uvloop, sets up logging and drives ``LoadTestRunner`` with
    ``asyncio.run``.

    Args:
        params: Run parameters.
        config: Environment configuration.
        on_progress: Callback invoked with 1 per completed request.
        log_level: Logging level. Defaults to INFO.
        json_logs: Emit structured JSON logs.

    Returns:
        The run summary.

    Raises:
        ConfigError: If the target URL is unusable.
        EngineError: If the run cannot start or fails.
    """
    _install_uvloop()
    setup_logging(level=log_level, json_format=json_logs)

    runner = LoadTestRunner(params, config=config, on_progress=on_progress)
    return asyncio.run(runner.run())
