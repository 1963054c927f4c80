"""Tests for ResultAggregator."""

from __future__ import annotations

import logging

import pytest

from reqstorm._internal.errors import ProtocolError
from reqstorm.engine.channel import Channel
from reqstorm.engine.protocol import Died, RequestDetails, ResultEvent, Started, Stopped
from reqstorm.metrics.aggregator import ResultAggregator


def _details(worker_id: int = 0, status_code: int = 200, latency_ms: float = 10.0) -> RequestDetails:
    return RequestDetails(
        worker_id=worker_id,
        status_code=status_code,
        latency_ns=int(latency_ms * 1_000_000),
    )


def _check_liveness(aggregator: ResultAggregator) -> None:
    state = aggregator.state
    assert state.alive_workers == (
        state.started_workers - state.dead_workers - state.finished_workers
    )
    assert state.alive_workers >= 0
    assert state.max_alive_workers <= aggregator.concurrency


class TestResultAggregatorHandle:
    def test_started_increments_alive_and_high_water_mark(self):
        aggregator = ResultAggregator(concurrency=3)
        for worker_id in range(3):
            aggregator.handle(Started(worker_id=worker_id))

        assert aggregator.state.alive_workers == 3
        assert aggregator.state.max_alive_workers == 3

    def test_request_details_update_histogram_and_samples(self):
        aggregator = ResultAggregator(concurrency=1)
        aggregator.handle(Started(worker_id=0))
        aggregator.handle(_details(status_code=200))
        aggregator.handle(_details(status_code=200))
        aggregator.handle(_details(status_code=503, latency_ms=1500.0))

        state = aggregator.state
        assert state.status_counts == {200: 2, 503: 1}
        assert state.total_requests == 3
        assert state.latencies[-1] == pytest.approx(1.5)

    def test_died_and_stopped_accounting(self):
        aggregator = ResultAggregator(concurrency=2)
        aggregator.handle(Started(worker_id=0))
        aggregator.handle(Started(worker_id=1))
        aggregator.handle(Died(worker_id=0, error="refused"))
        aggregator.handle(Stopped(worker_id=1))

        state = aggregator.state
        assert state.alive_workers == 0
        assert state.dead_workers == 1
        assert state.finished_workers == 1
        assert state.max_alive_workers == 2

    def test_alive_matches_started_minus_terminated_throughout(self):
        events: list[ResultEvent] = [
            Started(worker_id=0),
            Started(worker_id=1),
            _details(worker_id=0),
            Died(worker_id=1),
            Started(worker_id=2),
            _details(worker_id=2),
            Stopped(worker_id=0),
            Stopped(worker_id=2),
        ]
        aggregator = ResultAggregator(concurrency=3)
        for event in events:
            aggregator.handle(event)
            _check_liveness(aggregator)

        assert aggregator.state.max_alive_workers == 2

    def test_stopped_without_started_counts_as_idle(self):
        aggregator = ResultAggregator(concurrency=2)
        aggregator.handle(Started(worker_id=0))
        aggregator.handle(Stopped(worker_id=1))
        aggregator.handle(Stopped(worker_id=0))

        state = aggregator.state
        assert state.alive_workers == 0
        assert state.finished_workers == 1
        assert state.idle_workers == 1
        assert aggregator.summarize().idle_workers == 1

    def test_liveness_holds_with_fewer_jobs_than_workers(self):
        # Three jobs for six workers: three of them never claim one
        events: list[ResultEvent] = [
            Started(worker_id=0),
            Started(worker_id=1),
            Started(worker_id=2),
            Stopped(worker_id=3),
            Stopped(worker_id=4),
            Stopped(worker_id=5),
            _details(worker_id=0),
            Stopped(worker_id=0),
            _details(worker_id=1),
            Stopped(worker_id=1),
            _details(worker_id=2),
            Stopped(worker_id=2),
        ]
        aggregator = ResultAggregator(concurrency=6)
        for event in events:
            aggregator.handle(event)
            _check_liveness(aggregator)

        state = aggregator.state
        assert state.max_alive_workers == 3
        assert state.finished_workers == 3
        assert state.idle_workers == 3

    def test_idle_cancelled_stop_marks_run_cancelled(self):
        aggregator = ResultAggregator(concurrency=1)
        aggregator.handle(Stopped(worker_id=0, cancelled=True))
        _check_liveness(aggregator)
        assert aggregator.state.idle_workers == 1
        assert aggregator.summarize().cancelled is True

    def test_progress_callback_per_request(self):
        progress: list[int] = []
        aggregator = ResultAggregator(concurrency=1, on_progress=progress.append)
        aggregator.handle(Started(worker_id=0))
        for _ in range(5):
            aggregator.handle(_details())
        aggregator.handle(Stopped(worker_id=0))

        assert progress == [1] * 5

    def test_cancelled_stop_is_counted(self):
        aggregator = ResultAggregator(concurrency=1)
        aggregator.handle(Started(worker_id=0))
        aggregator.handle(Stopped(worker_id=0, cancelled=True))
        assert aggregator.state.cancelled_workers == 1
        assert aggregator.summarize().cancelled is True


class TestResultAggregatorProtocol:
    def test_duplicate_started_rejected(self):
        aggregator = ResultAggregator(concurrency=1)
        aggregator.handle(Started(worker_id=0))
        with pytest.raises(ProtocolError, match="Started twice"):
            aggregator.handle(Started(worker_id=0))

    def test_event_after_terminal_rejected(self):
        aggregator = ResultAggregator(concurrency=1)
        aggregator.handle(Started(worker_id=0))
        aggregator.handle(Died(worker_id=0))
        with pytest.raises(ProtocolError, match="after terminating"):
            aggregator.handle(_details())

    def test_details_before_started_rejected(self):
        aggregator = ResultAggregator(concurrency=1)
        with pytest.raises(ProtocolError, match="before Started"):
            aggregator.handle(_details())

    def test_died_before_started_rejected(self):
        aggregator = ResultAggregator(concurrency=1)
        with pytest.raises(ProtocolError, match="Died before Started"):
            aggregator.handle(Died(worker_id=0, error="refused"))

    def test_event_after_idle_stop_rejected(self):
        aggregator = ResultAggregator(concurrency=1)
        aggregator.handle(Stopped(worker_id=0))
        with pytest.raises(ProtocolError, match="after terminating"):
            aggregator.handle(Started(worker_id=0))


class TestResultAggregatorSummary:
    def test_summary_statistics(self):
        aggregator = ResultAggregator(concurrency=1, precision=3)
        aggregator.handle(Started(worker_id=0))
        for ms in range(1, 101):
            aggregator.handle(_details(latency_ms=float(ms)))
        aggregator.handle(Stopped(worker_id=0))

        summary = aggregator.summarize()
        assert summary.total_requests == 100
        assert summary.status_counts == {200: 100}
        assert 0.049 <= summary.latency.p50 <= 0.051
        assert 0.079 <= summary.latency.p80 <= 0.081
        assert 0.089 <= summary.latency.p90 <= 0.091
        assert 0.098 <= summary.latency.p99 <= 0.101
        assert summary.latency.mean == pytest.approx(0.0505, rel=0.01)
        assert summary.precision == 3
        assert summary.advisory is None

    def test_status_counts_sorted(self):
        aggregator = ResultAggregator(concurrency=1)
        aggregator.handle(Started(worker_id=0))
        for code in (503, 200, 404, 200):
            aggregator.handle(_details(status_code=code))

        assert list(aggregator.summarize().status_counts) == [200, 404, 503]

    def test_empty_run_summary(self):
        summary = ResultAggregator(concurrency=1).summarize()
        assert summary.total_requests == 0
        assert summary.latency.p99 == 0.0

    def test_advisory_when_concurrency_not_reached(
        self, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
    ):
        aggregator = ResultAggregator(concurrency=5)
        aggregator.handle(Started(worker_id=0))
        aggregator.handle(Died(worker_id=0))
        aggregator.handle(Started(worker_id=1))

        logger = logging.getLogger("reqstorm")
        monkeypatch.setattr(logger, "propagate", True)
        with caplog.at_level(logging.WARNING, logger="reqstorm"):
            summary = aggregator.summarize()

        assert summary.max_alive_workers == 1
        assert summary.advisory is not None
        assert "1 of 5 workers" in summary.advisory
        assert any("ulimit" in record.getMessage() for record in caplog.records)

    def test_quantile_queries_repeatable(self):
        aggregator = ResultAggregator(concurrency=1)
        aggregator.handle(Started(worker_id=0))
        for ms in (5.0, 7.0, 11.0, 13.0):
            aggregator.handle(_details(latency_ms=ms))

        assert aggregator.summarize().latency == aggregator.summarize().latency


class TestResultAggregatorRun:
    async def test_runs_until_channel_closes(self):
        results: Channel[ResultEvent] = Channel(10)
        aggregator = ResultAggregator(concurrency=1)

        async with results.sender() as sender:
            await sender.send(Started(worker_id=0))
            await sender.send(_details())
            await sender.send(Stopped(worker_id=0))

        summary = await aggregator.run(results)
        assert summary.total_requests == 1
        assert summary.finished_workers == 1
        assert summary.max_alive_workers == 1
