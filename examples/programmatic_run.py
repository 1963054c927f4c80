"""Drive a load test from Python instead of the CLI.

Stops the run after a fixed number of responses by cancelling it from the
progress callback. Run it with:

    python examples/programmatic_run.py http://localhost:8080/
"""

from __future__ import annotations

import asyncio
import sys

from reqstorm import CancellationController, LoadTestRunner, Parameters

STOP_AFTER = 500


async def main(url: str) -> None:
    cancellation = CancellationController()
    completed = 0

    def on_progress(n: int) -> None:
        nonlocal completed
        completed += n
        if completed >= STOP_AFTER:
            cancellation.cancel(f"reached {STOP_AFTER} responses")

    params = Parameters(path=url, requests=2_000, concurrency=25, ramp_up_seconds=0.5)
    runner = LoadTestRunner(params, cancellation=cancellation, on_progress=on_progress)
    summary = await runner.run()

    print(f"requests: {summary.total_requests} in {summary.duration_seconds:.2f}s")
    print(f"p50={summary.format_latency(summary.latency.p50)}s "
          f"p99={summary.format_latency(summary.latency.p99)}s")
    for status, count in summary.status_counts.items():
        print(f"  {status}: {count}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8080/"))
