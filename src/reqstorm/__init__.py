"""reqstorm: concurrent HTTP load generation with latency percentiles."""

from __future__ import annotations

from reqstorm._internal.config import Parameters, ReqstormConfig
from reqstorm.engine.cancellation import CancellationController
from reqstorm.engine.runner import LoadTestRunner, run_load_test
from reqstorm.metrics.digest import LatencyDigest
from reqstorm.metrics.models import LatencyStats, RunSummary
from reqstorm.transport.http_client import HttpClient, HttpResponse

__version__ = "0.1.0"

__all__ = [
    "CancellationController",
    "HttpClient",
    "HttpResponse",
    "LatencyDigest",
    "LatencyStats",
    "LoadTestRunner",
    "Parameters",
    "ReqstormConfig",
    "RunSummary",
    "run_load_test",
]
