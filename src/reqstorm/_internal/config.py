"""Configuration loading and run parameters for reqstorm."""

from __future__ import annotations

import os
from dataclasses import dataclass

from reqstorm._internal.errors import ConfigError


@dataclass(frozen=True)
class ReqstormConfig:
    """Environment-level reqstorm configuration.

    Attributes:
        request_timeout: Transport timeout for a single request, in seconds.
        connection_pool_size: Minimum connection limit of the shared client.
            The effective limit is never below the worker count.
        ramp_up_seconds: Window over which worker start-up is staggered.
        log_level: Logging level name used when ``--verbose`` is not given.
    """

    request_timeout: float = 30.0
    connection_pool_size: int = 100
    ramp_up_seconds: float = 1.0
    log_level: str = "INFO"


@dataclass(frozen=True)
class Parameters:
    """Immutable configuration of one load test run.

    Attributes:
        path: Absolute URL every worker sends GET requests to.
        requests: Total number of requests to issue.
        concurrency: Number of workers.
        precision: Decimal places used in the latency report.
        ramp_up_seconds: Window over which worker start-up is staggered.
    """

    path: str
    requests: int = 100
    concurrency: int = 10
    precision: int = 7
    ramp_up_seconds: float = 1.0

    def __post_init__(self) -> None:
        if not self.path:
            msg = "A target URL is required"
            raise ConfigError(msg)
        if self.requests < 0:
            msg = f"requests must be >= 0, got: {self.requests}"
            raise ConfigError(msg)
        if self.concurrency < 1:
            msg = f"concurrency must be >= 1, got: {self.concurrency}"
            raise ConfigError(msg)
        if self.precision < 0:
            msg = f"precision must be >= 0, got: {self.precision}"
            raise ConfigError(msg)
        if self.ramp_up_seconds < 0:
            msg = f"ramp_up_seconds must be >= 0, got: {self.ramp_up_seconds}"
            raise ConfigError(msg)


def _read_float(name: str, default: str, *, allow_zero: bool) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None

    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        msg = f"{name} must be {qualifier}, got: {value}"
        raise ConfigError(msg)
    return value


def load_config() -> ReqstormConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        REQSTORM_TIMEOUT: Request timeout in seconds (default: 30.0).
        REQSTORM_POOL_SIZE: Connection pool size (default: 100).
        REQSTORM_RAMP_UP: Ramp-up window in seconds (default: 1.0).
        REQSTORM_LOG_LEVEL: Logging level name (default: INFO).

    Returns:
        Populated ReqstormConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    pool_size_str = os.environ.get("REQSTORM_POOL_SIZE", "100")
    try:
        pool_size = int(pool_size_str)
    except ValueError:
        msg = f"REQSTORM_POOL_SIZE must be an integer, got: {pool_size_str!r}"
        raise ConfigError(msg) from None

    if pool_size < 1:
        msg = f"REQSTORM_POOL_SIZE must be >= 1, got: {pool_size}"
        raise ConfigError(msg)

    return ReqstormConfig(
        request_timeout=_read_float("REQSTORM_TIMEOUT", "30.0", allow_zero=False),
        connection_pool_size=pool_size,
        ramp_up_seconds=_read_float("REQSTORM_RAMP_UP", "1.0", allow_zero=True),
        log_level=os.environ.get("REQSTORM_LOG_LEVEL", "INFO"),
    )
