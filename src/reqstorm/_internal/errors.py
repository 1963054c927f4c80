"""Custom exception hierarchy for reqstorm."""

from __future__ import annotations


class ReqstormError(Exception):
    """Base exception for all reqstorm errors.

    All custom exceptions in reqstorm inherit from this class, making it
    easy to catch any reqstorm-specific error with a single except clause.
    """


class ConfigError(ReqstormError):
    """Raised when configuration or run parameters are invalid.

    Examples:
        - An environment variable has an invalid value.
        - The request count is negative or the concurrency is zero.
        - The target URL is not an absolute http(s) URL.
    """


class EngineError(ReqstormError):
    """Raised when the load test engine cannot start or fails mid-run."""


class ChannelClosedError(EngineError):
    """Raised when a value is sent on a channel that is already closed.

    A correct worker lifecycle never does this, so the run is failed
    instead of dropping the value.
    """


class ProtocolError(EngineError):
    """Raised when a worker's event stream breaks the lifecycle ordering.

    Examples:
        - A worker reports ``Started`` twice.
        - A worker reports anything after ``Died`` or ``Stopped``.
    """


class TransportError(ReqstormError):
    """Raised by the HTTP client when no response could be obtained.

    Covers connection refusal, DNS failures and transport timeouts. HTTP
    error statuses are responses, not transport errors.
    """
