"""Shared aiohttp client used by every worker."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import aiohttp
from yarl import URL

from reqstorm._internal.errors import ConfigError, EngineError, TransportError

if TYPE_CHECKING:
    from types import TracebackType


@dataclass(frozen=True)
class HttpResponse:
    """The part of an HTTP response the engine keeps.

    Attributes:
        status_code: Numeric HTTP status.
        content_length: Number of body bytes read.
    """

    status_code: int
    content_length: int = 0


class HttpTransport(Protocol):
    """Anything that can GET a URL on behalf of the workers."""

    async def get(self, path: str) -> HttpResponse:
        """Send a GET request.

        Raises:
            TransportError: If no response could be obtained.
        """
        ...


def validate_url(path: str) -> URL:
    """Parse ``path`` as an absolute http(s) URL.

    Args:
        path: URL given on the command line.

    Returns:
        The parsed URL.

    Raises:
        ConfigError: If the URL is not absolute or not http(s).
    """
    try:
        url = URL(path)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid target URL {path!r}: {exc}"
        raise ConfigError(msg) from exc

    if not url.is_absolute() or url.scheme not in ("http", "https") or not url.host:
        msg = f"Target URL must be an absolute http:// or https:// URL, got: {path!r}"
        raise ConfigError(msg)
    return url


class HttpClient:
    """Async HTTP client wrapping a single ``aiohttp.ClientSession``.

    One instance is shared by all workers. The session's connector pools
    connections, so it is sized to at least the worker count.

    Attributes:
        timeout: Total per-request timeout in seconds, enforced by aiohttp.
        pool_size: Connection limit of the underlying connector.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        pool_size: int = 100,
    ) -> None:
        """Initialize the client.

        Args:
            timeout: Total per-request timeout in seconds.
            pool_size: Maximum number of simultaneous connections.
        """
        self.timeout = timeout
        self.pool_size = pool_size
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session.

        Raises:
            EngineError: If the session cannot be created.
        """
        try:
            connector = aiohttp.TCPConnector(limit=self.pool_size)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        except (ValueError, OSError, RuntimeError) as exc:
            msg = f"Could not create HTTP client: {exc}"
            raise EngineError(msg) from exc
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self, path: str) -> HttpResponse:
        """Send a GET request and read the whole body.

        Args:
            path: Absolute URL to request.

        Returns:
            The response status and body size.

        Raises:
            TransportError: On connection, DNS or timeout failures.
            RuntimeError: If the client is used outside of an async context
                manager.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        try:
            async with self._session.get(path) as resp:
                body = await resp.read()
                return HttpResponse(status_code=resp.status, content_length=len(body))
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
