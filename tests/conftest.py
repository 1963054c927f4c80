"""Shared test fixtures for the reqstorm test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

from reqstorm._internal.errors import TransportError
from reqstorm.transport.http_client import HttpResponse

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


@pytest.fixture
def closed_port_url() -> str:
    """URL of a localhost port nothing listens on."""
    return f"http://127.0.0.1:{_get_free_port()}/health"


# =============================================================================
# Test HTTP server handlers
# =============================================================================


async def _health_handler(request: web.Request) -> web.Response:
    """Simple health check endpoint."""
    return web.json_response({"status": "ok"})


async def _delay_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _status_handler(request: web.Request) -> web.Response:
    """Return a configurable status (query param: ?code=503)."""
    status = int(request.query.get("code", "500"))
    return web.json_response({"status": status}, status=status)


def _create_test_app() -> web.Application:
    """Build the test server app with all routes."""
    app = web.Application()
    app.router.add_get("/health", _health_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_get("/status", _status_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def http_server() -> AsyncIterator[str]:
    """Aiohttp test server running on the test's event loop.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    app = _create_test_app()
    port = _get_free_port()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def sync_http_server() -> Iterator[str]:
    """Test server running in a background thread.

    Needed by tests that block the main thread, such as CLI tests that
    call ``asyncio.run`` themselves.
    """
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        app = _create_test_app()
        runner = web.AppRunner(app)
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


# =============================================================================
# Scripted transport
# =============================================================================


class FakeTransport:
    """In-memory ``HttpTransport`` with scripted latency and failures.

    Attributes:
        latency: Seconds each ``get`` takes.
        status_code: Status returned for successful requests.
        fail_first: Number of initial ``get`` calls that raise
            ``TransportError``.
        calls: Number of ``get`` calls made so far.
        in_flight: Requests currently awaiting their response.
        max_in_flight: Highest ``in_flight`` value observed.
    """

    def __init__(
        self,
        *,
        latency: float = 0.0,
        status_code: int = 200,
        fail_first: int = 0,
    ) -> None:
        self.latency = latency
        self.status_code = status_code
        self.fail_first = fail_first
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def __aenter__(self) -> FakeTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def get(self, path: str) -> HttpResponse:
        self.calls += 1
        if self.calls <= self.fail_first:
            msg = f"ClientConnectorError: cannot connect to {path}"
            raise TransportError(msg)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency > 0:
                await asyncio.sleep(self.latency)
        finally:
            self.in_flight -= 1
        return HttpResponse(status_code=self.status_code)


@pytest.fixture
def transport_factory() -> type[FakeTransport]:
    """Return the scripted transport class for tests to configure."""
    return FakeTransport
