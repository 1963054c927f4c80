"""Process-wide cooperative cancellation flag."""

from __future__ import annotations

import asyncio
import signal
import sys
import threading

from reqstorm._internal.logging import get_logger

logger = get_logger("engine.cancellation")

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationController:
    """One-shot flag flipped from "running" to "cancelled".

    Workers poll ``is_cancelled`` before each request. Nothing ever waits
    on the flag, and in-flight requests are left to finish.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_cancelled(self) -> bool:
        """Return True once cancellation has been requested."""
        return self._event.is_set()

    def cancel(self, reason: str = "requested") -> bool:
        """Request cancellation.

        Args:
            reason: Short description used in the log line.

        Returns:
            True if this call flipped the flag, False if it was already set.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
        logger.info("Cancellation %s, workers will stop before their next request", reason)
        return True

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route SIGINT and SIGTERM to ``cancel``.

        Args:
            loop: The running event loop.
        """

        def _signal_handler(signum: int) -> None:
            self.cancel(f"on signal {signal.Signals(signum).name}")

        if sys.platform != "win32":
            for sig in _SIGNALS:
                loop.add_signal_handler(sig, _signal_handler, sig)
        else:
            # Windows doesn't support add_signal_handler
            for sig in _SIGNALS:
                signal.signal(sig, lambda s, _f: _signal_handler(s))

    def remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Restore the default SIGINT and SIGTERM behaviour.

        Args:
            loop: The running event loop.
        """
        if sys.platform != "win32":
            for sig in _SIGNALS:
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
