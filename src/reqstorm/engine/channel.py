"""Bounded, closable asyncio channel with reference-counted senders.

``asyncio.Queue`` has no notion of "no more items", which is the signal both
the worker pool and the aggregator finish on. ``Channel`` adds it: every
producer takes a ``Sender`` handle, and the channel closes once the last
handle is closed. Receivers then drain what is buffered and get ``None``.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Generic, TypeVar

from reqstorm._internal.errors import ChannelClosedError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

T = TypeVar("T")


class Channel(Generic[T]):
    """Many-producer, many-consumer bounded FIFO channel.

    ``None`` is reserved as the end-of-stream marker returned by ``recv``
    and must not be sent.

    Attributes:
        capacity: Maximum number of buffered items.
    """

    def __init__(self, capacity: int, *, name: str = "channel") -> None:
        """Initialize the channel.

        Args:
            capacity: Maximum number of buffered items. Values below 1 are
                raised to 1.
            name: Label used in error messages.
        """
        self.capacity = max(capacity, 1)
        self.name = name
        self._items: deque[T] = deque()
        self._cond = asyncio.Condition()
        self._senders = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        """Return True once the last sender has been closed."""
        return self._closed

    def __len__(self) -> int:
        """Return the number of buffered items."""
        return len(self._items)

    def sender(self) -> Sender[T]:
        """Create a new producer handle.

        Raises:
            ChannelClosedError: If the channel has already closed.
        """
        if self._closed:
            msg = f"Cannot open a sender on closed {self.name}"
            raise ChannelClosedError(msg)
        self._senders += 1
        return Sender(self)

    async def _send(self, item: T) -> None:
        async with self._cond:
            await self._cond.wait_for(
                lambda: self._closed or len(self._items) < self.capacity
            )
            if self._closed:
                msg = f"Send on closed {self.name}"
                raise ChannelClosedError(msg)
            self._items.append(item)
            self._cond.notify_all()

    async def _release(self) -> None:
        async with self._cond:
            self._senders -= 1
            if self._senders == 0:
                self._closed = True
                self._cond.notify_all()

    async def recv(self) -> T | None:
        """Receive the next item, waiting while the channel is empty.

        Returns:
            The next item, or None once the channel is closed and drained.
        """
        async with self._cond:
            await self._cond.wait_for(lambda: bool(self._items) or self._closed)
            if not self._items:
                return None
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            item = await self.recv()
            if item is None:
                return
            yield item


class Sender(Generic[T]):
    """Producer handle of a ``Channel``.

    Usable as an async context manager; leaving the block closes the
    handle.
    """

    def __init__(self, channel: Channel[T]) -> None:
        self._channel = channel
        self._open = True

    async def send(self, item: T) -> None:
        """Buffer ``item``, waiting while the channel is full.

        Raises:
            ChannelClosedError: If this handle or the channel is closed.
        """
        if not self._open:
            msg = f"Send on a closed sender of {self._channel.name}"
            raise ChannelClosedError(msg)
        await self._channel._send(item)  # noqa: SLF001

    async def close(self) -> None:
        """Close this handle. Closing twice is a no-op."""
        if self._open:
            self._open = False
            await self._channel._release()  # noqa: SLF001

    async def __aenter__(self) -> Sender[T]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.close()
