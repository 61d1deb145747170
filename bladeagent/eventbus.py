"""A small topic-based publish/subscribe bus for asyncio code.

Publishing never blocks: a message goes to a receiver that is already
waiting, otherwise into the subscriber's buffer, and is dropped when the
buffer is full.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from typing import Any

Filter = Callable[[Any], bool]


def match_all(message: Any) -> bool:
    """Filter that accepts every message."""
    return True


class Subscriber:
    """A subscription with a bounded receive buffer."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("buffer size must not be negative")
        self.capacity = capacity
        self._buffer: deque[Any] = deque()
        self._waiters: deque[asyncio.Future[Any]] = deque()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._buffer)

    def __enter__(self) -> Subscriber:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()

    def _offer(self, message: Any) -> None:
        if self._closed:
            return
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(message)
                return
        if len(self._buffer) < self.capacity:
            self._buffer.append(message)

    async def receive(self) -> Any:
        """Wait for the next message; raise EOFError once closed and drained."""
        if self._buffer:
            return self._buffer.popleft()
        if self._closed:
            raise EOFError("subscription closed")
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        return await waiter

    def receive_nowait(self) -> Any:
        """Return a buffered message, raising asyncio.QueueEmpty if none."""
        if self._buffer:
            return self._buffer.popleft()
        if self._closed:
            raise EOFError("subscription closed")
        raise asyncio.QueueEmpty()

    def unsubscribe(self) -> None:
        """Close the subscription; buffered messages stay readable."""
        self._closed = True
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(EOFError("subscription closed"))


class EventBus:
    """Routes messages published on a topic to that topic's subscribers."""

    def __init__(self) -> None:
        self._subscribers: dict[str, dict[Subscriber, Filter]] = {}

    def publish(self, topic: str, message: Any) -> None:
        """Deliver a message best-effort to every matching subscriber."""
        subscribers = self._subscribers.get(topic)
        if not subscribers:
            return
        for subscriber, accepts in list(subscribers.items()):
            if subscriber.closed:
                del subscribers[subscriber]
                continue
            if accepts(message):
                subscriber._offer(message)

    def subscribe(
        self, topic: str, buf_size: int, filter: Filter = match_all
    ) -> Subscriber:
        """Subscribe to a topic with the given buffer size and filter."""
        subscriber = Subscriber(buf_size)
        self._subscribers.setdefault(topic, {})[subscriber] = filter
        return subscriber