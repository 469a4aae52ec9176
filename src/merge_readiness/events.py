"""Bounded event channels for breaker and poller observability.

Publishing never blocks: each subscriber owns a bounded queue and, when that
queue is full, the oldest pending event is discarded and counted in
``Subscription.dropped``. Closing a subscription ends its async iteration.
"""

from __future__ import annotations

import asyncio
from types import TracebackType
from typing import Generic, TypeVar

E = TypeVar("E")

DEFAULT_SUBSCRIPTION_SIZE = 256

_CLOSED = object()


class Subscription(Generic[E]):
    """One subscriber's bounded view of an ``EventChannel``."""

    def __init__(self, channel: EventChannel[E], *, maxsize: int) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._channel = channel
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        """Return true once the subscription has been closed."""
        return self._closed

    def _push(self, item: object) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(item)

    def _offer(self, event: E) -> None:
        if self._closed:
            return
        self._push(event)

    def drain(self) -> list[E]:
        """Return all pending events without waiting."""
        events: list[E] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                continue
            events.append(item)  # type: ignore[arg-type]
        return events

    def close(self) -> None:
        """Unsubscribe from the channel and end iteration."""
        if self._closed:
            return
        self._closed = True
        self._channel._discard(self)
        self._push(_CLOSED)

    def __aiter__(self) -> Subscription[E]:
        return self

    async def __anext__(self) -> E:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    def __enter__(self) -> Subscription[E]:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    async def __aenter__(self) -> Subscription[E]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class EventChannel(Generic[E]):
    """Fan-out channel delivering published events to every subscription."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription[E]] = []

    @property
    def subscriber_count(self) -> int:
        """Return the number of open subscriptions."""
        return len(self._subscriptions)

    def subscribe(self, *, maxsize: int = DEFAULT_SUBSCRIPTION_SIZE) -> Subscription[E]:
        """Open a new bounded subscription."""
        subscription = Subscription(self, maxsize=maxsize)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: E) -> None:
        """Deliver ``event`` to every open subscription without blocking."""
        for subscription in tuple(self._subscriptions):
            subscription._offer(event)

    def close(self) -> None:
        """Close every open subscription."""
        for subscription in tuple(self._subscriptions):
            subscription.close()

    def _discard(self, subscription: Subscription[E]) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
