"""Per-job broadcast of progress and terminal events.

Every subscriber owns an unbounded queue, so publishing never waits on a
slow reader and events published while nobody listens are simply dropped.
The channel remembers the last event: a late subscriber starts with it,
and after the terminal event a subscriber receives only that event.

Channels are not thread-safe; use them from the event loop thread.
"""

import asyncio

from ..events import JobEvent

_CLOSED = object()


class Subscription:
    """Receive end of a JobChannel.

    Iterate with ``async for``; iteration stops after the terminal event or
    after close(). Also usable as an async context manager that closes on exit.
    """

    def __init__(self, channel: "JobChannel"):
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue()
        self._finished = False
        self._closed = False

    def _deliver(self, event) -> None:
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Stop receiving events. Does not affect the publisher or other subscribers."""
        if not self._closed:
            self._closed = True
            self._finished = True
            # Wakes a reader blocked in __anext__
            self._queue.put_nowait(_CLOSED)
        self._channel._remove(self)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> JobEvent:
        if self._closed or (self._finished and self._queue.empty()):
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        if event.terminal:
            self._finished = True
            self._channel._remove(self)
        return event

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class JobChannel:
    """Broadcast channel with any number of independent receivers."""

    def __init__(self):
        self._subscribers: list[Subscription] = []
        self._last_event: JobEvent | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def last_event(self) -> JobEvent | None:
        return self._last_event

    @property
    def is_closed(self) -> bool:
        return self._last_event is not None and self._last_event.terminal

    def subscribe(self) -> Subscription:
        """Register a new receiver, primed with the last known event."""
        subscription = Subscription(self)
        if self._last_event is not None:
            subscription._deliver(self._last_event)
        if not self.is_closed:
            self._subscribers.append(subscription)
        return subscription

    def publish(self, event: JobEvent) -> None:
        """Deliver an event to all current subscribers without waiting."""
        if self.is_closed:
            raise RuntimeError("Cannot publish after the terminal event")
        self._last_event = event
        subscribers = list(self._subscribers)
        if event.terminal:
            self._subscribers.clear()
        for subscription in subscribers:
            subscription._deliver(event)

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
