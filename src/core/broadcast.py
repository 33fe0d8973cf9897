"""In-process realtime fan-out of recorded messages.

Publishing is fire-and-forget: each live subscriber owns a bounded queue and
events are never replayed to subscribers that join later. Clients that need
history issue an explicit fetch through the query surface.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from core.models import BroadcastEvent

LOGGER = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """Async iterator over events published after ``subscribe()``."""

    def __init__(self, broadcaster: "Broadcaster", max_pending: int) -> None:
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.closed = False

    def _offer(self, event: BroadcastEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self, timeout: Optional[float] = None) -> Optional[BroadcastEvent]:
        """Wait for the next event; None once the subscription is closed."""

        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            return None
        return item

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._broadcaster._unsubscribe(self)
        # Wake a consumer blocked in get(); a full queue gives up its oldest
        # event so the end marker always fits.
        if self._queue.full():
            self._queue.get_nowait()
            LOGGER.warning("Subscriber queue full on close, dropping one pending event")
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[BroadcastEvent]:
        return self

    async def __anext__(self) -> BroadcastEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class Broadcaster:
    """Fans out events to every currently connected subscriber."""

    def __init__(self, max_pending: int = 1000) -> None:
        self._max_pending = max_pending
        self._subscribers: list[Subscription] = []

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self._max_pending)
        self._subscribers.append(subscription)
        LOGGER.debug("Subscriber joined (%s active)", len(self._subscribers))
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: BroadcastEvent) -> int:
        """Deliver ``event`` to all subscribers; returns how many accepted it."""

        delivered = 0
        for subscription in list(self._subscribers):
            if subscription._offer(event):
                delivered += 1
            else:
                LOGGER.warning("Subscriber queue full, dropping %s", type(event).__name__)
        return delivered

    def close(self) -> None:
        """Close every subscription, ending their iterators."""

        for subscription in list(self._subscribers):
            subscription.close()
