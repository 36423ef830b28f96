"""
Bounded in-memory queue between the redirect path and the analytics worker.
"""

import asyncio
from typing import List, Optional

import structlog

from .models import AnalyticsEvent, EnqueueResult

logger = structlog.get_logger()


class EventQueue:
    """
    Bounded asyncio queue of AnalyticsEvent.

    Producers call publish(), which never waits: when the queue is full or
    closed the event is dropped and DROPPED is returned. A single consumer
    (the analytics worker) reads with get() and drain_nowait().

    All methods must be called from the event loop that runs the app.
    """

    def __init__(self, maxsize: int = 1000):
        if maxsize < 1:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._closed_event = asyncio.Event()
        self.accepted = 0
        self.dropped = 0

    def publish(self, event: AnalyticsEvent) -> EnqueueResult:
        """Enqueue an event without blocking. Never raises."""
        if self._closed:
            self.dropped += 1
            logger.warning("Analytics queue closed, dropping event", short_code=event.short_code)
            return EnqueueResult.DROPPED

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Analytics queue full, dropping event",
                short_code=event.short_code,
                capacity=self.maxsize,
                dropped_total=self.dropped,
            )
            return EnqueueResult.DROPPED

        self.accepted += 1
        return EnqueueResult.ACCEPTED

    async def get(self, timeout: float) -> Optional[AnalyticsEvent]:
        """
        Wait up to timeout seconds for one event.

        Returns None on timeout, and as soon as the queue is closed while
        empty. An already queued event is returned without suspending, even
        when timeout is zero.
        """
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            pass

        if timeout <= 0 or self._closed:
            return None

        getter = asyncio.ensure_future(self._queue.get())
        closer = asyncio.ensure_future(self._closed_event.wait())
        try:
            done, _ = await asyncio.wait(
                {getter, closer}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            closer.cancel()
            if not getter.done():
                getter.cancel()

        if getter in done:
            return getter.result()
        return None

    def drain_nowait(self, limit: int) -> List[AnalyticsEvent]:
        """Take up to limit queued events without waiting."""
        events = []
        while len(events) < limit:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return events

    def close(self) -> None:
        """Stop accepting events. Queued events stay available to the consumer."""
        self._closed = True
        self._closed_event.set()

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    @property
    def stats(self) -> dict:
        return {
            "capacity": self.maxsize,
            "pending": self.qsize(),
            "accepted": self.accepted,
            "dropped": self.dropped,
            "closed": self._closed,
        }
