"""
Analytics Worker

Drains click events from the in-memory queue and persists them in batches,
off the redirect path.

Architecture:
- One background asyncio task per process
- A batch is flushed when it reaches batch_size events, or when
  flush_interval seconds have passed since the last flush
- Each flush is one store transaction (counter increments + analytics rows)
- Shutdown closes the queue, drains what is buffered, then exits
"""

import asyncio
import time
from typing import List, Optional

import structlog
from starlette.concurrency import run_in_threadpool

from url_shortener.exceptions import StoreError
from url_shortener.queue.event_queue import EventQueue
from url_shortener.queue.models import AnalyticsEvent
from url_shortener.storage.strategies import URLStoreStrategy

logger = structlog.get_logger()


class AnalyticsWorker:
    """
    Single consumer of the analytics queue.

    The only writer of click counters: redirects never touch the counter,
    so concurrent clicks on the same code cannot race on it.
    """

    def __init__(
        self,
        queue: EventQueue,
        store: URLStoreStrategy,
        batch_size: int = 50,
        flush_interval: float = 0.1,
        shutdown_timeout: float = 10.0,
    ):
        self.queue = queue
        self.store = store
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.shutdown_timeout = shutdown_timeout

        self._task: Optional[asyncio.Task] = None
        self._stopping = False

        self.batches_flushed = 0
        self.batches_failed = 0
        self.events_applied = 0
        self.events_skipped = 0
        self.events_lost = 0

    async def start(self) -> None:
        """Start the drain loop in a background task."""
        if self._task is not None:
            logger.warning("Analytics worker already running")
            return

        self._stopping = False
        self._task = asyncio.create_task(self._drain_loop(), name="analytics-worker")
        logger.info(
            "Analytics worker started",
            batch_size=self.batch_size,
            flush_interval=self.flush_interval,
            queue_capacity=self.queue.maxsize,
        )

    async def stop(self) -> None:
        """
        Stop accepting events, flush everything still queued, then exit.

        Waits at most shutdown_timeout seconds; whatever is left after that
        is lost and logged.
        """
        if self._task is None:
            return

        self._stopping = True
        self.queue.close()

        try:
            await asyncio.wait_for(asyncio.shield(self._task), self.shutdown_timeout)
        except asyncio.TimeoutError:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self.events_lost += self.queue.qsize()
            logger.error(
                "Analytics worker did not drain before shutdown timeout",
                pending=self.queue.qsize(),
                timeout=self.shutdown_timeout,
            )

        self._task = None
        logger.info("Analytics worker stopped", **self.stats)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _drain_loop(self) -> None:
        loop = asyncio.get_running_loop()
        batch: List[AnalyticsEvent] = []
        deadline = loop.time() + self.flush_interval

        try:
            while not (self._stopping and self.queue.empty()):
                timeout = 0.0 if self._stopping else max(0.0, deadline - loop.time())
                event = await self.queue.get(timeout)
                if event is not None:
                    batch.append(event)
                    batch.extend(self.queue.drain_nowait(self.batch_size - len(batch)))

                if len(batch) >= self.batch_size or loop.time() >= deadline or self._stopping:
                    if batch:
                        await self._flush(batch)
                        batch = []
                    deadline = loop.time() + self.flush_interval

            # Final flush
            if batch:
                await self._flush(batch)
        except asyncio.CancelledError:
            # Taken off the queue but never confirmed as written
            self.events_lost += len(batch)
            raise

    async def _flush(self, batch: List[AnalyticsEvent]) -> None:
        start_time = time.perf_counter()
        try:
            report = await run_in_threadpool(self.store.record_clicks, batch)
        except StoreError as e:
            self.batches_failed += 1
            self.events_lost += len(batch)
            logger.error("Analytics batch lost", count=len(batch), error=str(e))
            return
        except Exception as e:
            # Keep the loop alive: one bad batch must not stop analytics for good
            self.batches_failed += 1
            self.events_lost += len(batch)
            logger.exception("Unexpected error flushing analytics batch", count=len(batch), error=str(e))
            return

        self.batches_flushed += 1
        self.events_applied += report.applied
        self.events_skipped += report.skipped
        logger.debug(
            "Analytics batch flushed",
            count=len(batch),
            applied=report.applied,
            skipped=report.skipped,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )

    @property
    def stats(self) -> dict:
        return {
            "running": self.is_running,
            "batches_flushed": self.batches_flushed,
            "batches_failed": self.batches_failed,
            "events_applied": self.events_applied,
            "events_skipped": self.events_skipped,
            "events_lost": self.events_lost,
            "queue": self.queue.stats,
        }
