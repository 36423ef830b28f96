import asyncio
from typing import Awaitable, List, Optional, TypeVar
from urllib.parse import urlsplit

import structlog
from starlette.concurrency import run_in_threadpool

from url_shortener.cache.url_cache import URLCache
from url_shortener.config import Settings
from url_shortener.exceptions import (
    AllocationExhausted,
    InvalidInput,
    InvalidURL,
    NotFound,
    OperationTimeout,
    ShortCodeCollision,
)
from url_shortener.queue.event_queue import EventQueue
from url_shortener.queue.models import AnalyticsEvent
from url_shortener.schemas.url import URLRecord, URLStats
from url_shortener.services.code_allocator import UniqueCodeAllocator
from url_shortener.storage.strategies import URLStoreStrategy

logger = structlog.get_logger()

T = TypeVar("T")


def validate_long_url(long_url: Optional[str]) -> str:
    """Accept any URL with both a scheme and a host; raise InvalidInput otherwise."""
    if not long_url or not long_url.strip():
        raise InvalidInput("URL is required")

    try:
        parts = urlsplit(long_url)
    except ValueError as e:
        raise InvalidURL() from e

    if not parts.scheme or not parts.netloc or not parts.hostname:
        raise InvalidURL()
    return long_url


class URLService:
    """
    URL Service with dependency injection for store, cache and queue.

    - Store calls are blocking and run in the threadpool
    - Cache calls are async and never fail the request
    - Click recording is a non-blocking publish to the analytics queue

    Every public operation runs under a deadline and raises
    OperationTimeout when it expires.
    """

    def __init__(
        self,
        store: URLStoreStrategy,
        cache: URLCache,
        queue: EventQueue,
        allocator: UniqueCodeAllocator,
        settings: Settings,
    ):
        self.store = store
        self.cache = cache
        self.queue = queue
        self.allocator = allocator
        self.settings = settings

    async def _with_deadline(self, operation: str, awaitable: Awaitable[T], timeout: float) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as e:
            logger.warning("Operation timed out", operation=operation, timeout=timeout)
            raise OperationTimeout(operation, timeout) from e

    async def shorten(self, long_url: Optional[str]) -> URLRecord:
        """
        Return the record for long_url, creating it on first use.

        Re-shortening the same URL (exact string match) returns the
        existing record.
        """
        long_url = validate_long_url(long_url)
        return await self._with_deadline(
            "shorten", self._shorten(long_url), self.settings.request_timeout
        )

    async def _shorten(self, long_url: str) -> URLRecord:
        existing = await run_in_threadpool(self.store.get_by_long_url, long_url)
        if existing is not None:
            await self.cache.put(existing)
            return existing

        for attempt in range(1, self.settings.shorten_max_collisions + 1):
            short_code = await run_in_threadpool(self.allocator.allocate)
            try:
                record, created = await run_in_threadpool(self.store.get_or_insert, short_code, long_url)
            except ShortCodeCollision:
                # Another request inserted this code after our existence check
                logger.warning("Short code taken at insert, reallocating", short_code=short_code, attempt=attempt)
                continue

            await self.cache.put(record)
            if created:
                logger.info("Short URL created", short_code=record.short_code, long_url=long_url)
            return record

        raise AllocationExhausted("short code collided on every insert attempt")

    async def _lookup(self, short_code: str) -> URLRecord:
        """Read-through: cache first, then the store, repopulating the cache."""
        record = await self.cache.get(short_code)
        if record is not None:
            return record

        record = await run_in_threadpool(self.store.get_by_short_code, short_code)
        if record is None:
            raise NotFound()

        await self.cache.put(record)
        return record

    async def resolve(
        self,
        short_code: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> URLRecord:
        """
        Look up a short code for a redirect and record the click.

        The click is only queued here; the analytics worker persists it.
        """
        record = await self._with_deadline(
            "resolve", self._lookup(short_code), self.settings.redirect_timeout
        )
        self.queue.publish(
            AnalyticsEvent(short_code=record.short_code, ip_address=ip_address, user_agent=user_agent)
        )
        return record

    async def stats(self, short_code: str) -> URLStats:
        return await self._with_deadline(
            "stats", self._stats(short_code), self.settings.request_timeout
        )

    async def _stats(self, short_code: str) -> URLStats:
        record = await self._lookup(short_code)

        # Cached records carry a stale counter; read the live one
        clicks = await run_in_threadpool(self.store.get_clicks, short_code)
        if clicks is None:
            raise NotFound()

        analytics = await run_in_threadpool(
            self.store.recent_analytics, short_code, self.settings.stats_analytics_limit
        )
        return URLStats(
            short_code=record.short_code,
            long_url=record.long_url,
            clicks=clicks,
            created_at=record.created_at,
            analytics=analytics,
        )

    def clamp_limit(self, limit: Optional[int]) -> int:
        """Keep limit within (0, list_max_limit]; default when missing or not positive."""
        if limit is None or limit <= 0:
            return self.settings.list_default_limit
        return min(limit, self.settings.list_max_limit)

    async def list_urls(self, limit: Optional[int] = None) -> List[URLRecord]:
        return await self._with_deadline(
            "list",
            run_in_threadpool(self.store.list_recent, self.clamp_limit(limit)),
            self.settings.request_timeout,
        )

    def short_url(self, short_code: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{short_code}"
