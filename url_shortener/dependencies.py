"""
Service wiring and FastAPI dependencies.

Pattern: Dependency Injection
- The container owns every shared resource: one engine (connection pool),
  one cache client, one analytics queue and its worker
- It is built in the app lifespan and kept on app.state, never at import time
- Routes get the service through get_url_service()
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Request
from starlette.concurrency import run_in_threadpool

from url_shortener.cache.factory import CacheFactory, CacheBackend
from url_shortener.cache.url_cache import URLCache
from url_shortener.config import Settings
from url_shortener.database.connection import build_engine
from url_shortener.hit_processor.hit_worker import AnalyticsWorker
from url_shortener.queue.event_queue import EventQueue
from url_shortener.services.code_allocator import UniqueCodeAllocator
from url_shortener.services.short_code_strategies import ShortCodeStrategy
from url_shortener.services.url_service import URLService
from url_shortener.storage.strategies import URLStoreStrategy, SQLAlchemyURLStore

logger = structlog.get_logger()


@dataclass
class ServiceContainer:
    settings: Settings
    store: URLStoreStrategy
    cache: URLCache
    queue: EventQueue
    worker: AnalyticsWorker
    url_service: URLService

    async def start(self) -> None:
        await self.worker.start()

    async def stop(self) -> None:
        """Drain analytics first: the final flush still needs the store."""
        await self.worker.stop()
        await self.cache.close()
        await run_in_threadpool(self.store.dispose)
        logger.info("Services stopped")


async def build_services(
    settings: Settings,
    store: Optional[URLStoreStrategy] = None,
    code_strategy: Optional[ShortCodeStrategy] = None,
) -> ServiceContainer:
    """
    Build and connect every service for one application instance.

    Args:
        settings: Application settings
        store: Store to use instead of one built from settings.database_url
        code_strategy: Short code strategy for the allocator (random by default)
    """
    if store is None:
        engine = build_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            echo=settings.debug,
        )
        store = SQLAlchemyURLStore(engine)
    await run_in_threadpool(store.create_schema)

    backend = await CacheFactory.create(CacheBackend(settings.cache_backend), settings)
    cache = URLCache(backend, ttl=settings.cache_ttl, timeout=settings.cache_timeout)

    queue = EventQueue(maxsize=settings.analytics_queue_size)
    worker = AnalyticsWorker(
        queue=queue,
        store=store,
        batch_size=settings.analytics_batch_size,
        flush_interval=settings.analytics_flush_interval,
        shutdown_timeout=settings.analytics_shutdown_timeout,
    )

    allocator = UniqueCodeAllocator(
        store=store,
        strategy=code_strategy,
        base_length=settings.short_code_length,
        extra_lengths=settings.short_code_extra_lengths,
        max_attempts=settings.short_code_max_attempts,
    )

    url_service = URLService(
        store=store,
        cache=cache,
        queue=queue,
        allocator=allocator,
        settings=settings,
    )

    return ServiceContainer(
        settings=settings,
        store=store,
        cache=cache,
        queue=queue,
        worker=worker,
        url_service=url_service,
    )


def get_url_service(request: Request) -> URLService:
    """Get the URLService of the running application."""
    return request.app.state.services.url_service
