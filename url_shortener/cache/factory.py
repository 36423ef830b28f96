"""
Factory for creating cache instances.
"""

from enum import Enum

import structlog

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from url_shortener.config import Settings

logger = structlog.get_logger()


class CacheBackend(Enum):
    """Available cache backends"""
    REDIS = "redis"
    MEMORY = "memory"
    NULL = "null"


class CacheFactory:
    """
    Simple factory for creating cache instances.

    Each call builds a new backend; the service container owns it.
    """

    @classmethod
    async def create(cls, backend: CacheBackend, settings: Settings) -> CacheStrategy:
        """
        Create a cache backend.

        A Redis backend that does not answer a ping at startup is replaced
        by the in-memory cache.
        """
        if backend == CacheBackend.REDIS:
            cache = RedisCache.from_url(settings.redis_url, timeout=settings.cache_timeout)
            if await cache.ping():
                logger.info("Redis cache initialized", redis_url=settings.redis_url)
                return cache

            await cache.close()
            logger.warning(
                "Redis connection failed, falling back to in-memory cache",
                redis_url=settings.redis_url,
            )
            return InMemoryCache()

        if backend == CacheBackend.MEMORY:
            logger.info("In-memory cache initialized")
            return InMemoryCache()

        if backend == CacheBackend.NULL:
            logger.info("Null cache initialized")
            return NullCache()

        raise ValueError(f"Unknown cache backend: {backend}")
