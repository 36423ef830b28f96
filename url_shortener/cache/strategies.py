"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).
"""

import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError


class CacheUnavailable(Exception):
    """The cache backend could not serve the operation."""


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    All methods are async because cache operations involve I/O (network for Redis).
    Backend failures raise CacheUnavailable; deciding to degrade is up to the caller.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache.

        Returns:
            Cached value or None if not found
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int = 86400) -> bool:
        """
        Set value in cache with TTL (Time To Live) in seconds.
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Returns:
            True if deleted, False if key didn't exist
        """
        pass

    async def ping(self) -> bool:
        """Check the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend connections."""
        pass


class RedisCache(CacheStrategy):
    """
    Redis cache implementation on redis.asyncio.

    Shared by every instance of the service; entries expire server-side.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    @classmethod
    def from_url(cls, url: str, timeout: float = 2.0) -> "RedisCache":
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.redis.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"redis get failed: {e}") from e

    async def set(self, key: str, value: str, ttl: int = 86400) -> bool:
        try:
            return bool(await self.redis.set(key, value, ex=ttl))
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"redis set failed: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.redis.delete(key))
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"redis delete failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        await self.redis.aclose()


class InMemoryCache(CacheStrategy):
    """
    In-memory cache implementation using Python dict.

    Pros:
    - Very fast (no network overhead)
    - Good for development and testing

    Cons:
    - Not distributed (each process has its own cache)
    - Lost on restart

    Expired entries are dropped lazily when read.
    """

    def __init__(self, clock=time.monotonic):
        self._cache: Dict[str, Tuple[str, float]] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._cache.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: int = 86400) -> bool:
        self._cache[key] = (value, self._clock() + ttl)
        return True

    async def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._cache)


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    Used to run without a cache: every lookup goes to the store.
    """

    async def get(self, key: str) -> Optional[str]:
        """Always returns None (cache miss)"""
        return None

    async def set(self, key: str, value: str, ttl: int = 86400) -> bool:
        """Pretends to set but does nothing"""
        return True

    async def delete(self, key: str) -> bool:
        """Pretends to delete but does nothing"""
        return True
