"""
Read-through cache of URL records on top of a cache backend.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog
from pydantic import ValidationError

from .strategies import CacheStrategy, CacheUnavailable
from url_shortener.schemas.url import URLRecord

logger = structlog.get_logger()

DEFAULT_TTL = 24 * 60 * 60
DEFAULT_TIMEOUT = 0.2

T = TypeVar("T")


class URLCache:
    """
    Maps short code -> URLRecord, stored as the record's JSON.

    Never raises: an unreachable or hung backend, or a corrupt entry, is
    logged and reported as a miss, so lookups fall through to the store.
    Each backend call is bounded by timeout seconds.
    """

    key_prefix = "url:"

    def __init__(self, backend: CacheStrategy, ttl: int = DEFAULT_TTL, timeout: float = DEFAULT_TIMEOUT):
        self.backend = backend
        self.ttl = ttl
        self.timeout = timeout
        self.hits = 0
        self.misses = 0
        self.errors = 0

    def _key(self, short_code: str) -> str:
        return f"{self.key_prefix}{short_code}"

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as e:
            raise CacheUnavailable(f"cache {operation} timed out after {self.timeout}s") from e

    async def get(self, short_code: str) -> Optional[URLRecord]:
        key = self._key(short_code)
        try:
            raw = await self._call("get", self.backend.get(key))
        except CacheUnavailable as e:
            self.errors += 1
            self.misses += 1
            logger.warning("Cache read failed, using store", short_code=short_code, error=str(e))
            return None

        if raw is None:
            self.misses += 1
            return None

        try:
            record = URLRecord.model_validate_json(raw)
        except ValidationError as e:
            self.misses += 1
            logger.warning("Corrupt cache entry treated as miss", short_code=short_code, error=str(e))
            await self._discard(key)
            return None

        self.hits += 1
        return record

    async def put(self, record: URLRecord, ttl: Optional[int] = None) -> bool:
        try:
            return await self._call(
                "set",
                self.backend.set(self._key(record.short_code), record.model_dump_json(), ttl=ttl or self.ttl),
            )
        except CacheUnavailable as e:
            self.errors += 1
            logger.warning("Cache write failed", short_code=record.short_code, error=str(e))
            return False

    async def _discard(self, key: str) -> None:
        try:
            await self._call("delete", self.backend.delete(key))
        except CacheUnavailable as e:
            self.errors += 1
            logger.warning("Cache delete failed", key=key, error=str(e))

    async def close(self) -> None:
        await self.backend.close()

    @property
    def stats(self) -> dict:
        return {"hits": self.hits, "misses": self.misses, "errors": self.errors}
