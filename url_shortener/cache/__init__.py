"""
Cache module for URL shortener.
Implements Strategy Pattern for flexible cache backends.
"""

from .strategies import CacheStrategy, CacheUnavailable, RedisCache, InMemoryCache, NullCache
from .factory import CacheFactory, CacheBackend
from .url_cache import URLCache

__all__ = [
    "CacheStrategy",
    "CacheUnavailable",
    "RedisCache",
    "InMemoryCache",
    "NullCache",
    "CacheFactory",
    "CacheBackend",
    "URLCache",
]
