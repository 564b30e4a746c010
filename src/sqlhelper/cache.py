"""
Unified caching for mapping metadata.

Schema descriptors are computed once per model type and kept in a named
cache. Uses cachetools caches (LRU, or TTL when a lifetime is given).
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Unified cache manager for the sqlhelper package.

    Thread-safe singleton that manages all named caches.
    """

    _instance = None
    _caches: dict[str, cachetools.Cache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 256,
                  ttl: int | None = None) -> cachetools.Cache:
        """Get or create a cache with the given name.

        Args:
            name: Name of the cache
            maxsize: Maximum cache size
            ttl: Time-to-live in seconds, or None for an LRU cache without expiry

        Returns
            cachetools cache instance
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    if ttl is None:
                        self._caches[name] = cachetools.LRUCache(maxsize=maxsize)
                    else:
                        self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return self._caches[name]

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()


def cached_by_type(cache_name: str, maxsize: int = 256):
    """Decorator caching a one-argument function keyed by a type.

    The wrapped function is called at most once per type until the cache
    is cleared. Exceptions are not cached.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(model):
            manager = Cache.get_instance()
            cache = manager.get_cache(cache_name, maxsize=maxsize)
            with manager.lock:
                if model in cache:
                    return cache[model]
            logger.debug(f'Cache miss for {func.__name__}({model.__qualname__})')
            result = func(model)
            with manager.lock:
                cache[model] = result
            return result

        return wrapper
    return decorator
