"""In-memory cache provider using cachetools.TTLCache.

Process-scoped result cache for the similar-artists endpoints.  One
instance is created at startup and injected into the pipeline; it is not
shared across worker processes.  Swap in a Redis adapter implementing
ICacheProvider for multi-worker deployments.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import structlog
from cachetools import TTLCache

from src.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    The ``TTLCache`` evicts by the provider-wide *ttl*; a shorter per-item
    ttl passed to :meth:`set` is honoured by storing the entry's own expiry
    next to the value.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Default time-to-live in seconds for cache entries.
    timer:
        Monotonic clock; injected in tests.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: int = 86400,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = ttl
        self._timer = timer
        self._cache: TTLCache[str, tuple[float, Any]] = TTLCache(
            maxsize=max_size, ttl=ttl, timer=timer
        )

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None

        expires_at, value = entry
        if self._timer() >= expires_at:
            self._cache.pop(key, None)
            logger.debug("cache_expired", key=key)
            return None

        logger.debug("cache_hit", key=key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key* for *ttl* seconds (capped at the default)."""
        effective_ttl = self._default_ttl if ttl is None else min(ttl, self._default_ttl)
        self._cache[key] = (self._timer() + effective_ttl, value)
        logger.debug("cache_set", key=key, ttl=effective_ttl)

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)
