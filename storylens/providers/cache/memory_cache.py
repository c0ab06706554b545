"""In-memory cache provider using cachetools.TLRUCache.

Fast, process-local cache with a per-entry time-to-live and LRU eviction
once ``max_size`` is reached.  Can be swapped for Redis or another backend
via the ICacheProvider interface.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

import structlog
from cachetools import TLRUCache

from storylens.interfaces.cache_provider import ICacheProvider
from storylens.models.cache import CacheEntry

logger = structlog.get_logger(logger_name=__name__)


def _entry_expiry(_key: str, entry: CacheEntry, now: float) -> float:
    return now + entry.ttl


class MemoryCacheProvider(ICacheProvider):
    """In-memory per-entry TTL cache backed by ``cachetools.TLRUCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    timer:
        Monotonic clock returning seconds.  Tests inject a fake clock to
        step past expiry without sleeping.
    """

    def __init__(
        self,
        max_size: int = 10_000,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TLRUCache[str, CacheEntry] = TLRUCache(
            maxsize=max_size, ttu=_entry_expiry, timer=timer
        )
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        with self._lock:
            entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: float) -> None:
        """Store *value* under *key* for *ttl* seconds."""
        with self._lock:
            now = self._cache.timer()
            self._cache[key] = CacheEntry(key=key, value=value, created_at=now, ttl=ttl)
        logger.debug("cache_set", key=key, ttl=ttl)

    async def delete(self, key: str) -> bool:
        """Remove *key* from the cache (no-op if absent)."""
        with self._lock:
            removed = self._cache.pop(key, None) is not None
        logger.debug("cache_delete", key=key, removed=removed)
        return removed

    async def delete_by_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in list(self._cache.keys()) if k.startswith(prefix)]
            for key in doomed:
                self._cache.pop(key, None)
        logger.debug("cache_delete_prefix", prefix=prefix, removed=len(doomed))
        return len(doomed)

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
        with self._lock:
            return key in self._cache

    async def touch(self, key: str, ttl: float) -> bool:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return False
            now = self._cache.timer()
            self._cache[key] = entry.model_copy(update={"created_at": now, "ttl": ttl})
        return True

    async def count(self, prefix: str = "") -> int:
        with self._lock:
            self._cache.expire()
            return sum(1 for k in list(self._cache.keys()) if k.startswith(prefix))

    async def prune_expired(self) -> int:
        with self._lock:
            # __len__ expires first, so count the evicted pairs instead.
            removed = len(self._cache.expire())
        if removed:
            logger.debug("cache_pruned", removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_entry(self, key: str) -> CacheEntry | None:
        """Return the raw entry (value plus timing) for *key*, if live."""
        with self._lock:
            return self._cache.get(key)
