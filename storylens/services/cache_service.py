"""Namespaced cache service with TTL defaults, coalescing and invalidation.

Each :class:`CacheService` instance is bound to one
:class:`~storylens.models.cache.CacheNamespace` and that namespace's default
TTL.  Several services share one :class:`ICacheProvider`; keys are stored as
``"{namespace}:{key}"`` so namespaces never collide.

Project-scoped keys built by :class:`CacheKeys` start with
``"{project_id}:"``, which makes ``delete_by_pattern(f"{project_id}:")``
remove exactly one project's entries.  Content-addressed keys are SHA-256
digests of their inputs.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import Any, Awaitable, Callable

import structlog

from storylens.interfaces.cache_provider import ICacheProvider
from storylens.models.cache import CacheNamespace, CacheStats
from storylens.utils.errors import CacheKeyError

logger = structlog.get_logger(logger_name=__name__)

MAX_KEY_LENGTH = 512

DEFAULT_TTLS: dict[CacheNamespace, int] = {
    CacheNamespace.EMBEDDINGS: 604_800,
    CacheNamespace.METADATA: 604_800,
    CacheNamespace.ANALYTICS: 1_800,
    CacheNamespace.CONTEXT: 3_600,
    CacheNamespace.SEARCH: 300,
}


def _digest(*parts: object) -> str:
    hasher = hashlib.sha256()
    for part in parts:
        hasher.update(str(part).encode("utf-8"))
        hasher.update(b"\x1f")
    return hasher.hexdigest()


class CacheKeys:
    """Builders for every cache key the engine uses."""

    @staticmethod
    def embedding(embedder_version: str, text: str) -> str:
        return _digest("embedding", embedder_version, text)

    @staticmethod
    def metadata(text: str, prompt_version: str) -> str:
        return _digest("metadata", prompt_version, text)

    @staticmethod
    def analytics(project_id: str, version: int | None) -> str:
        return f"{project_id}:analytics:v{version if version is not None else 0}"

    @staticmethod
    def context(project_id: str, version: int | None) -> str:
        return f"{project_id}:context:v{version if version is not None else 0}"

    @staticmethod
    def search(
        project_id: str,
        version: int | None,
        query: str,
        type_filter: str | None,
        limit: int,
    ) -> str:
        query_hash = _digest(query.strip().casefold(), type_filter or "", limit)
        return f"{project_id}:search:v{version if version is not None else 0}:{query_hash}"

    @staticmethod
    def project_prefix(project_id: str) -> str:
        return f"{project_id}:"


def validate_key(key: object) -> str:
    """Return *key* if it is usable as a cache key, else raise CacheKeyError."""
    if not isinstance(key, str):
        raise CacheKeyError(f"Cache key must be a string, got {type(key).__name__}")
    if not key:
        raise CacheKeyError("Cache key must not be empty")
    if len(key) > MAX_KEY_LENGTH:
        raise CacheKeyError(f"Cache key longer than {MAX_KEY_LENGTH} characters")
    if any(ch.isspace() for ch in key):
        raise CacheKeyError("Cache key must not contain whitespace")
    return key


class CacheService:
    """One cache namespace: default TTL, hit/miss counters, coalesced misses.

    Parameters
    ----------
    provider:
        Shared storage backend.
    namespace:
        Namespace this service reads and writes.
    default_ttl:
        TTL in seconds when ``set``/``get_or_set`` are called without one.
        Defaults to the namespace's entry in :data:`DEFAULT_TTLS`.
    """

    def __init__(
        self,
        provider: ICacheProvider,
        namespace: CacheNamespace,
        default_ttl: float | None = None,
    ) -> None:
        self._provider = provider
        self._namespace = namespace
        self._default_ttl = default_ttl if default_ttl is not None else DEFAULT_TTLS[namespace]
        self._hits = 0
        self._misses = 0
        self._inflight: dict[str, asyncio.Future[Any]] = {}
        self._prune_task: asyncio.Task[None] | None = None

    @property
    def namespace(self) -> CacheNamespace:
        return self._namespace

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def _full_key(self, key: object) -> str:
        return f"{self._namespace.value}:{validate_key(key)}"

    # ------------------------------------------------------------------
    # Basic operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` on miss or expiry."""
        value = await self._provider.get(self._full_key(key))
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        effective_ttl = ttl if ttl is not None else self._default_ttl
        if effective_ttl <= 0:
            raise ValueError(f"ttl must be positive, got {effective_ttl}")
        await self._provider.set(self._full_key(key), value, effective_ttl)

    async def delete(self, key: str) -> bool:
        return await self._provider.delete(self._full_key(key))

    async def delete_by_pattern(self, prefix: str) -> int:
        """Remove every key in this namespace that starts with *prefix*."""
        if not isinstance(prefix, str):
            raise CacheKeyError(f"Cache prefix must be a string, got {type(prefix).__name__}")
        removed = await self._provider.delete_by_prefix(f"{self._namespace.value}:{prefix}")
        if removed:
            logger.info(
                "cache_pattern_invalidated",
                namespace=self._namespace.value,
                prefix=prefix,
                removed=removed,
            )
        return removed

    async def exists(self, key: str) -> bool:
        return await self._provider.exists(self._full_key(key))

    async def touch(self, key: str, ttl: float | None = None) -> bool:
        """Re-arm an existing entry's expiry.  Returns ``False`` if absent."""
        return await self._provider.touch(
            self._full_key(key), ttl if ttl is not None else self._default_ttl
        )

    async def clear(self) -> int:
        """Remove every entry in this namespace."""
        return await self._provider.delete_by_prefix(f"{self._namespace.value}:")

    # ------------------------------------------------------------------
    # get_or_set
    # ------------------------------------------------------------------

    async def get_or_set(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
    ) -> Any:
        """Return the cached value, computing and storing it on a miss.

        Concurrent misses on the same key share one in-flight computation.
        If it fails, nothing is stored and every waiter sees the exception.
        A computed ``None`` is returned but not cached.
        """
        full_key = self._full_key(key)
        cached = await self.get(key)
        if cached is not None:
            return cached

        pending = self._inflight.get(full_key)
        if pending is not None:
            logger.debug("cache_miss_coalesced", namespace=self._namespace.value, key=key)
            return await asyncio.shield(pending)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inflight[full_key] = future
        try:
            value = await compute_fn()
            if value is not None:
                await self.set(key, value, ttl)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an un-awaited future does not warn.
            future.exception()
            raise
        else:
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(full_key, None)

    # ------------------------------------------------------------------
    # Observability / housekeeping
    # ------------------------------------------------------------------

    async def stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            namespace=self._namespace,
            keys=await self._provider.count(f"{self._namespace.value}:"),
            hits=self._hits,
            misses=self._misses,
            hit_rate=(self._hits / total) if total else 0.0,
        )

    async def prune_expired(self) -> int:
        return await self._provider.prune_expired()

    def start_pruning(self, interval: float = 60.0) -> None:
        """Prune expired entries every *interval* seconds in the background."""
        if self._prune_task is not None and not self._prune_task.done():
            return
        self._prune_task = asyncio.get_running_loop().create_task(self._prune_loop(interval))

    async def stop_pruning(self) -> None:
        task, self._prune_task = self._prune_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _prune_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                removed = await self.prune_expired()
            except Exception as exc:
                logger.warning("cache_prune_failed", namespace=self._namespace.value, error=str(exc))
                continue
            if removed:
                logger.debug("cache_prune_cycle", namespace=self._namespace.value, removed=removed)
