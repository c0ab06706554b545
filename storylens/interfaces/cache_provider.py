"""Abstract base class for cache storage providers.

Defines the key/value contract that :class:`~storylens.services.cache_service.CacheService`
builds namespaces, key validation and ``get_or_set`` on top of.
Implementations may use an in-memory store, Redis, or any backend offering
per-entry TTLs and prefix deletion.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementation: MemoryCacheProvider (storylens/providers/cache/)
class ICacheProvider(ABC):
    """Contract for TTL key/value cache storage.

    All operations are async to allow for network-backed stores (e.g. Redis)
    without blocking the event loop.  Missing and expired keys are never
    errors: lookups simply return ``None``.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve the value stored under *key*.

        Returns
        -------
        Any or None
            The cached value if present and not expired; ``None`` otherwise.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float) -> None:
        """Store *value* under *key*, expiring after *ttl* seconds.

        Overwrites any existing entry and resets its expiry.
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if an entry was removed."""

    @abstractmethod
    async def delete_by_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with *prefix*.

        Returns
        -------
        int
            The number of entries removed.
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""

    @abstractmethod
    async def touch(self, key: str, ttl: float) -> bool:
        """Re-arm the expiry of an existing entry.

        Returns ``False`` if the key is absent or already expired.
        """

    @abstractmethod
    async def count(self, prefix: str = "") -> int:
        """Return the number of live entries whose key starts with *prefix*."""

    @abstractmethod
    async def prune_expired(self) -> int:
        """Drop expired entries eagerly.  Returns the number removed."""
