"""Abstract base classes for cache service providers.

Defines the uniform key-value cache contract returned by the cache factory
and consumed by provider adapters and the source orchestrator.  Concrete
backends (in-process with disk persistence, Redis, hybrid) live in
``tamdata/providers/cache`` and are never referenced by type outside the
factory.

Two levels are defined:

- :class:`ICacheProvider` — every backend.
- :class:`IDistributedCacheProvider` — backends backed by a shared store,
  adding expiry control, glob-pattern enumeration/deletion and pub/sub
  invalidation broadcasts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Union

from tamdata.models.cache import CacheEntry, CacheStats, HealthReport

# Invalidation callbacks may be plain functions or coroutine functions.
InvalidationCallback = Callable[[str], Union[None, Awaitable[None]]]


class ICacheProvider(ABC):
    """Contract for key-value cache services.

    All data operations are async so that disk- and network-backed stores
    never block the event loop.  TTLs are expressed in seconds.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the live value stored under *key*, or ``None``.

        Expired entries are treated as absent and count as a miss.
        """

    @abstractmethod
    async def get_entry(self, key: str) -> CacheEntry | None:
        """Return the full :class:`CacheEntry` for *key* for inspection.

        Unlike :meth:`get` this does not count towards hit/miss statistics.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float) -> None:
        """Store *value* under *key* for *ttl* seconds, replacing any entry."""

    @abstractmethod
    async def clear(self, key: str) -> None:
        """Remove *key*.  A no-op if the key does not exist."""

    @abstractmethod
    async def clear_all(self) -> None:
        """Remove every entry owned by this cache and reset statistics."""

    @abstractmethod
    async def get_stats(self) -> CacheStats | dict[str, Any]:
        """Return hit/miss/size statistics.

        Single backends return a :class:`CacheStats` snapshot; composite
        backends return a dict with one entry per child.
        """

    @abstractmethod
    async def health_check(self) -> HealthReport:
        """Report backend health as ``healthy``, ``degraded`` or ``unhealthy``."""

    async def close(self) -> None:
        """Release connections and background tasks.  No-op by default."""


class IDistributedCacheProvider(ICacheProvider):
    """Contract for caches backed by a shared, network-accessible store."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if a live entry exists for *key*."""

    @abstractmethod
    async def expire(self, key: str, ttl: float) -> bool:
        """Reset the lifetime of *key* to *ttl* seconds from now.

        Returns ``False`` when the key does not exist.
        """

    @abstractmethod
    async def get_keys_by_pattern(self, pattern: str) -> list[str]:
        """Return un-prefixed keys matching the glob *pattern*."""

    @abstractmethod
    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete every key matching the glob *pattern*; return the count."""

    @abstractmethod
    async def invalidate_distributed(self, key: str) -> None:
        """Broadcast a best-effort invalidation of *key* to other instances."""

    @abstractmethod
    async def subscribe_to_invalidations(self, callback: InvalidationCallback) -> None:
        """Invoke *callback* with the key of every invalidation broadcast received."""

    @abstractmethod
    async def drop_local(self, key: str) -> None:
        """Forget *key* in this instance's process-local tier only.

        Used by invalidation subscribers: the shared store has already been
        updated by the publisher, only local copies are stale.
        """
