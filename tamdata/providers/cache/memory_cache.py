"""In-process cache provider with disk persistence.

Fast path is a plain dict of key → :class:`CacheEntry`.  Every write is
mirrored to a :class:`DiskPersistenceStore` so that entries survive a
process restart; reads fall back to disk when memory has nothing live and
promote what they find.

Expiry is lazy and time-based only.  There is no capacity bound and no
LRU eviction.
"""

from __future__ import annotations

import fnmatch
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from tamdata.interfaces.cache_provider import ICacheProvider
from tamdata.models.cache import CacheEntry, CacheStats, HealthReport, HealthStatus
from tamdata.providers.cache.persistence import DiskPersistenceStore

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by a disk persistence store.

    Parameters
    ----------
    persistence:
        Store used for durability across restarts.  ``None`` keeps the
        cache purely in memory.
    clock:
        Returns the current Unix time in seconds.  Injected by tests to
        simulate the passage of time.
    """

    def __init__(
        self,
        persistence: DiskPersistenceStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._persistence = persistence
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._stats = CacheStats()

    def _now_utc(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _sync_size(self) -> None:
        self._stats.size = len(self._entries)

    def keys_matching(self, pattern: str) -> list[str]:
        """Return in-memory keys matching the glob *pattern*."""
        return [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]

    async def delete_matching(self, pattern: str) -> int:
        """Remove every key matching *pattern* from memory and from disk.

        Persisted files are enumerated too, so entries written by an earlier
        process are removed even though they were never loaded into memory.
        """
        keys = set(self.keys_matching(pattern))
        if self._persistence is not None:
            keys.update(
                key for key in await self._persistence.keys() if fnmatch.fnmatchcase(key, pattern)
            )
        for key in keys:
            await self.clear(key)
        return len(keys)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Return the live value for *key*, consulting disk on a memory miss."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            if entry.is_live(now):
                self._stats.hits += 1
                logger.debug("cache_hit", key=key, tier="memory")
                return entry.data
            del self._entries[key]
            self._sync_size()
            if self._persistence is not None:
                await self._persistence.remove(key)

        if self._persistence is not None:
            persisted = await self._persistence.load(key)
            if persisted is not None:
                if persisted.is_live(now):
                    self._entries[key] = persisted
                    self._sync_size()
                    self._stats.hits += 1
                    logger.debug("cache_hit", key=key, tier="disk")
                    return persisted.data
                await self._persistence.remove(key)

        self._stats.misses += 1
        logger.debug("cache_miss", key=key)
        return None

    async def get_entry(self, key: str) -> CacheEntry | None:
        """Return the raw entry for *key* without TTL filtering."""
        entry = self._entries.get(key)
        if entry is not None:
            return entry
        if self._persistence is not None:
            return await self._persistence.load(key)
        return None

    async def set(self, key: str, value: Any, ttl: float) -> None:
        entry = CacheEntry(data=value, timestamp=self._clock(), ttl=ttl)
        self._entries[key] = entry
        self._sync_size()
        self._stats.last_refreshed = self._now_utc()
        logger.debug("cache_set", key=key, ttl=ttl)
        if self._persistence is not None:
            await self._persistence.save(key, entry)

    async def clear(self, key: str) -> None:
        self._entries.pop(key, None)
        self._sync_size()
        if self._persistence is not None:
            await self._persistence.remove(key)
        logger.debug("cache_clear", key=key)

    async def clear_all(self) -> None:
        self._entries.clear()
        self._stats = CacheStats()
        if self._persistence is not None:
            await self._persistence.clear_all()
        logger.info("cache_cleared", backend="memory")

    async def get_stats(self) -> CacheStats:
        return self._stats.model_copy()

    async def health_check(self) -> HealthReport:
        return HealthReport(
            status=HealthStatus.HEALTHY,
            details={
                "backend": "memory",
                "size": len(self._entries),
                "persistence_dir": (
                    str(self._persistence.root_dir) if self._persistence is not None else None
                ),
            },
        )
