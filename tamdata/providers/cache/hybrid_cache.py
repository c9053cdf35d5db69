"""Hybrid cache provider composing a remote and an in-process backend.

Reads go to the remote child under a timeout (``fallback_timeout``
seconds); on timeout or any cache error the in-process child answers
instead.  Writes and deletes go to both children concurrently and a
failure in either is logged and swallowed.

A remote *miss* is returned as a miss.  The in-process child is only read
when the remote read fails or is too slow.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from tamdata.interfaces.cache_provider import IDistributedCacheProvider, InvalidationCallback
from tamdata.models.cache import CacheEntry, HealthReport, HealthStatus
from tamdata.providers.cache.memory_cache import MemoryCacheProvider
from tamdata.utils.errors import CacheError

logger = structlog.get_logger(logger_name=__name__)

T = TypeVar("T")

# Remote-side failures that make a read fall back to memory.
_READ_FALLBACK_ERRORS: tuple[type[BaseException], ...] = (
    asyncio.TimeoutError,
    CacheError,
    OSError,
)


class HybridCacheProvider(IDistributedCacheProvider):
    """Remote-first cache that degrades to an independent in-process copy.

    Parameters
    ----------
    remote:
        The shared backend (normally :class:`RedisCacheProvider`).
    memory:
        An independent in-process backend.
    fallback_timeout:
        Seconds to wait for a remote read before answering from memory.
    """

    def __init__(
        self,
        remote: IDistributedCacheProvider,
        memory: MemoryCacheProvider,
        fallback_timeout: float = 1.0,
    ) -> None:
        self._remote = remote
        self._memory = memory
        self._fallback_timeout = fallback_timeout

    @property
    def remote(self) -> IDistributedCacheProvider:
        return self._remote

    @property
    def memory(self) -> MemoryCacheProvider:
        return self._memory

    async def _race(
        self,
        operation: str,
        remote: Callable[[], Awaitable[T]],
        local: Callable[[], Awaitable[T]],
        key: str | None = None,
    ) -> T:
        try:
            return await asyncio.wait_for(remote(), timeout=self._fallback_timeout)
        except _READ_FALLBACK_ERRORS as exc:
            logger.debug(
                "hybrid_fallback_to_memory",
                operation=operation,
                key=key,
                error=str(exc) or type(exc).__name__,
            )
            return await local()

    async def _both(self, operation: str, *calls: Awaitable[Any], key: str | None = None) -> None:
        results = await asyncio.gather(*calls, return_exceptions=True)
        for tier, result in zip(("remote", "memory"), results):
            if isinstance(result, Exception):
                logger.warning(
                    "hybrid_write_failed",
                    operation=operation,
                    tier=tier,
                    key=key,
                    error=str(result),
                )

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        return await self._race(
            "get", lambda: self._remote.get(key), lambda: self._memory.get(key), key=key
        )

    async def get_entry(self, key: str) -> CacheEntry | None:
        return await self._race(
            "get_entry",
            lambda: self._remote.get_entry(key),
            lambda: self._memory.get_entry(key),
            key=key,
        )

    async def set(self, key: str, value: Any, ttl: float) -> None:
        await self._both(
            "set", self._remote.set(key, value, ttl), self._memory.set(key, value, ttl), key=key
        )

    async def clear(self, key: str) -> None:
        await self._both("clear", self._remote.clear(key), self._memory.clear(key), key=key)

    async def clear_all(self) -> None:
        await self._both("clear_all", self._remote.clear_all(), self._memory.clear_all())

    async def get_stats(self) -> dict[str, Any]:
        remote_stats, memory_stats = await asyncio.gather(
            self._remote.get_stats(), self._memory.get_stats(), return_exceptions=True
        )
        return {
            "redis": None if isinstance(remote_stats, Exception) else remote_stats,
            "memory": None if isinstance(memory_stats, Exception) else memory_stats,
            "hybrid": True,
        }

    async def health_check(self) -> HealthReport:
        """Roll up child health: healthy only when the remote child is healthy."""
        remote_health, memory_health = await asyncio.gather(
            self._remote.health_check(), self._memory.health_check(), return_exceptions=True
        )
        unhealthy = {"status": HealthStatus.UNHEALTHY.value}
        remote_ok = (
            isinstance(remote_health, HealthReport)
            and remote_health.status is HealthStatus.HEALTHY
        )
        return HealthReport(
            status=HealthStatus.HEALTHY if remote_ok else HealthStatus.DEGRADED,
            details={
                "redis": (
                    remote_health.model_dump(mode="json")
                    if isinstance(remote_health, HealthReport)
                    else unhealthy
                ),
                "memory": (
                    memory_health.model_dump(mode="json")
                    if isinstance(memory_health, HealthReport)
                    else unhealthy
                ),
                "hybrid": True,
            },
        )

    # ------------------------------------------------------------------
    # IDistributedCacheProvider implementation (remote-delegated)
    # ------------------------------------------------------------------

    async def exists(self, key: str) -> bool:
        return await self._remote.exists(key)

    async def expire(self, key: str, ttl: float) -> bool:
        return await self._remote.expire(key, ttl)

    async def get_keys_by_pattern(self, pattern: str) -> list[str]:
        return await self._remote.get_keys_by_pattern(pattern)

    async def delete_by_pattern(self, pattern: str) -> int:
        """Drop matching keys from memory and disk, then delete them remotely.

        Returns the remote deletion count.
        """
        await self._memory.delete_matching(pattern)
        return await self._remote.delete_by_pattern(pattern)

    async def invalidate_distributed(self, key: str) -> None:
        await self._remote.invalidate_distributed(key)

    async def subscribe_to_invalidations(self, callback: InvalidationCallback) -> None:
        await self._remote.subscribe_to_invalidations(callback)

    async def drop_local(self, key: str) -> None:
        await self._remote.drop_local(key)
        await self._memory.clear(key)

    async def close(self) -> None:
        await self._both("close", self._remote.close(), self._memory.close())
