"""Redis-backed distributed cache provider.

Each cache key maps to one Redis string holding the JSON-serialised
:class:`CacheEntry`, written with a Redis-side ``PX`` expiry.  All keys are
namespaced by ``key_prefix`` so that pattern operations only ever touch
this cache's keys; enumeration uses ``SCAN MATCH``, never ``KEYS``.

Connection handling is an explicit state machine
(:class:`ConnectionState`).  The first operation connects lazily.  When a
remote call fails the provider moves to ``DEGRADED``, serves the operation
from an internal in-process map (``cachetools.TLRUCache``, no persistence)
and starts a single supervising task that retries the connection with
capped exponential backoff.  Once ``max_reconnect_attempts`` is exhausted
the supervisor gives up until :meth:`RedisCacheProvider.connect` is called
again.  With ``enable_fallback=False`` a down remote raises
:class:`CacheUnavailableError` instead.

Cross-instance invalidation uses Redis pub/sub: a ``{"key", "timestamp"}``
JSON message on ``invalidation_channel``.  Delivery is best-effort.
"""

from __future__ import annotations

import asyncio
import fnmatch
import inspect
import json
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

import redis.asyncio as redis
import structlog
from cachetools import TLRUCache
from pydantic import ValidationError
from redis.exceptions import RedisError

from tamdata.interfaces.cache_provider import IDistributedCacheProvider, InvalidationCallback
from tamdata.models.cache import (
    CacheEntry,
    CacheStats,
    ConnectionState,
    HealthReport,
    HealthStatus,
    RedisCacheConfig,
)
from tamdata.utils.errors import CacheUnavailableError, SerializationError

logger = structlog.get_logger(logger_name=__name__)

T = TypeVar("T")

_PROVIDER_NAME = "redis"
_MAX_BACKOFF_SECONDS = 30.0
_DELETE_BATCH = 500

# Failures that mean "the remote store is not usable right now".
_REMOTE_ERRORS: tuple[type[BaseException], ...] = (RedisError, OSError, asyncio.TimeoutError)


def _entry_expiry(_key: str, entry: CacheEntry, _now: float) -> float:
    return entry.expires_at


class RedisCacheProvider(IDistributedCacheProvider):
    """Distributed cache backed by ``redis.asyncio`` with in-process fallback.

    Parameters
    ----------
    config:
        Connection and behaviour settings.
    client:
        Pre-built async Redis client.  When omitted a client is created on
        first connect from *config* and closed by :meth:`close`.
    clock:
        Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        config: RedisCacheConfig | None = None,
        client: redis.Redis | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or RedisCacheConfig()
        self._client = client
        self._owns_client = client is None
        self._clock = clock
        self._state = ConnectionState.DISCONNECTED
        self._connect_attempted = False
        self._reconnect_abandoned = False
        self._reconnect_task: asyncio.Task[None] | None = None
        self._listener_task: asyncio.Task[None] | None = None
        self._pubsub: Any = None
        self._callbacks: list[InvalidationCallback] = []
        self._stats = CacheStats()
        self._fallback: TLRUCache[str, CacheEntry] = TLRUCache(
            maxsize=self._config.fallback_max_entries,
            ttu=_entry_expiry,
            timer=clock,
        )

    # ------------------------------------------------------------------
    # Connection state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis(
                host=self._config.host,
                port=self._config.port,
                password=self._config.password,
                db=self._config.db,
                socket_connect_timeout=self._config.connect_timeout,
                socket_timeout=self._config.command_timeout,
                decode_responses=True,
            )
        return self._client

    async def connect(self) -> bool:
        """Open (or re-open) the remote connection.

        Also re-arms the reconnect supervisor if it had given up.  Returns
        ``True`` when the remote answered a ``PING``.
        """
        self._connect_attempted = True
        self._reconnect_abandoned = False
        self._state = ConnectionState.CONNECTING
        client = self._get_client()
        try:
            await client.ping()
        except _REMOTE_ERRORS as exc:
            logger.warning(
                "redis_connect_failed",
                host=self._config.host,
                port=self._config.port,
                error=str(exc),
            )
            self._mark_failed()
            return False
        except asyncio.CancelledError:
            # A cancelled ping (caller timeout) must not leave the state CONNECTING.
            logger.warning("redis_connect_cancelled", host=self._config.host, port=self._config.port)
            self._mark_failed()
            raise

        self._state = ConnectionState.CONNECTED
        logger.info("redis_connected", host=self._config.host, port=self._config.port)
        return True

    async def _ensure_connected(self) -> bool:
        if self._state is ConnectionState.CONNECTED:
            return True
        if not self._connect_attempted:
            return await self.connect()
        return False

    def _mark_failed(self) -> None:
        self._state = ConnectionState.DEGRADED
        if self._reconnect_abandoned or self._config.max_reconnect_attempts <= 0:
            return
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        """Retry ``PING`` with exponential backoff until it succeeds or attempts run out."""
        client = self._get_client()
        attempts = self._config.max_reconnect_attempts
        for attempt in range(1, attempts + 1):
            delay = min(self._config.reconnect_base_delay * 2 ** (attempt - 1), _MAX_BACKOFF_SECONDS)
            await asyncio.sleep(delay)
            try:
                await client.ping()
            except _REMOTE_ERRORS as exc:
                logger.debug("redis_reconnect_failed", attempt=attempt, error=str(exc))
                continue
            self._state = ConnectionState.CONNECTED
            logger.info("redis_reconnected", attempt=attempt)
            return

        self._reconnect_abandoned = True
        self._state = ConnectionState.DISCONNECTED
        logger.error("redis_reconnect_abandoned", attempts=attempts)

    # ------------------------------------------------------------------
    # Operation dispatch
    # ------------------------------------------------------------------

    def _prefixed(self, key: str) -> str:
        return f"{self._config.key_prefix}{key}"

    def _unprefixed(self, key: str) -> str:
        prefix = self._config.key_prefix
        return key[len(prefix):] if key.startswith(prefix) else key

    async def _execute(
        self,
        operation: str,
        remote: Callable[[redis.Redis], Awaitable[T]],
        fallback: Callable[[], T],
        key: str | None = None,
    ) -> T:
        """Run *remote* against Redis, or *fallback* when Redis is unusable."""
        if await self._ensure_connected():
            try:
                return await remote(self._get_client())
            except _REMOTE_ERRORS as exc:
                logger.warning(
                    "redis_operation_failed",
                    operation=operation,
                    key=key,
                    error=str(exc),
                )
                self._mark_failed()

        if not self._config.enable_fallback:
            raise CacheUnavailableError(provider_name=_PROVIDER_NAME)
        logger.debug("redis_fallback_used", operation=operation, key=key)
        return fallback()

    def _serialize(self, key: str, entry: CacheEntry) -> str:
        try:
            return json.dumps(entry.model_dump(mode="json"))
        except (TypeError, ValueError) as exc:
            raise SerializationError(
                message=f"Value for {key!r} is not JSON-serialisable: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

    def _deserialize(self, key: str, raw: str | bytes | None) -> CacheEntry | None:
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            logger.warning("redis_entry_corrupt", key=key, error=str(exc))
            return None

    def _fallback_live(self, key: str) -> CacheEntry | None:
        entry = self._fallback.get(key)
        if entry is not None and entry.is_live(self._clock()):
            return entry
        return None

    def _fallback_keys(self, pattern: str) -> list[str]:
        return [
            key
            for key in list(self._fallback.keys())
            if fnmatch.fnmatchcase(key, pattern) and self._fallback_live(key) is not None
        ]

    async def _scan(self, client: redis.Redis, pattern: str) -> list[str]:
        return [key async for key in client.scan_iter(match=self._prefixed(pattern))]

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get_entry(self, key: str) -> CacheEntry | None:
        async def remote(client: redis.Redis) -> CacheEntry | None:
            return self._deserialize(key, await client.get(self._prefixed(key)))

        return await self._execute("get", remote, lambda: self._fallback.get(key), key=key)

    async def get(self, key: str) -> Any | None:
        entry = await self.get_entry(key)
        if entry is None or not entry.is_live(self._clock()):
            self._stats.misses += 1
            logger.debug("cache_miss", key=key, backend=_PROVIDER_NAME)
            return None
        self._stats.hits += 1
        logger.debug("cache_hit", key=key, backend=_PROVIDER_NAME)
        return entry.data

    async def set(self, key: str, value: Any, ttl: float) -> None:
        entry = CacheEntry(data=value, timestamp=self._clock(), ttl=ttl)
        payload = self._serialize(key, entry)

        async def remote(client: redis.Redis) -> None:
            await client.set(self._prefixed(key), payload, px=max(1, int(ttl * 1000)))

        def fallback() -> None:
            self._fallback[key] = entry

        await self._execute("set", remote, fallback, key=key)
        self._stats.last_refreshed = datetime.fromtimestamp(entry.timestamp, tz=timezone.utc)

    async def clear(self, key: str) -> None:
        async def remote(client: redis.Redis) -> None:
            await client.delete(self._prefixed(key))

        await self._execute("delete", remote, lambda: self._fallback.pop(key, None), key=key)

    async def clear_all(self) -> None:
        await self.delete_by_pattern("*")
        self._fallback.clear()
        self._stats = CacheStats()
        logger.info("cache_cleared", backend=_PROVIDER_NAME)

    async def get_stats(self) -> CacheStats:
        stats = self._stats.model_copy()
        if await self._ensure_connected():
            try:
                stats.size = len(await self._scan(self._get_client(), "*"))
                return stats
            except _REMOTE_ERRORS as exc:
                logger.warning("redis_stats_failed", error=str(exc))
                self._mark_failed()
        stats.size = len(self._fallback_keys("*"))
        return stats

    async def health_check(self) -> HealthReport:
        """Ping Redis and grade the round-trip latency.

        ``healthy`` below ``latency_threshold_ms``, ``degraded`` above it or
        while serving from the fallback map, ``unhealthy`` when Redis is
        down and fallback is disabled.  Never raises.
        """
        if await self._ensure_connected():
            client = self._get_client()
            try:
                started = time.perf_counter()
                await client.ping()
                latency_ms = (time.perf_counter() - started) * 1000
                info = await client.info("memory")
            except _REMOTE_ERRORS as exc:
                logger.warning("redis_health_check_failed", error=str(exc))
                self._mark_failed()
            else:
                memory = {k: v for k, v in (info or {}).items() if k.startswith("used_memory")}
                status = (
                    HealthStatus.HEALTHY
                    if latency_ms < self._config.latency_threshold_ms
                    else HealthStatus.DEGRADED
                )
                return HealthReport(
                    status=status,
                    details={
                        "connection_state": self._state.value,
                        "latency_ms": round(latency_ms, 3),
                        "memory": memory,
                    },
                )

        details = {
            "connection_state": self._state.value,
            "fallback_enabled": self._config.enable_fallback,
            "fallback_entries": len(self._fallback_keys("*")),
        }
        if self._config.enable_fallback:
            return HealthReport(status=HealthStatus.DEGRADED, details=details)
        return HealthReport(status=HealthStatus.UNHEALTHY, details=details)

    # ------------------------------------------------------------------
    # IDistributedCacheProvider implementation
    # ------------------------------------------------------------------

    async def exists(self, key: str) -> bool:
        async def remote(client: redis.Redis) -> bool:
            return bool(await client.exists(self._prefixed(key)))

        return await self._execute(
            "exists", remote, lambda: self._fallback_live(key) is not None, key=key
        )

    async def expire(self, key: str, ttl: float) -> bool:
        """Restart the lifetime of *key* at now + *ttl* seconds.

        The stored entry is rewritten so that its embedded timestamp and
        ttl agree with the new Redis expiry.
        """
        now = self._clock()

        async def remote(client: redis.Redis) -> bool:
            current = self._deserialize(key, await client.get(self._prefixed(key)))
            if current is None:
                return False
            refreshed = CacheEntry(data=current.data, timestamp=now, ttl=ttl)
            written = await client.set(
                self._prefixed(key),
                self._serialize(key, refreshed),
                px=max(1, int(ttl * 1000)),
                xx=True,
            )
            return bool(written)

        def fallback() -> bool:
            current = self._fallback_live(key)
            if current is None:
                return False
            self._fallback[key] = CacheEntry(data=current.data, timestamp=now, ttl=ttl)
            return True

        return await self._execute("expire", remote, fallback, key=key)

    async def get_keys_by_pattern(self, pattern: str) -> list[str]:
        async def remote(client: redis.Redis) -> list[str]:
            return [self._unprefixed(k) for k in await self._scan(client, pattern)]

        return await self._execute(
            "get_keys_by_pattern", remote, lambda: self._fallback_keys(pattern), key=pattern
        )

    async def delete_by_pattern(self, pattern: str) -> int:
        async def remote(client: redis.Redis) -> int:
            keys = await self._scan(client, pattern)
            deleted = 0
            for start in range(0, len(keys), _DELETE_BATCH):
                deleted += await client.delete(*keys[start:start + _DELETE_BATCH])
            return deleted

        def fallback() -> int:
            keys = self._fallback_keys(pattern)
            for key in keys:
                self._fallback.pop(key, None)
            return len(keys)

        deleted = await self._execute("delete_by_pattern", remote, fallback, key=pattern)
        logger.info("cache_pattern_deleted", pattern=pattern, deleted=deleted)
        return deleted

    async def invalidate_distributed(self, key: str) -> None:
        """Publish an invalidation message for *key*.  Failures are logged only."""
        if not await self._ensure_connected():
            logger.warning("redis_invalidation_skipped", key=key, state=self._state.value)
            return
        message = json.dumps({"key": key, "timestamp": self._clock()})
        try:
            await self._get_client().publish(self._config.invalidation_channel, message)
        except _REMOTE_ERRORS as exc:
            logger.error("redis_invalidation_publish_failed", key=key, error=str(exc))
            self._mark_failed()
            return
        logger.debug("redis_invalidation_published", key=key)

    async def subscribe_to_invalidations(self, callback: InvalidationCallback) -> None:
        """Register *callback* and start the channel listener if needed.

        Subscribing while Redis is unreachable is logged and ignored; the
        subscription is not replayed on reconnect.
        """
        self._callbacks.append(callback)
        if self._listener_task is not None and not self._listener_task.done():
            return
        if not await self._ensure_connected():
            logger.warning("redis_subscribe_skipped", state=self._state.value)
            return
        try:
            self._pubsub = self._get_client().pubsub()
            await self._pubsub.subscribe(self._config.invalidation_channel)
        except _REMOTE_ERRORS as exc:
            logger.error("redis_subscribe_failed", error=str(exc))
            self._pubsub = None
            self._mark_failed()
            return
        self._listener_task = asyncio.create_task(self._listen())
        logger.info("redis_invalidation_subscribed", channel=self._config.invalidation_channel)

    async def drop_local(self, key: str) -> None:
        self._fallback.pop(key, None)

    async def _listen(self) -> None:
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    key = json.loads(message["data"])["key"]
                except (ValueError, KeyError, TypeError) as exc:
                    logger.warning("redis_invalidation_message_invalid", error=str(exc))
                    continue
                await self._dispatch_invalidation(key)
        except _REMOTE_ERRORS as exc:
            logger.warning("redis_invalidation_listener_stopped", error=str(exc))

    async def _dispatch_invalidation(self, key: str) -> None:
        logger.debug("redis_invalidation_received", key=key)
        for callback in list(self._callbacks):
            try:
                result = callback(key)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                logger.error("redis_invalidation_callback_failed", key=key, error=str(exc))

    async def close(self) -> None:
        """Stop background tasks and close owned connections."""
        for task in (self._listener_task, self._reconnect_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._listener_task = None
        self._reconnect_task = None

        if self._pubsub is not None:
            try:
                await self._pubsub.aclose()
            except _REMOTE_ERRORS as exc:
                logger.debug("redis_pubsub_close_failed", error=str(exc))
            self._pubsub = None

        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._state = ConnectionState.DISCONNECTED
        self._connect_attempted = False
        logger.info("redis_closed")
