"""Cache data models shared by every cache backend.

Defines Pydantic v2 models for cache entries, statistics and health
reports, plus the enums that describe backend types and remote connection
state.

A :class:`CacheEntry` is the unit of storage in all three backends.  It is
written to disk by the persistence store as ``{"data", "timestamp", "ttl"}``
and to Redis as the same JSON document, so an entry read back from either
place carries its original write time and lifetime.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CacheType(str, Enum):  # noqa: UP042
    """Cache backends the factory knows how to build."""

    MEMORY = "memory"
    REDIS = "redis"
    HYBRID = "hybrid"


class HealthStatus(str, Enum):  # noqa: UP042
    """Rollup health of a cache backend."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ConnectionState(str, Enum):  # noqa: UP042
    """Connection state of the remote cache client.

    ``DEGRADED`` means the last remote operation failed and a reconnect
    supervisor is running; operations are served from the fallback map.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"


class CacheEntry(BaseModel):
    """A stored value with its write time and lifetime.

    ``timestamp`` is Unix epoch seconds; ``ttl`` is seconds.  The entry is
    live while ``now < timestamp + ttl``.
    """

    model_config = ConfigDict(frozen=True)

    data: Any = None
    timestamp: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.timestamp + self.ttl

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class CacheStats(BaseModel):
    """Hit/miss counters for one backend instance.

    Mutated only by the owning backend; callers receive ``model_copy()``
    snapshots from ``get_stats()``.
    """

    hits: int = 0
    misses: int = 0
    size: int = 0
    last_refreshed: datetime | None = None


class HealthReport(BaseModel):
    """Result of a backend ``health_check()``."""

    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    details: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Backend configuration: consumed by the cache factory
# ---------------------------------------------------------------------------

class MemoryCacheConfig(BaseModel):
    """Settings for the in-process backend."""

    model_config = ConfigDict(frozen=True)

    persistence_dir: str = ".cache_data"


class RedisCacheConfig(BaseModel):
    """Connection and behaviour settings for the remote backend."""

    model_config = ConfigDict(frozen=True)

    host: str = "localhost"
    port: int = 6379
    password: str | None = None
    db: int = 0
    key_prefix: str = "tam_cache:"
    default_ttl: float = 3600.0
    enable_fallback: bool = True
    connect_timeout: float = 10.0
    command_timeout: float = 5.0
    max_reconnect_attempts: int = 10
    reconnect_base_delay: float = 0.1
    latency_threshold_ms: float = 100.0
    invalidation_channel: str = "cache_invalidation"
    fallback_max_entries: int = 10_000


class CacheConfig(BaseModel):
    """Declarative cache selection: ``type`` plus type-specific settings."""

    model_config = ConfigDict(frozen=True)

    type: CacheType = CacheType.MEMORY
    memory: MemoryCacheConfig = Field(default_factory=MemoryCacheConfig)
    redis: RedisCacheConfig = Field(default_factory=RedisCacheConfig)
    # Seconds the hybrid backend waits for the remote read before using memory.
    fallback_timeout: float = 1.0

    @field_validator("type", mode="before")
    @classmethod
    def _accept_remote_alias(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() == "remote":
            return CacheType.REDIS
        if isinstance(value, str):
            return value.strip().lower()
        return value
