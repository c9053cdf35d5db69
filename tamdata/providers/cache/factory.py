"""Cache factory — the only place that knows concrete cache backend types.

:func:`create_cache` turns a declarative configuration into one object
implementing :class:`ICacheProvider`.  Everything downstream (provider
adapters, the source orchestrator, the market data service) receives that
object and never imports a concrete backend.

Configuration may be a :class:`CacheConfig` or a plain mapping as loaded
from ``config/config.yaml``::

    {"type": "hybrid", "redis": {"host": "cache.internal"}, "fallback_timeout": 0.5}

``type`` accepts ``memory``, ``redis`` (alias ``remote``) and ``hybrid``.
An unsupported type raises :class:`ConfigurationError` immediately.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

import redis.asyncio as redis
import structlog
from pydantic import ValidationError

from tamdata.interfaces.cache_provider import ICacheProvider
from tamdata.models.cache import CacheConfig, CacheType
from tamdata.providers.cache.hybrid_cache import HybridCacheProvider
from tamdata.providers.cache.memory_cache import MemoryCacheProvider
from tamdata.providers.cache.persistence import DiskPersistenceStore
from tamdata.providers.cache.redis_cache import RedisCacheProvider
from tamdata.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def _coerce_config(config: CacheConfig | Mapping[str, Any] | None) -> CacheConfig:
    if config is None:
        return CacheConfig()
    if isinstance(config, CacheConfig):
        return config
    try:
        return CacheConfig.model_validate(dict(config))
    except ValidationError as exc:
        raise ConfigurationError(
            message=f"Invalid cache configuration: {exc}",
            provider_name="cache",
        ) from exc


def create_cache(
    config: CacheConfig | Mapping[str, Any] | None = None,
    *,
    redis_client: redis.Redis | None = None,
    clock: Callable[[], float] = time.time,
) -> ICacheProvider:
    """Build the cache backend selected by ``config.type``.

    Parameters
    ----------
    config:
        Backend selection and settings.  ``None`` builds the default
        in-process cache.
    redis_client:
        Optional pre-built async Redis client shared by the remote backend.
    clock:
        Time source handed to every backend that tracks TTLs.

    Raises
    ------
    ConfigurationError
        If the configuration is malformed or names an unsupported type.
    """
    cfg = _coerce_config(config)

    if cfg.type is CacheType.MEMORY:
        cache: ICacheProvider = MemoryCacheProvider(
            persistence=DiskPersistenceStore(cfg.memory.persistence_dir),
            clock=clock,
        )
    elif cfg.type is CacheType.REDIS:
        cache = RedisCacheProvider(cfg.redis, client=redis_client, clock=clock)
    elif cfg.type is CacheType.HYBRID:
        cache = HybridCacheProvider(
            remote=RedisCacheProvider(cfg.redis, client=redis_client, clock=clock),
            memory=MemoryCacheProvider(
                persistence=DiskPersistenceStore(cfg.memory.persistence_dir),
                clock=clock,
            ),
            fallback_timeout=cfg.fallback_timeout,
        )
    else:
        raise ConfigurationError(
            message=f"Unsupported cache type: {cfg.type!r}",
            provider_name="cache",
        )

    logger.info("cache_created", cache_type=cfg.type.value, backend=type(cache).__name__)
    return cache
