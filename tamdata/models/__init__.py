"""tam-data-hub domain models — re-exports all public model classes.

The models are organized across two submodules by concern:
    - cache.py   — Cache entries, statistics, health reports, backend config
    - market.py  — Identifier classification and market-size results
"""

from __future__ import annotations

from tamdata.models.cache import (
    CacheConfig,
    CacheEntry,
    CacheStats,
    CacheType,
    ConnectionState,
    HealthReport,
    HealthStatus,
    MemoryCacheConfig,
    RedisCacheConfig,
)
from tamdata.models.market import (
    MOCK_SOURCE,
    IdentifierKind,
    MarketSizeResult,
    ProviderStatus,
)

__all__ = [
    "MOCK_SOURCE",
    "CacheConfig",
    "CacheEntry",
    "CacheStats",
    "CacheType",
    "ConnectionState",
    "HealthReport",
    "HealthStatus",
    "IdentifierKind",
    "MarketSizeResult",
    "MemoryCacheConfig",
    "ProviderStatus",
    "RedisCacheConfig",
]
