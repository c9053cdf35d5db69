"""Public interface definitions for caches and external data providers.

Every external data source and every cache backend is accessed exclusively
through the abstract base classes defined in this package.  Concrete
adapters implement these interfaces and are wired together once, in
``tamdata/main.py``.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations
    ─────────────────────────────────────────────────────────────────────
    ICacheProvider             →  MemoryCacheProvider, RedisCacheProvider,
                                  HybridCacheProvider
    IDistributedCacheProvider  →  RedisCacheProvider, HybridCacheProvider
    IMarketDataProvider        →  AlphaVantageProvider, FredProvider,
                                  WorldBankProvider, IMFProvider,
                                  BLSProvider, CensusProvider

Re-exports
----------
ICacheProvider
    Uniform key-value cache contract returned by the cache factory.
IDistributedCacheProvider
    Shared-store extension: expiry, pattern operations, invalidation.
InvalidationCallback
    Type of the callable passed to ``subscribe_to_invalidations``.
IMarketDataProvider
    Availability probe plus market-size fetch.
"""

from tamdata.interfaces.cache_provider import (
    ICacheProvider,
    IDistributedCacheProvider,
    InvalidationCallback,
)
from tamdata.interfaces.market_data_provider import IMarketDataProvider

__all__ = [
    "ICacheProvider",
    "IDistributedCacheProvider",
    "IMarketDataProvider",
    "InvalidationCallback",
]
