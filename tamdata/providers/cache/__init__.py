"""Cache providers.

Three interchangeable backends behind :class:`ICacheProvider`:

- MemoryCacheProvider  -- in-process dict with lazy TTL expiry, mirrored
  to one JSON file per key by DiskPersistenceStore.
- RedisCacheProvider   -- shared Redis store with pattern operations,
  pub/sub invalidation and an in-process fallback map.
- HybridCacheProvider  -- Redis first under a read timeout, memory as the
  resilient secondary; writes go to both.

Callers obtain an instance from ``create_cache`` and never import the
concrete classes.
"""

from tamdata.providers.cache.factory import create_cache
from tamdata.providers.cache.hybrid_cache import HybridCacheProvider
from tamdata.providers.cache.memory_cache import MemoryCacheProvider
from tamdata.providers.cache.persistence import DiskPersistenceStore, sanitize_key
from tamdata.providers.cache.redis_cache import RedisCacheProvider

__all__ = [
    "DiskPersistenceStore",
    "HybridCacheProvider",
    "MemoryCacheProvider",
    "RedisCacheProvider",
    "create_cache",
    "sanitize_key",
]
