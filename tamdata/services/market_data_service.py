"""Market data service — the facade callers and tool handlers talk to.

Wraps the :class:`SourceOrchestrator` and the process-wide cache with the
operations a tool layer needs: market-size lookups and comparisons,
validation against a reference market, cache invalidation (local pattern
deletes and cross-instance broadcasts), data freshness, health and metrics.

Cache-management operations degrade gracefully.  A backend without
pattern support reports zero deletions; a failed broadcast is logged.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Any

from tamdata.interfaces.cache_provider import ICacheProvider, IDistributedCacheProvider
from tamdata.models.cache import CacheStats
from tamdata.models.market import MOCK_SOURCE, MarketSizeResult, ProviderStatus
from tamdata.services.source_orchestrator import SourceOrchestrator
from tamdata.utils.errors import CacheError
from tamdata.utils.logging import get_logger

# Relative difference below which a figure agrees with its reference.
VALIDATION_TOLERANCE = 0.2


class MarketDataService:
    """High-level market-data operations over one orchestrator and one cache.

    Parameters
    ----------
    orchestrator:
        The provider fallback chain.
    cache:
        The same cache instance the orchestrator and adapters use.
    subscribe_invalidations:
        When ``True`` and the cache is distributed, :meth:`start` subscribes
        to invalidation broadcasts and drops invalidated keys locally.
    """

    def __init__(
        self,
        orchestrator: SourceOrchestrator,
        cache: ICacheProvider,
        subscribe_invalidations: bool = False,
    ) -> None:
        self._orchestrator = orchestrator
        self._cache = cache
        self._subscribe_invalidations = subscribe_invalidations
        self._requests = 0
        self._sources: Counter[str] = Counter()
        self._invalidations_received = 0
        self._logger = get_logger(__name__)

    @property
    def orchestrator(self) -> SourceOrchestrator:
        return self._orchestrator

    @property
    def cache(self) -> ICacheProvider:
        return self._cache

    async def start(self) -> None:
        """Subscribe to invalidation broadcasts if configured."""
        if self._subscribe_invalidations and isinstance(self._cache, IDistributedCacheProvider):
            await self._cache.subscribe_to_invalidations(self._on_invalidation)

    async def _on_invalidation(self, key: str) -> None:
        self._invalidations_received += 1
        if isinstance(self._cache, IDistributedCacheProvider):
            await self._cache.drop_local(key)
        self._logger.info("distributed_invalidation_applied", key=key)

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    async def get_market_size(self, identifier: str, region: str = "US") -> MarketSizeResult:
        result = await self._orchestrator.get_market_size(identifier, region)
        self._requests += 1
        self._sources[result.source] += 1
        return result

    async def compare_markets(
        self,
        market_a: str,
        region_a: str,
        market_b: str,
        region_b: str,
    ) -> dict[str, Any]:
        """Look up two markets and report their ratio and difference."""
        a = await self.get_market_size(market_a, region_a)
        b = await self.get_market_size(market_b, region_b)
        return {
            "market_a": a.model_dump(mode="json"),
            "market_b": b.model_dump(mode="json"),
            "difference": a.value - b.value,
            "ratio": a.value / b.value if b.value else None,
        }

    async def validate_market_data(
        self,
        value: float,
        reference_identifier: str,
        reference_region: str = "US",
    ) -> dict[str, Any]:
        """Check *value* against the market size of a reference market.

        The figure is valid when its relative variance from the reference
        is below 20%.  A zero reference cannot be compared against.
        """
        reference = await self.get_market_size(reference_identifier, reference_region)
        variance: float | None = None
        if reference.value:
            variance = abs(value - reference.value) / abs(reference.value)
        return {
            "is_valid": variance is not None and variance < VALIDATION_TOLERANCE,
            "variance": variance,
            "provided_value": value,
            "reference": reference.model_dump(mode="json"),
        }

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    async def invalidate_cache(self, pattern: str) -> int:
        """Delete cached keys matching the glob *pattern*; 0 without pattern support."""
        if not isinstance(self._cache, IDistributedCacheProvider):
            self._logger.info("cache_pattern_unsupported", pattern=pattern)
            return 0
        try:
            deleted = await self._cache.delete_by_pattern(pattern)
        except CacheError as exc:
            self._logger.error("cache_invalidation_failed", pattern=pattern, error=str(exc))
            return 0
        self._logger.info("cache_invalidated", pattern=pattern, deleted=deleted)
        return deleted

    async def invalidate_distributed(self, key: str) -> None:
        if not isinstance(self._cache, IDistributedCacheProvider):
            self._logger.debug("distributed_invalidation_unsupported", key=key)
            return
        try:
            await self._cache.invalidate_distributed(key)
        except CacheError as exc:
            self._logger.error("distributed_invalidation_failed", key=key, error=str(exc))

    async def get_data_freshness(
        self, provider: str, identifier: str, region: str = "US"
    ) -> datetime | None:
        """Write time of the cached result for this provider and request, if any."""
        key = SourceOrchestrator.result_cache_key(provider, identifier.strip(), region.strip())
        try:
            entry = await self._cache.get_entry(key)
        except CacheError as exc:
            self._logger.warning("data_freshness_failed", key=key, error=str(exc))
            return None
        if entry is None:
            return None
        return datetime.fromtimestamp(entry.timestamp, tz=timezone.utc)

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def provider_statuses(self) -> list[ProviderStatus]:
        return [provider.status() for provider in self._orchestrator.providers]

    async def health_check(self) -> dict[str, Any]:
        """Provider availability plus cache health.

        Overall status follows the cache: ``healthy`` only when the cache
        is healthy, otherwise the cache's own status.
        """
        cache_health = await self._cache.health_check()
        providers = {s.name: s.model_dump() for s in self.provider_statuses()}
        return {
            "status": cache_health.status.value,
            "providers": providers,
            "cache": cache_health.model_dump(mode="json"),
        }

    async def get_metrics(self) -> dict[str, Any]:
        stats = await self._cache.get_stats()
        if isinstance(stats, CacheStats):
            cache_metrics: dict[str, Any] = stats.model_dump(mode="json")
        else:
            cache_metrics = {
                name: value.model_dump(mode="json") if isinstance(value, CacheStats) else value
                for name, value in stats.items()
            }
        statuses = self.provider_statuses()
        return {
            "requests": self._requests,
            "results_by_source": dict(self._sources),
            "mock_fallbacks": self._sources.get(MOCK_SOURCE, 0),
            "invalidations_received": self._invalidations_received,
            "providers_available": sum(1 for s in statuses if s.available),
            "providers_total": len(statuses),
            "cache": cache_metrics,
        }

    async def close(self) -> None:
        for provider in self._orchestrator.providers:
            await provider.close()
        await self._cache.close()
        self._logger.info("market_data_service_closed")
