"""Unit tests for MarketDataService."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from tamdata.models.cache import HealthStatus, RedisCacheConfig
from tamdata.providers.cache.hybrid_cache import HybridCacheProvider
from tamdata.providers.cache.memory_cache import MemoryCacheProvider
from tamdata.providers.cache.redis_cache import RedisCacheProvider
from tamdata.services.market_data_service import MarketDataService
from tamdata.services.source_orchestrator import ClassificationPolicy, SourceOrchestrator
from tamdata.utils.errors import CacheUnavailableError
from tests.conftest import FakeClock, FakeRedis, StubProvider, drain_loop


def _service(cache, *providers: StubProvider, subscribe: bool = False) -> MarketDataService:
    policy = ClassificationPolicy(
        ticker_order=[], industry_order=[], default_order=[p.get_provider_name() for p in providers]
    )
    orchestrator = SourceOrchestrator(list(providers), cache, policy=policy)
    return MarketDataService(orchestrator, cache, subscribe_invalidations=subscribe)


@pytest.fixture()
def memory(clock: FakeClock) -> MemoryCacheProvider:
    return MemoryCacheProvider(clock=clock)


@pytest.fixture()
def redis_cache(
    redis_config: RedisCacheConfig, fake_redis: FakeRedis, clock: FakeClock
) -> RedisCacheProvider:
    return RedisCacheProvider(redis_config, client=fake_redis, clock=clock)


# ======================================================================
# Market data
# ======================================================================


class TestMarketSize:
    @pytest.mark.asyncio
    async def test_get_market_size(self, memory: MemoryCacheProvider) -> None:
        service = _service(memory, StubProvider("fred", result={"value": 100.0}))
        result = await service.get_market_size("series")
        assert result.source == "fred"
        assert result.value == 100.0

    @pytest.mark.asyncio
    async def test_compare_markets(self, memory: MemoryCacheProvider) -> None:
        service = _service(memory)  # every lookup falls back to the reference data
        comparison = await service.compare_markets("tech-software", "US", "tech-ai", "US")
        assert comparison["market_a"]["value"] == 659e9
        assert comparison["market_b"]["value"] == 328e9
        assert comparison["difference"] == 659e9 - 328e9
        assert comparison["ratio"] == pytest.approx(659 / 328)

    @pytest.mark.asyncio
    async def test_compare_against_zero_has_no_ratio(self, memory: MemoryCacheProvider) -> None:
        service = _service(memory, StubProvider("zero", result={"value": 0}))
        comparison = await service.compare_markets("a-series", "US", "b-series", "US")
        assert comparison["ratio"] is None

    @pytest.mark.asyncio
    async def test_validate_within_tolerance(self, memory: MemoryCacheProvider) -> None:
        service = _service(memory)
        report = await service.validate_market_data(700e9, "tech-software")
        assert report["is_valid"] is True
        assert report["variance"] == pytest.approx(41 / 659)

    @pytest.mark.asyncio
    async def test_validate_outside_tolerance(self, memory: MemoryCacheProvider) -> None:
        service = _service(memory)
        report = await service.validate_market_data(100e9, "tech-software")
        assert report["is_valid"] is False

    @pytest.mark.asyncio
    async def test_validate_against_zero_reference(self, memory: MemoryCacheProvider) -> None:
        service = _service(memory, StubProvider("zero", result={"value": 0}))
        report = await service.validate_market_data(5.0, "series")
        assert report["is_valid"] is False
        assert report["variance"] is None


# ======================================================================
# Cache management
# ======================================================================


class TestCacheManagement:
    @pytest.mark.asyncio
    async def test_invalidate_cache_without_pattern_support(
        self, memory: MemoryCacheProvider
    ) -> None:
        service = _service(memory)
        assert await service.invalidate_cache("fred:*") == 0

    @pytest.mark.asyncio
    async def test_invalidate_cache_deletes_matching(
        self, redis_cache: RedisCacheProvider
    ) -> None:
        service = _service(redis_cache, StubProvider("fred", result={"value": 1}))
        await service.get_market_size("series")
        await redis_cache.set("imf:other", 1, 60)

        assert await service.invalidate_cache("fred:*") == 1
        assert await redis_cache.get_keys_by_pattern("*") == ["imf:other"]

    @pytest.mark.asyncio
    async def test_invalidate_cache_swallows_cache_errors(
        self, redis_cache: RedisCacheProvider
    ) -> None:
        redis_cache.delete_by_pattern = AsyncMock(side_effect=CacheUnavailableError())
        service = _service(redis_cache)
        assert await service.invalidate_cache("*") == 0

    @pytest.mark.asyncio
    async def test_invalidate_distributed(
        self, redis_cache: RedisCacheProvider, fake_redis: FakeRedis
    ) -> None:
        service = _service(redis_cache)
        await service.invalidate_distributed("fred:x")
        assert fake_redis.published[0][0] == "cache_invalidation"

    @pytest.mark.asyncio
    async def test_invalidate_distributed_noop_for_memory(
        self, memory: MemoryCacheProvider
    ) -> None:
        await _service(memory).invalidate_distributed("k")  # should not raise

    @pytest.mark.asyncio
    async def test_data_freshness(self, memory: MemoryCacheProvider, clock: FakeClock) -> None:
        service = _service(memory, StubProvider("fred", result={"value": 1}))
        assert await service.get_data_freshness("fred", "series") is None

        await service.get_market_size("series", "US")

        fetched_at = await service.get_data_freshness("fred", "series", "US")
        assert fetched_at == datetime.fromtimestamp(clock.now, tz=timezone.utc)

    @pytest.mark.asyncio
    async def test_subscribed_service_drops_invalidated_keys(
        self, fake_redis: FakeRedis, clock: FakeClock
    ) -> None:
        config = RedisCacheConfig(max_reconnect_attempts=0)
        cache = HybridCacheProvider(
            remote=RedisCacheProvider(config, client=fake_redis, clock=clock),
            memory=MemoryCacheProvider(clock=clock),
        )
        service = _service(cache, subscribe=True)
        await service.start()
        await cache.set("fred:x", 1, 60)

        publisher = RedisCacheProvider(config, client=fake_redis, clock=clock)
        await publisher.invalidate_distributed("fred:x")
        await drain_loop()

        assert await cache.memory.get("fred:x") is None
        assert (await service.get_metrics())["invalidations_received"] == 1
        await service.close()
        await publisher.close()


# ======================================================================
# Monitoring
# ======================================================================


class TestMonitoring:
    @pytest.mark.asyncio
    async def test_health_check(self, memory: MemoryCacheProvider) -> None:
        service = _service(memory, StubProvider("fred"), StubProvider("bls", available=False))
        report = await service.health_check()
        assert report["status"] == "healthy"
        assert report["providers"]["fred"]["available"] is True
        assert report["providers"]["bls"]["available"] is False
        assert report["cache"]["details"]["backend"] == "memory"

    @pytest.mark.asyncio
    async def test_health_follows_cache(
        self, redis_cache: RedisCacheProvider, fake_redis: FakeRedis
    ) -> None:
        fake_redis.fail = True
        report = await _service(redis_cache).health_check()
        assert report["status"] == HealthStatus.DEGRADED.value

    @pytest.mark.asyncio
    async def test_metrics(self, memory: MemoryCacheProvider) -> None:
        service = _service(
            memory, StubProvider("fred", result={"value": 1}), StubProvider("off", available=False)
        )
        await service.get_market_size("series")
        await service.get_market_size("series")
        await service.get_market_size("tech-ai")

        metrics = await service.get_metrics()

        assert metrics["requests"] == 3
        assert metrics["results_by_source"] == {"fred": 3}
        assert metrics["mock_fallbacks"] == 0
        assert metrics["providers_available"] == 1
        assert metrics["providers_total"] == 2
        assert metrics["cache"]["hits"] == 1

    @pytest.mark.asyncio
    async def test_metrics_count_mock_fallbacks(self, memory: MemoryCacheProvider) -> None:
        service = _service(memory)
        await service.get_market_size("tech-ai")
        metrics = await service.get_metrics()
        assert metrics["mock_fallbacks"] == 1

    @pytest.mark.asyncio
    async def test_metrics_with_composite_stats(
        self, fake_redis: FakeRedis, clock: FakeClock
    ) -> None:
        cache = HybridCacheProvider(
            remote=RedisCacheProvider(
                RedisCacheConfig(max_reconnect_attempts=0), client=fake_redis, clock=clock
            ),
            memory=MemoryCacheProvider(clock=clock),
        )
        metrics = await _service(cache).get_metrics()
        assert metrics["cache"]["hybrid"] is True
        assert metrics["cache"]["redis"]["hits"] == 0

    @pytest.mark.asyncio
    async def test_close_closes_providers_and_cache(self, memory: MemoryCacheProvider) -> None:
        provider = StubProvider("fred")
        provider.close = AsyncMock()
        memory.close = AsyncMock()
        await _service(memory, provider).close()
        provider.close.assert_awaited_once()
        memory.close.assert_awaited_once()
