"""End-to-end market-size lookups through the real adapters, orchestrator and cache."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio

from tamdata.main import build_service
from tamdata.services.market_data_service import MarketDataService
from tests.conftest import FakeClock, FakeRedis, make_settings

Route = Callable[[httpx.Request], httpx.Response]


def _ok(payload: Any) -> Route:
    return lambda request: httpx.Response(200, json=payload)


def _fail(status: int = 500) -> Route:
    return lambda request: httpx.Response(status, json={"error": "unavailable"})


ALPHA_VANTAGE = _ok({"Symbol": "AAPL", "Name": "Apple Inc", "MarketCapitalization": "3.4E12"})
FRED_UNKNOWN_SERIES = lambda request: httpx.Response(  # noqa: E731
    400, json={"error_code": 400, "error_message": "The series does not exist."}
)
WORLD_BANK_GDP = _ok(
    [
        {"page": 1, "pages": 1, "total": 1},
        [
            {
                "indicator": {"id": "NY.GDP.MKTP.CD", "value": "GDP (current US$)"},
                "country": {"id": "US", "value": "United States"},
                "countryiso3code": "USA",
                "date": "2023",
                "value": 27360935000000,
            }
        ],
    ]
)
CENSUS_SOFTWARE = _ok(
    [
        ["PAYANN", "ESTAB", "EMP", "NAICS2017_LABEL", "NAICS2017", "us"],
        ["98765432", "11000", "520000", "Software publishers", "5112", "1"],
    ]
)


class Upstream:
    """Routes requests by host and counts calls per host."""

    def __init__(self, routes: dict[str, Route]) -> None:
        self.routes = routes
        self.calls: dict[str, int] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.calls[host] = self.calls.get(host, 0) + 1
        return self.routes.get(host, _fail(503))(request)


@pytest_asyncio.fixture
async def make_service(cache_dir: Path, clock: FakeClock, fake_redis: FakeRedis):
    clients: list[httpx.AsyncClient] = []
    services: list[MarketDataService] = []

    def _make(
        upstream: Upstream, cache_type: str = "memory", **keys: str
    ) -> MarketDataService:
        client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        config = {
            "cache": {
                "type": cache_type,
                "memory": {"persistence_dir": str(cache_dir)},
                "redis": {"max_reconnect_attempts": 0},
            },
        }
        service = build_service(
            make_settings(**keys), config, client, redis_client=fake_redis, clock=clock
        )
        clients.append(client)
        services.append(service)
        return service

    yield _make

    for service in services:
        await service.close()
    for client in clients:
        await client.aclose()


class TestMarketSizeFlow:
    @pytest.mark.asyncio
    async def test_ticker_resolved_by_markets_provider(self, make_service) -> None:
        upstream = Upstream({"www.alphavantage.co": ALPHA_VANTAGE})
        service = make_service(upstream, alpha_vantage_api_key="av")

        result = await service.get_market_size("AAPL", "US")

        assert result.source == "alpha_vantage"
        assert result.value == 3.4e12
        assert set(upstream.calls) == {"www.alphavantage.co"}

    @pytest.mark.asyncio
    async def test_ticker_falls_through_to_world_bank(self, make_service) -> None:
        upstream = Upstream(
            {
                "api.stlouisfed.org": FRED_UNKNOWN_SERIES,
                "api.worldbank.org": WORLD_BANK_GDP,
            }
        )
        # No Alpha Vantage key: skipped. FRED errors: next. World Bank answers.
        service = make_service(upstream, fred_api_key="fred")

        result = await service.get_market_size("GDP", "US")

        assert result.source == "world_bank"
        assert result.value == 27360935000000
        assert result.details["country"] == "United States"
        assert "www.imf.org" not in upstream.calls
        assert "www.alphavantage.co" not in upstream.calls

    @pytest.mark.asyncio
    async def test_industry_code_prefers_census(self, make_service) -> None:
        upstream = Upstream({"api.census.gov": CENSUS_SOFTWARE})
        service = make_service(upstream, census_api_key="c", bls_api_key="b")

        result = await service.get_market_size("5112", "US")

        assert result.source == "census"
        assert result.value == 98765432000
        assert "api.bls.gov" not in upstream.calls

    @pytest.mark.asyncio
    async def test_every_provider_down_gives_mock(self, make_service) -> None:
        upstream = Upstream({})
        service = make_service(
            upstream, alpha_vantage_api_key="a", fred_api_key="f", bls_api_key="b"
        )

        first = await service.get_market_size("tech-software", "US")
        second = await service.get_market_size("tech-software", "US")

        assert first.is_mock
        assert first.value == 659e9
        assert first == second
        assert (await service.get_metrics())["mock_fallbacks"] == 2

    @pytest.mark.asyncio
    async def test_repeat_lookup_is_served_from_cache(self, make_service) -> None:
        upstream = Upstream({"www.alphavantage.co": ALPHA_VANTAGE})
        service = make_service(upstream, alpha_vantage_api_key="av")

        await service.get_market_size("AAPL", "US")
        await service.get_market_size("AAPL", "US")

        assert upstream.calls["www.alphavantage.co"] == 1
        assert await service.get_data_freshness("alpha_vantage", "AAPL", "US") is not None

    @pytest.mark.asyncio
    async def test_expired_result_is_refetched(self, make_service, clock: FakeClock) -> None:
        upstream = Upstream({"www.alphavantage.co": ALPHA_VANTAGE})
        service = make_service(upstream, alpha_vantage_api_key="av")

        await service.get_market_size("AAPL", "US")
        clock.advance(25 * 60 * 60)
        await service.get_market_size("AAPL", "US")

        assert upstream.calls["www.alphavantage.co"] == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cache_type", ["redis", "hybrid"])
    async def test_flow_with_remote_cache_down(
        self, make_service, fake_redis: FakeRedis, cache_type: str
    ) -> None:
        fake_redis.fail = True
        upstream = Upstream({"www.alphavantage.co": ALPHA_VANTAGE})
        service = make_service(upstream, cache_type=cache_type, alpha_vantage_api_key="av")

        result = await service.get_market_size("AAPL", "US")
        again = await service.get_market_size("AAPL", "US")

        assert result.source == again.source == "alpha_vantage"
        assert upstream.calls["www.alphavantage.co"] == 1
        assert (await service.health_check())["status"] == "degraded"
