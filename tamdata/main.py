"""tam-data-hub composition root.

Wires together the cache, the provider adapters, the source orchestrator
and the market data service.  Loads configuration from ``.env`` and
``config/config.yaml``.

This is the only module that constructs the cache: exactly one instance is
built per process and handed by reference to every adapter, the
orchestrator and the service.  Nothing else looks a cache up globally.

Typical use::

    async with async_session() as service:
        result = await service.get_market_size("AAPL", "US")
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import redis.asyncio as redis

from tamdata.config.loader import load_config
from tamdata.config.settings import Settings
from tamdata.interfaces.cache_provider import ICacheProvider
from tamdata.interfaces.market_data_provider import IMarketDataProvider
from tamdata.models.cache import CacheConfig
from tamdata.providers.cache.factory import create_cache
from tamdata.providers.market_data.alpha_vantage_provider import AlphaVantageProvider
from tamdata.providers.market_data.base import build_http_client
from tamdata.providers.market_data.bls_provider import BLSProvider
from tamdata.providers.market_data.census_provider import DEFAULT_CBP_YEAR, CensusProvider
from tamdata.providers.market_data.fred_provider import FredProvider
from tamdata.providers.market_data.imf_provider import IMFProvider
from tamdata.providers.market_data.world_bank_provider import WorldBankProvider
from tamdata.services.market_data_service import MarketDataService
from tamdata.services.source_orchestrator import (
    DEFAULT_RESULT_TTL,
    ClassificationPolicy,
    SourceOrchestrator,
)
from tamdata.utils.errors import ConfigurationError
from tamdata.utils.logging import get_logger

_logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Configuration sections
# ---------------------------------------------------------------------------


def build_cache_config(config: dict[str, Any]) -> CacheConfig:
    """Extract and validate the ``cache`` section of the resolved config."""
    section = dict(config.get("cache") or {})
    section.pop("subscribe_invalidations", None)
    redis_section = dict(section.get("redis") or {})
    # An empty password from the environment means "no AUTH".
    if not redis_section.get("password"):
        redis_section["password"] = None
    section["redis"] = redis_section
    try:
        return CacheConfig.model_validate(section)
    except ValueError as exc:
        raise ConfigurationError(
            message=f"Invalid cache configuration: {exc}", provider_name="cache"
        ) from exc


def build_policy(config: dict[str, Any]) -> ClassificationPolicy:
    section = config.get("orchestrator") or {}
    try:
        return ClassificationPolicy.model_validate(section)
    except ValueError as exc:
        raise ConfigurationError(message=f"Invalid orchestrator configuration: {exc}") from exc


# ---------------------------------------------------------------------------
# Provider assembly
# ---------------------------------------------------------------------------


def build_providers(
    app_settings: Settings,
    cache: ICacheProvider,
    http_client: httpx.AsyncClient,
    config: dict[str, Any] | None = None,
) -> list[IMarketDataProvider]:
    """Construct every provider adapter, sharing one cache and one HTTP client.

    Providers without a configured key are still built; they report
    themselves unavailable and the orchestrator skips them.
    """
    config = config or {}
    ttl = config.get("ttl") or {}
    common: dict[str, Any] = {
        "cache": cache,
        "http_client": http_client,
        "ttl": ttl.get("provider", app_settings.cache_ttl_provider),
        "no_data_ttl": ttl.get("no_data", app_settings.cache_ttl_no_data),
        "rate_limit_ttl": ttl.get("rate_limit", app_settings.cache_ttl_rate_limit),
    }
    census_year = ((config.get("providers") or {}).get("census") or {}).get(
        "year", DEFAULT_CBP_YEAR
    )

    providers: list[IMarketDataProvider] = [
        AlphaVantageProvider(api_key=app_settings.alpha_vantage_api_key, **common),
        FredProvider(api_key=app_settings.fred_api_key, **common),
        WorldBankProvider(**common),
        IMFProvider(**common),
        BLSProvider(api_key=app_settings.bls_api_key, **common),
        CensusProvider(api_key=app_settings.census_api_key, year=int(census_year), **common),
    ]

    for provider in providers:
        status = provider.status()
        if status.available:
            _logger.info("provider_enabled", provider=status.name)
        else:
            _logger.warning("provider_disabled", provider=status.name, missing=status.key_name)
    return providers


# ---------------------------------------------------------------------------
# Full assembly
# ---------------------------------------------------------------------------


def build_service(
    app_settings: Settings,
    config: dict[str, Any],
    http_client: httpx.AsyncClient,
    *,
    redis_client: redis.Redis | None = None,
    clock: Callable[[], float] = time.time,
) -> MarketDataService:
    """Construct the cache, providers, orchestrator and service."""
    cache = create_cache(build_cache_config(config), redis_client=redis_client, clock=clock)
    providers = build_providers(app_settings, cache, http_client, config)
    result_ttl = (config.get("ttl") or {}).get("market_size", DEFAULT_RESULT_TTL)
    orchestrator = SourceOrchestrator(
        providers=providers,
        cache=cache,
        policy=build_policy(config),
        result_ttl=float(result_ttl),
    )
    subscribe = bool((config.get("cache") or {}).get("subscribe_invalidations", False))
    return MarketDataService(orchestrator, cache, subscribe_invalidations=subscribe)


@asynccontextmanager
async def async_session(
    app_settings: Settings | None = None,
    config_path: str = "config/config.yaml",
) -> AsyncIterator[MarketDataService]:
    """Build a ready-to-use service and tear everything down on exit."""
    app_settings = app_settings or Settings()
    config = load_config(config_path, settings=app_settings)
    timeout = float((config.get("http") or {}).get("timeout", app_settings.http_timeout))
    http_client = build_http_client(timeout=timeout)
    service = build_service(app_settings, config, http_client)
    try:
        await service.start()
        yield service
    finally:
        await service.close()
        await http_client.aclose()
