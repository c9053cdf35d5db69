"""Shared plumbing for market-data provider adapters.

:class:`BaseMarketDataProvider` owns the parts every adapter repeats:

- a shared ``httpx.AsyncClient`` (injected, or created and owned locally),
- translation of httpx failures into :class:`DataFetchError` /
  :class:`RateLimitError`,
- the cache-checked fetch in :meth:`_cached_fetch`.

Cache policy for ``_cached_fetch``:

    hit (payload)         -> return payload, no network call
    hit (negative marker) -> return None, no network call
    fetch returns payload -> cache for ``ttl``
    fetch returns None    -> cache the negative marker for ``no_data_ttl``
    RateLimitError        -> cache the negative marker for ``rate_limit_ttl``
    DataFetchError        -> nothing cached, error propagates

The negative marker is ``{"value": None}`` so that "provider said no data"
is never confused with a cache miss.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from tamdata.interfaces.cache_provider import ICacheProvider
from tamdata.interfaces.market_data_provider import IMarketDataProvider
from tamdata.models.market import ProviderStatus
from tamdata.utils.cache_keys import make_cache_key
from tamdata.utils.errors import (
    CacheError,
    DataFetchError,
    ProviderUnavailableError,
    RateLimitError,
)

logger = structlog.get_logger(logger_name=__name__)

NO_DATA: dict[str, Any] = {"value": None}

DEFAULT_TTL = 24 * 60 * 60
DEFAULT_NO_DATA_TTL = 60 * 60
DEFAULT_RATE_LIMIT_TTL = 5 * 60
_DEFAULT_TIMEOUT = 15.0
_DEFAULT_HEADERS = {
    "User-Agent": "tam-data-hub/0.1",
    "Accept": "application/json",
}


def is_no_data(payload: Any) -> bool:
    """Return ``True`` if *payload* is the cached negative marker."""
    return isinstance(payload, dict) and payload == NO_DATA


def build_http_client(timeout: float = _DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Create the process-wide HTTP client handed to every adapter."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers=_DEFAULT_HEADERS,
        follow_redirects=True,
    )


class BaseMarketDataProvider(IMarketDataProvider):
    """Base class for cache-backed REST adapters.

    Subclasses set :attr:`NAME`, :attr:`REQUIRES_KEY` and implement
    :meth:`fetch_market_size` in terms of :meth:`_cached_fetch` and
    :meth:`_request_json`.

    Parameters
    ----------
    cache:
        The process-wide cache instance built by ``create_cache``.
    http_client:
        Shared async HTTP client.  When omitted one is created and closed
        by :meth:`close`.
    api_key:
        Access credential.  Empty string means "not configured".
    ttl, no_data_ttl, rate_limit_ttl:
        Cache lifetimes in seconds for payloads, negative results and
        rate-limit back-off.
    """

    NAME: str = ""
    REQUIRES_KEY: bool = True
    KEY_SETTING: str = ""

    def __init__(
        self,
        cache: ICacheProvider,
        http_client: httpx.AsyncClient | None = None,
        api_key: str = "",
        base_url: str | None = None,
        ttl: float = DEFAULT_TTL,
        no_data_ttl: float = DEFAULT_NO_DATA_TTL,
        rate_limit_ttl: float = DEFAULT_RATE_LIMIT_TTL,
    ) -> None:
        self._cache = cache
        self._owns_client = http_client is None
        self._client = http_client or build_http_client()
        self._api_key = api_key
        self._base_url = (base_url or self.default_base_url()).rstrip("/")
        self._ttl = ttl
        self._no_data_ttl = no_data_ttl
        self._rate_limit_ttl = rate_limit_ttl

    @classmethod
    def default_base_url(cls) -> str:
        return ""

    # ------------------------------------------------------------------
    # IMarketDataProvider
    # ------------------------------------------------------------------

    def get_provider_name(self) -> str:
        return self.NAME

    def is_available(self) -> bool:
        """Available when no credential is needed or one is configured."""
        return not self.REQUIRES_KEY or bool(self._api_key)

    def status(self) -> ProviderStatus:
        return ProviderStatus(
            name=self.NAME,
            available=self.is_available(),
            key_name=self.KEY_SETTING,
            required=self.REQUIRES_KEY,
        )

    def _require_available(self) -> None:
        if not self.is_available():
            raise ProviderUnavailableError(
                message=f"{self.KEY_SETTING or 'API key'} is not configured",
                provider_name=self.NAME,
            )

    # ------------------------------------------------------------------
    # Cache-checked fetch
    # ------------------------------------------------------------------

    def cache_key(self, operation: str, **params: Any) -> str:
        return make_cache_key(self.NAME, operation, **params)

    async def _cache_get(self, key: str) -> Any | None:
        try:
            return await self._cache.get(key)
        except CacheError as exc:
            logger.warning("provider_cache_read_failed", provider=self.NAME, key=key, error=str(exc))
            return None

    async def _cache_set(self, key: str, value: Any, ttl: float) -> None:
        try:
            await self._cache.set(key, value, ttl)
        except CacheError as exc:
            logger.warning("provider_cache_write_failed", provider=self.NAME, key=key, error=str(exc))

    async def _cached_fetch(
        self,
        operation: str,
        params: dict[str, Any],
        fetcher: Callable[[], Awaitable[Any | None]],
    ) -> Any | None:
        """Return the cached payload for *operation*/*params* or fetch and cache it."""
        key = self.cache_key(operation, **params)
        cached = await self._cache_get(key)
        if cached is not None:
            logger.debug("provider_cache_hit", provider=self.NAME, key=key)
            return None if is_no_data(cached) else cached

        try:
            payload = await fetcher()
        except RateLimitError as exc:
            logger.warning("provider_rate_limited", provider=self.NAME, key=key, error=exc.message)
            await self._cache_set(key, NO_DATA, self._rate_limit_ttl)
            return None

        if payload is None:
            logger.info("provider_no_data", provider=self.NAME, key=key)
            await self._cache_set(key, NO_DATA, self._no_data_ttl)
            return None

        await self._cache_set(key, payload, self._ttl)
        return payload

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Perform an HTTP request and decode JSON, mapping failures to domain errors."""
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise DataFetchError(
                message=f"Timeout calling {url}: {exc}",
                provider_name=self.NAME,
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                raise RateLimitError(
                    message=f"HTTP 429 from {url}",
                    provider_name=self.NAME,
                ) from exc
            raise DataFetchError(
                message=f"HTTP {status} from {url}",
                provider_name=self.NAME,
            ) from exc
        except httpx.HTTPError as exc:
            raise DataFetchError(
                message=f"HTTP error calling {url}: {exc}",
                provider_name=self.NAME,
            ) from exc

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DataFetchError(
                message=f"Invalid JSON from {url}",
                provider_name=self.NAME,
            ) from exc

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def parse_number(raw: Any) -> float | None:
    """Parse a provider's numeric field; ``None`` for blanks and sentinels like ``"."``."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().replace(",", "")
    if text in {"", ".", "None", "NaN", "-"}:
        return None
    try:
        return float(text)
    except ValueError:
        return None
