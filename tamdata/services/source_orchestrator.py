"""Source selection and fallback orchestration for market-size lookups.

Given an opaque identifier and a region, the orchestrator:

    1. Classifies the identifier by shape (ticker, industry code, series id).
    2. Derives an ordered provider list from the classification policy.
    3. Tries providers strictly in that order, one at a time.  Unavailable
       providers are skipped; a provider that raises or returns nothing is
       logged and the chain moves on.  Each attempt is cache-checked first.
    4. Returns the first non-empty numeric result tagged with its provider,
       or a static reference value tagged ``"mock"`` when the chain is
       exhausted.

Architecture: Fallback Chain Pattern
-------------------------------------
Providers are never called concurrently.  Lower-priority providers cost
quota (Alpha Vantage allows a handful of calls per minute on the free
tier), so a success from a higher-priority provider must stop the chain.

The public :meth:`SourceOrchestrator.get_market_size` only raises
:class:`InvalidRequestError`, for malformed input.  Downstream failures
always degrade to the mock value.
"""

from __future__ import annotations

import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tamdata.interfaces.cache_provider import ICacheProvider
from tamdata.interfaces.market_data_provider import IMarketDataProvider
from tamdata.models.market import MOCK_SOURCE, IdentifierKind, MarketSizeResult
from tamdata.utils.cache_keys import make_cache_key
from tamdata.utils.errors import CacheError, InvalidRequestError
from tamdata.utils.logging import get_logger

DEFAULT_RESULT_TTL = 30 * 60
DEFAULT_REFERENCE_VALUE = 1e9

# Static reference values used when every provider comes up empty.
MOCK_MARKET_DATA: dict[str, dict[str, Any]] = {
    "tech-software": {
        "id": "tech-software",
        "name": "Software Technology",
        "country": "USA",
        "market_size": 659e9,
        "year": 2023,
    },
    "tech-ai": {
        "id": "tech-ai",
        "name": "AI Technology",
        "country": "USA",
        "market_size": 328e9,
        "year": 2023,
    },
}


class ClassificationPolicy(BaseModel):
    """Identifier-shape rules and the provider order for each shape.

    The patterns are heuristics, not a grammar.  ``GDP`` looks like a
    ticker, so it is tried against the markets provider first and reaches
    the series providers once that comes up empty.
    """

    model_config = ConfigDict(frozen=True)

    ticker_pattern: str = r"^[A-Z]{1,5}(\.[A-Z])?$"
    industry_pattern: str = r"^\d{2,6}(-\d{2,6})?$"
    ticker_order: list[str] = Field(default_factory=lambda: ["alpha_vantage"])
    industry_order: list[str] = Field(default_factory=lambda: ["census", "bls"])
    default_order: list[str] = Field(default_factory=lambda: ["fred", "world_bank", "imf"])

    def classify(self, identifier: str) -> IdentifierKind:
        if re.fullmatch(self.ticker_pattern, identifier):
            return IdentifierKind.TICKER
        if re.fullmatch(self.industry_pattern, identifier):
            return IdentifierKind.INDUSTRY_CODE
        return IdentifierKind.SERIES_ID

    def provider_order(self, kind: IdentifierKind) -> list[str]:
        """Preferred providers for *kind*, followed by the default order, without repeats."""
        preferred = {
            IdentifierKind.TICKER: self.ticker_order,
            IdentifierKind.INDUSTRY_CODE: self.industry_order,
            IdentifierKind.SERIES_ID: [],
        }[kind]
        return list(dict.fromkeys([*preferred, *self.default_order]))


def _coerce_value(raw: Any) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def normalize_payload(payload: Any, source: str) -> MarketSizeResult | None:
    """Turn a provider payload into a :class:`MarketSizeResult`, or ``None`` if empty.

    Lists use their first element (providers return latest-first).  A
    zero value is a valid result; non-numeric, boolean and non-finite
    values are not.
    """
    if payload is None:
        return None
    if isinstance(payload, (list, tuple)):
        if not payload:
            return None
        payload = payload[0]

    if isinstance(payload, dict):
        value = _coerce_value(payload.get("value"))
        details = dict(payload)
    else:
        value = _coerce_value(payload)
        details = {"raw": payload}

    if value is None:
        return None
    return MarketSizeResult(value=value, source=source, details=details)


def _require_text(name: str, raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidRequestError(f"{name} must be a non-empty string, got {raw!r}")
    return raw.strip()


class SourceOrchestrator:
    """Priority-ordered, cache-aware provider fallback chain.

    Parameters
    ----------
    providers:
        Every configured provider adapter.  Order here is irrelevant; the
        try-order comes from *policy*.
    cache:
        The process-wide cache instance.
    policy:
        Classification rules and provider orders.
    result_ttl:
        Seconds a normalised per-provider result stays cached.
    """

    def __init__(
        self,
        providers: list[IMarketDataProvider],
        cache: ICacheProvider,
        policy: ClassificationPolicy | None = None,
        result_ttl: float = DEFAULT_RESULT_TTL,
    ) -> None:
        self._providers = {p.get_provider_name(): p for p in providers}
        self._cache = cache
        self._policy = policy or ClassificationPolicy()
        self._result_ttl = result_ttl
        self._logger = get_logger(__name__)

    @property
    def policy(self) -> ClassificationPolicy:
        return self._policy

    @property
    def providers(self) -> list[IMarketDataProvider]:
        return list(self._providers.values())

    def classify(self, identifier: str) -> IdentifierKind:
        return self._policy.classify(_require_text("identifier", identifier))

    def provider_order(self, identifier: str) -> list[str]:
        """Provider names in the order they would be tried for *identifier*."""
        return self._policy.provider_order(self.classify(identifier))

    @staticmethod
    def result_cache_key(provider_name: str, identifier: str, region: str) -> str:
        return make_cache_key(provider_name, "market_size", identifier=identifier, region=region)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_market_size(self, identifier: str, region: str) -> MarketSizeResult:
        """Return the first provider result for *identifier* in *region*.

        Raises
        ------
        InvalidRequestError
            If *identifier* or *region* is not a non-empty string.
        """
        identifier = _require_text("identifier", identifier)
        region = _require_text("region", region)
        kind = self._policy.classify(identifier)
        order = self._policy.provider_order(kind)
        self._logger.info(
            "market_size_requested",
            identifier=identifier,
            region=region,
            kind=kind.value,
            order=order,
        )

        for name in order:
            provider = self._providers.get(name)
            if provider is None:
                self._logger.debug("provider_not_configured", provider=name)
                continue
            if not provider.is_available():
                self._logger.info("provider_unavailable", provider=name)
                continue

            result = await self._try_provider(provider, identifier, region)
            if result is not None:
                self._logger.info(
                    "market_size_resolved",
                    identifier=identifier,
                    region=region,
                    source=result.source,
                    value=result.value,
                )
                return result

        self._logger.warning("market_size_fallback_to_mock", identifier=identifier, region=region)
        return self.mock_result(identifier, region)

    async def _try_provider(
        self, provider: IMarketDataProvider, identifier: str, region: str
    ) -> MarketSizeResult | None:
        name = provider.get_provider_name()
        key = self.result_cache_key(name, identifier, region)

        try:
            cached = await self._cache.get(key)
        except CacheError as exc:
            self._logger.warning("result_cache_read_failed", key=key, error=str(exc))
            cached = None
        if isinstance(cached, dict):
            value = _coerce_value(cached.get("value"))
            if value is not None:
                self._logger.debug("result_cache_hit", provider=name, key=key)
                return MarketSizeResult(
                    value=value, source=name, details=dict(cached.get("details") or {})
                )

        try:
            payload = await provider.fetch_market_size(identifier, region)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "provider_fetch_failed",
                provider=name,
                identifier=identifier,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None

        result = normalize_payload(payload, name)
        if result is None:
            self._logger.info("provider_returned_empty", provider=name, identifier=identifier)
            return None

        try:
            await self._cache.set(key, result.model_dump(mode="json"), self._result_ttl)
        except CacheError as exc:
            self._logger.warning("result_cache_write_failed", key=key, error=str(exc))
        return result

    @staticmethod
    def mock_result(identifier: str, region: str) -> MarketSizeResult:
        """Static reference value for *identifier*; identical on every call."""
        reference = MOCK_MARKET_DATA.get(identifier.strip().lower())
        if reference is not None:
            return MarketSizeResult(
                value=reference["market_size"],
                source=MOCK_SOURCE,
                details={**reference, "region": region},
            )
        return MarketSizeResult(
            value=DEFAULT_REFERENCE_VALUE,
            source=MOCK_SOURCE,
            details={"id": identifier, "region": region, "reference": "default"},
        )
