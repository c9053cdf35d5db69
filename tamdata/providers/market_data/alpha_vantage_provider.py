"""Alpha Vantage market-data provider.

Uses the ``OVERVIEW`` function to read a company's market capitalisation
for a ticker symbol.  The free tier is heavily rate-limited (a ``Note`` or
``Information`` field replaces the payload when the quota is hit), so
rate-limit answers are cached as "no data" for a short back-off window.
"""

from __future__ import annotations

from typing import Any

import structlog

from tamdata.providers.market_data.base import BaseMarketDataProvider, parse_number
from tamdata.utils.errors import RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_OVERVIEW_FUNCTION = "OVERVIEW"
_RATE_LIMIT_MARKERS = ("api call frequency", "rate limit")


class AlphaVantageProvider(BaseMarketDataProvider):
    """Market capitalisation of a listed company via Alpha Vantage."""

    NAME = "alpha_vantage"
    KEY_SETTING = "ALPHA_VANTAGE_API_KEY"

    @classmethod
    def default_base_url(cls) -> str:
        return "https://www.alphavantage.co"

    async def fetch_market_size(self, identifier: str, region: str) -> dict[str, Any] | None:
        """Return the company overview with ``value`` set to market capitalisation.

        *region* is accepted for interface compatibility; OVERVIEW is global.
        """
        self._require_available()
        symbol = identifier.strip().upper()
        return await self._cached_fetch(
            _OVERVIEW_FUNCTION.lower(),
            {"symbol": symbol},
            lambda: self._fetch_overview(symbol),
        )

    async def _fetch_overview(self, symbol: str) -> dict[str, Any] | None:
        data = await self._request_json(
            "GET",
            f"{self._base_url}/query",
            params={"function": _OVERVIEW_FUNCTION, "symbol": symbol, "apikey": self._api_key},
        )
        if not isinstance(data, dict):
            return None

        notice = str(data.get("Note") or data.get("Information") or "")
        if notice and any(marker in notice.lower() for marker in _RATE_LIMIT_MARKERS):
            raise RateLimitError(message=notice, provider_name=self.NAME)

        market_cap = parse_number(data.get("MarketCapitalization"))
        if not data.get("Symbol") or market_cap is None or market_cap <= 0:
            logger.warning("alpha_vantage_no_market_cap", symbol=symbol)
            return None

        return {
            "value": market_cap,
            "symbol": data.get("Symbol"),
            "name": data.get("Name"),
            "exchange": data.get("Exchange"),
            "currency": data.get("Currency"),
            "country": data.get("Country"),
            "sector": data.get("Sector"),
            "industry": data.get("Industry"),
        }
