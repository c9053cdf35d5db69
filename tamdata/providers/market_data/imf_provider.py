"""IMF DataMapper provider.

Public API, no credential.  DataMapper indicators are keyed by ISO-3
country codes and return one value per year; the latest year with a value
is reported.  ``GDP`` maps to ``NGDPD`` (GDP, current prices, billions of
US dollars).
"""

from __future__ import annotations

from typing import Any

import structlog

from tamdata.providers.market_data.base import BaseMarketDataProvider, parse_number

logger = structlog.get_logger(logger_name=__name__)

_INDICATOR_ALIASES = {"GDP": "NGDPD"}

_ISO2_TO_ISO3 = {
    "US": "USA", "GB": "GBR", "UK": "GBR", "DE": "DEU", "FR": "FRA", "JP": "JPN",
    "CN": "CHN", "IN": "IND", "CA": "CAN", "BR": "BRA", "IT": "ITA", "AU": "AUS",
    "KR": "KOR", "MX": "MEX", "ES": "ESP", "NL": "NLD", "CH": "CHE", "SE": "SWE",
}


class IMFProvider(BaseMarketDataProvider):
    """Latest annual IMF DataMapper value for an indicator and country."""

    NAME = "imf"
    REQUIRES_KEY = False

    @classmethod
    def default_base_url(cls) -> str:
        return "https://www.imf.org/external/datamapper/api/v1"

    async def fetch_market_size(self, identifier: str, region: str) -> dict[str, Any] | None:
        indicator = identifier.strip().upper()
        indicator = _INDICATOR_ALIASES.get(indicator, indicator)
        country = region.strip().upper()
        country = _ISO2_TO_ISO3.get(country, country)
        return await self._cached_fetch(
            "datamapper",
            {"indicator": indicator, "country": country},
            lambda: self._fetch_series(indicator, country),
        )

    async def _fetch_series(self, indicator: str, country: str) -> dict[str, Any] | None:
        data = await self._request_json("GET", f"{self._base_url}/{indicator}/{country}")
        if not isinstance(data, dict):
            return None

        by_year = ((data.get("values") or {}).get(indicator) or {}).get(country) or {}
        observed = [
            (year, value)
            for year, value in ((year, parse_number(raw)) for year, raw in by_year.items())
            if value is not None
        ]
        if not observed:
            logger.warning("imf_no_data", indicator=indicator, country=country)
            return None

        year, value = max(observed, key=lambda item: item[0])
        return {"value": value, "indicator": indicator, "country": country, "year": year}
