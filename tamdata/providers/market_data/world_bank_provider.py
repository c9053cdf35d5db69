"""World Bank indicator provider.

Public API, no credential.  Reads the most recent value (``mrv=1``) of an
indicator for a country.  Identifiers that are not World Bank indicator
codes (which always contain a dot, e.g. ``NY.GDP.MKTP.CD``) fall back to
GDP in current US dollars.
"""

from __future__ import annotations

from typing import Any

import structlog

from tamdata.providers.market_data.base import BaseMarketDataProvider, parse_number
from tamdata.utils.errors import DataFetchError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_INDICATOR = "NY.GDP.MKTP.CD"


def resolve_indicator(identifier: str) -> str:
    ident = identifier.strip()
    if not ident or ident.upper() == "GDP" or "." not in ident:
        return DEFAULT_INDICATOR
    return ident.upper()


class WorldBankProvider(BaseMarketDataProvider):
    """Most recent World Bank indicator value for a country."""

    NAME = "world_bank"
    REQUIRES_KEY = False

    @classmethod
    def default_base_url(cls) -> str:
        return "https://api.worldbank.org/v2"

    async def fetch_market_size(
        self, identifier: str, region: str
    ) -> list[dict[str, Any]] | None:
        indicator = resolve_indicator(identifier)
        country = region.strip().upper()
        return await self._cached_fetch(
            "indicator",
            {"indicator": indicator, "country": country},
            lambda: self._fetch_indicator(country, indicator),
        )

    async def _fetch_indicator(self, country: str, indicator: str) -> list[dict[str, Any]] | None:
        data = await self._request_json(
            "GET",
            f"{self._base_url}/country/{country}/indicator/{indicator}",
            params={"format": "json", "mrv": 1},
        )
        # Success is [metadata, rows]; errors come back as [{"message": [...]}].
        if not isinstance(data, list) or not data:
            raise DataFetchError(message="Unexpected response structure", provider_name=self.NAME)
        if len(data) < 2:
            messages = data[0].get("message") if isinstance(data[0], dict) else None
            raise DataFetchError(
                message=f"World Bank error: {messages or data[0]}",
                provider_name=self.NAME,
            )

        rows = data[1] or []
        points = [
            {
                "country": (row.get("country") or {}).get("value"),
                "country_iso3": row.get("countryiso3code"),
                "date": row.get("date"),
                "value": parse_number(row.get("value")),
                "unit": row.get("unit"),
                "indicator": (row.get("indicator") or {}).get("value"),
            }
            for row in rows
            if isinstance(row, dict)
        ]
        if not points or points[0]["value"] is None:
            logger.warning("world_bank_no_data", country=country, indicator=indicator)
            return None
        return points
