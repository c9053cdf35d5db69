"""BLS (Bureau of Labor Statistics) timeseries provider.

Reads the latest value of a BLS v2 series.  Identifiers that are already
series ids (``CEU3000000001``) are used as given; industry codes are mapped
to the Current Employment Statistics "all employees" series for that
industry.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from tamdata.providers.market_data.base import BaseMarketDataProvider, parse_number
from tamdata.utils.errors import DataFetchError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_SERIES_ID = re.compile(r"^[A-Z]{2,4}[A-Z0-9]{6,}$")
_SUCCESS = "REQUEST_SUCCEEDED"


def industry_to_series(identifier: str) -> str:
    """Map an identifier to a BLS series id.

    ``31-33`` -> ``CEU3100000001``; series ids pass through unchanged.
    """
    ident = identifier.strip().upper()
    if _SERIES_ID.match(ident):
        return ident
    digits = ident.split("-", 1)[0]
    return f"CEU{digits[:8].ljust(8, '0')}01"


class BLSProvider(BaseMarketDataProvider):
    """Latest value of a BLS timeseries (employment in thousands for CES series)."""

    NAME = "bls"
    KEY_SETTING = "BLS_API_KEY"

    @classmethod
    def default_base_url(cls) -> str:
        return "https://api.bls.gov/publicAPI/v2/timeseries/data"

    async def fetch_market_size(self, identifier: str, region: str) -> dict[str, Any] | None:
        """Return the latest data point; BLS national series ignore *region*."""
        self._require_available()
        series_id = industry_to_series(identifier)
        return await self._cached_fetch(
            "timeseries",
            {"series_id": series_id},
            lambda: self._fetch_series(series_id),
        )

    async def _fetch_series(self, series_id: str) -> dict[str, Any] | None:
        data = await self._request_json(
            "POST",
            f"{self._base_url}/",
            json={"seriesid": [series_id], "registrationkey": self._api_key, "latest": True},
        )
        if not isinstance(data, dict):
            raise DataFetchError(message="Unexpected response structure", provider_name=self.NAME)

        if data.get("status") != _SUCCESS:
            message = "; ".join(str(m) for m in data.get("message") or []) or str(data.get("status"))
            if "threshold" in message.lower():
                raise RateLimitError(message=message, provider_name=self.NAME)
            raise DataFetchError(message=message, provider_name=self.NAME)

        series = (data.get("Results") or {}).get("series") or []
        points = series[0].get("data") if series else None
        if not points:
            logger.warning("bls_no_data", series_id=series_id)
            return None

        latest = points[0]
        value = parse_number(latest.get("value"))
        if value is None:
            return None
        return {
            "value": value,
            "series_id": series_id,
            "year": latest.get("year"),
            "period": latest.get("period"),
            "period_name": latest.get("periodName"),
        }
