"""FRED (Federal Reserve Economic Data) market-data provider.

Reads the latest observation of a FRED series, e.g. ``GDP`` or
``GDPC1``.  FRED uses ``"."`` for missing observations; such a value is
reported as "no data".
"""

from __future__ import annotations

from typing import Any

import structlog

from tamdata.providers.market_data.base import BaseMarketDataProvider, parse_number
from tamdata.utils.errors import DataFetchError

logger = structlog.get_logger(logger_name=__name__)


class FredProvider(BaseMarketDataProvider):
    """Latest observation of a FRED time series."""

    NAME = "fred"
    KEY_SETTING = "FRED_API_KEY"

    @classmethod
    def default_base_url(cls) -> str:
        return "https://api.stlouisfed.org/fred"

    async def fetch_market_size(
        self, identifier: str, region: str
    ) -> list[dict[str, Any]] | None:
        """Return the latest observation of series *identifier*.

        FRED series are not region-scoped, so *region* does not take part
        in the request or the cache key.
        """
        self._require_available()
        series_id = identifier.strip().upper()
        return await self._cached_fetch(
            "series_observations",
            {"series_id": series_id},
            lambda: self._fetch_observations(series_id),
        )

    async def _fetch_observations(self, series_id: str) -> list[dict[str, Any]] | None:
        data = await self._request_json(
            "GET",
            f"{self._base_url}/series/observations",
            params={
                "series_id": series_id,
                "api_key": self._api_key,
                "file_type": "json",
                "sort_order": "desc",
                "limit": 1,
            },
        )
        if not isinstance(data, dict):
            raise DataFetchError(message="Unexpected response structure", provider_name=self.NAME)
        if data.get("error_message"):
            raise DataFetchError(message=str(data["error_message"]), provider_name=self.NAME)

        observations = data.get("observations")
        if observations is None:
            raise DataFetchError(message="Response has no observations", provider_name=self.NAME)

        latest = [
            {
                "series_id": series_id,
                "date": obs.get("date"),
                "realtime_start": obs.get("realtime_start"),
                "realtime_end": obs.get("realtime_end"),
                "value": parse_number(obs.get("value")),
            }
            for obs in observations
        ]
        if not latest or latest[0]["value"] is None:
            logger.warning("fred_no_observations", series_id=series_id)
            return None
        return latest
