"""US Census County Business Patterns provider.

Annual payroll (``PAYANN``, reported in thousands of US dollars) for a
NAICS 2017 industry code at the national level.  CBP only covers the
United States; other regions get "no data".
"""

from __future__ import annotations

from typing import Any

import structlog

from tamdata.providers.market_data.base import BaseMarketDataProvider, parse_number

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CBP_YEAR = 2021
_US_REGIONS = frozenset({"US", "USA"})
_FIELDS = ("PAYANN", "ESTAB", "EMP", "NAICS2017_LABEL")


class CensusProvider(BaseMarketDataProvider):
    """Annual payroll of a US industry from County Business Patterns."""

    NAME = "census"
    KEY_SETTING = "CENSUS_API_KEY"

    def __init__(self, *args: Any, year: int = DEFAULT_CBP_YEAR, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._year = year

    @classmethod
    def default_base_url(cls) -> str:
        return "https://api.census.gov/data"

    async def fetch_market_size(self, identifier: str, region: str) -> dict[str, Any] | None:
        self._require_available()
        naics = identifier.strip()
        if region.strip().upper() not in _US_REGIONS:
            logger.debug("census_region_unsupported", region=region)
            return None
        return await self._cached_fetch(
            "cbp",
            {"naics": naics, "year": self._year},
            lambda: self._fetch_cbp(naics),
        )

    async def _fetch_cbp(self, naics: str) -> dict[str, Any] | None:
        rows = await self._request_json(
            "GET",
            f"{self._base_url}/{self._year}/cbp",
            params={
                "get": ",".join(_FIELDS),
                "for": "us:*",
                "NAICS2017": naics,
                "key": self._api_key,
            },
        )
        # First row is the header.
        if not isinstance(rows, list) or len(rows) < 2:
            logger.warning("census_no_data", naics=naics)
            return None

        record = dict(zip(rows[0], rows[1]))
        payroll_thousands = parse_number(record.get("PAYANN"))
        if payroll_thousands is None:
            return None
        return {
            "value": payroll_thousands * 1000,
            "naics": naics,
            "label": record.get("NAICS2017_LABEL"),
            "establishments": parse_number(record.get("ESTAB")),
            "employees": parse_number(record.get("EMP")),
            "year": self._year,
        }
