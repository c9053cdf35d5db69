"""Market-data provider adapters.

One adapter per external source, each implementing IMarketDataProvider:

- AlphaVantageProvider -- company market capitalisation (ticker symbols)
- FredProvider         -- latest FRED series observation
- WorldBankProvider    -- latest World Bank indicator value per country
- IMFProvider          -- latest IMF DataMapper value per country
- BLSProvider          -- latest BLS timeseries value
- CensusProvider       -- County Business Patterns annual payroll

All of them share BaseMarketDataProvider's cache-checked fetch, so a
repeated request is answered from the cache without touching the network.
"""

from tamdata.providers.market_data.alpha_vantage_provider import AlphaVantageProvider
from tamdata.providers.market_data.base import (
    NO_DATA,
    BaseMarketDataProvider,
    build_http_client,
    is_no_data,
)
from tamdata.providers.market_data.bls_provider import BLSProvider
from tamdata.providers.market_data.census_provider import CensusProvider
from tamdata.providers.market_data.fred_provider import FredProvider
from tamdata.providers.market_data.imf_provider import IMFProvider
from tamdata.providers.market_data.world_bank_provider import WorldBankProvider

__all__ = [
    "NO_DATA",
    "AlphaVantageProvider",
    "BLSProvider",
    "BaseMarketDataProvider",
    "CensusProvider",
    "FredProvider",
    "IMFProvider",
    "WorldBankProvider",
    "build_http_client",
    "is_no_data",
]
