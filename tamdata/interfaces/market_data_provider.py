"""Abstract base class for external market-data providers.

Each external data source (Alpha Vantage, FRED, World Bank, IMF, BLS,
Census) is wrapped by one adapter implementing this contract.  The source
orchestrator holds an ordered list of these interface values and never
inspects concrete provider types.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from tamdata.models.market import ProviderStatus


class IMarketDataProvider(ABC):
    """Contract for services that return a market-size figure for an identifier.

    Adapters expose exactly two capabilities to the orchestrator: an
    availability probe and a fetch operation.  Everything else (endpoint
    layout, authentication, response parsing) is private to the adapter.
    """

    @abstractmethod
    async def fetch_market_size(
        self, identifier: str, region: str
    ) -> dict[str, Any] | list[dict[str, Any]] | None:
        """Fetch a market-size value for *identifier* in *region*.

        Parameters
        ----------
        identifier:
            Opaque identifier: a ticker, an industry code or a series id.
        region:
            Region or country code, e.g. ``"US"``.

        Returns
        -------
        dict, list of dict, or None
            A payload containing at least a numeric ``value`` key plus any
            provider-specific fields (or a list of such points, latest
            first), or ``None`` when the provider has no data for this
            request.

        Raises
        ------
        tamdata.utils.errors.DataFetchError
            On transport-level failure or an unparseable response.
        tamdata.utils.errors.RateLimitError
            When the provider reports that its quota is exhausted.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the stable identifier for this provider, e.g. ``"fred"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider can be used.

        This is a configuration probe ("is an access credential set"), not
        a live network health check.
        """

    def status(self) -> ProviderStatus:
        """Availability summary for health checks and startup reports."""
        return ProviderStatus(name=self.get_provider_name(), available=self.is_available())

    async def close(self) -> None:
        """Release provider-owned resources.  No-op by default."""
