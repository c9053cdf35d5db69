"""Market-data models produced by the source orchestrator.

A :class:`MarketSizeResult` is built fresh for every request and never
persisted on its own; only its ``value``/``source``/``details`` triple is
cached under the request's derived key.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MOCK_SOURCE = "mock"


class IdentifierKind(str, Enum):  # noqa: UP042
    """Shape-based classification of an opaque market identifier.

    TICKER         -- short uppercase token such as ``AAPL`` or ``BRK.B``
    INDUSTRY_CODE  -- NAICS/SIC-style digits, optionally a range (``31-33``)
    SERIES_ID      -- anything else (FRED series, World Bank indicator, ...)
    """

    TICKER = "ticker"
    INDUSTRY_CODE = "industry_code"
    SERIES_ID = "series_id"


class MarketSizeResult(BaseModel):
    """First successful market-size answer, tagged with its provider."""

    model_config = ConfigDict(frozen=True)

    value: float
    source: str
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_mock(self) -> bool:
        return self.source == MOCK_SOURCE


class ProviderStatus(BaseModel):
    """Availability of one provider, as reported at startup and by health checks."""

    model_config = ConfigDict(frozen=True)

    name: str
    available: bool
    key_name: str = ""
    required: bool = False
