"""Business-logic services.

- **source_orchestrator** -- classifies identifiers and walks the
  priority-ordered provider chain, falling back to a static reference value.
- **market_data_service** -- facade over the orchestrator and cache:
  comparisons, validation, invalidation, freshness, health and metrics.
"""

from tamdata.services.market_data_service import MarketDataService
from tamdata.services.source_orchestrator import (
    DEFAULT_REFERENCE_VALUE,
    MOCK_MARKET_DATA,
    ClassificationPolicy,
    SourceOrchestrator,
    normalize_payload,
)

__all__ = [
    "DEFAULT_REFERENCE_VALUE",
    "MOCK_MARKET_DATA",
    "ClassificationPolicy",
    "MarketDataService",
    "SourceOrchestrator",
    "normalize_payload",
]
