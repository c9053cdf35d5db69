"""Utility modules for tam-data-hub.

- **cache_keys** -- Deterministic, secret-free cache key construction shared by
  every provider adapter and the source orchestrator.
- **errors** -- Domain-specific exception hierarchy rooted at TamDataError.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production, always on
  stderr.
"""

from tamdata.utils.cache_keys import make_cache_key
from tamdata.utils.errors import (
    CacheError,
    CacheUnavailableError,
    ConfigurationError,
    DataFetchError,
    InvalidRequestError,
    ProviderUnavailableError,
    RateLimitError,
    SerializationError,
    TamDataError,
)
from tamdata.utils.logging import configure_logging, get_logger

__all__ = [
    "CacheError",
    "CacheUnavailableError",
    "ConfigurationError",
    "DataFetchError",
    "InvalidRequestError",
    "ProviderUnavailableError",
    "RateLimitError",
    "SerializationError",
    "TamDataError",
    "configure_logging",
    "get_logger",
    "make_cache_key",
]
