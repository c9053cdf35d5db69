"""Custom exception hierarchy for tam-data-hub.

All application exceptions inherit from :class:`TamDataError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "fred", "alpha_vantage", "redis") caused the failure.

The hierarchy is organized by the concern that raised it:

    TamDataError  (base -- catch-all for any tam-data-hub error)
    +-- ConfigurationError        (startup / unsupported cache type / bad config)
    +-- InvalidRequestError       (malformed identifier or region from a caller)
    +-- CacheError                (cache subsystem failures)
    |   +-- CacheUnavailableError (remote store down and fallback disabled)
    |   +-- SerializationError    (value cannot be encoded for storage)
    +-- ProviderUnavailableError  (external provider not usable right now)
    +-- DataFetchError            (transport or payload failure from a provider)
        +-- RateLimitError        (provider rate-limit exceeded)

Transport and data errors are recovered where they happen: the remote cache
falls back to its in-process map and the source orchestrator advances to the
next provider.  Only :class:`InvalidRequestError` is meant to reach the caller
of the orchestrator.
"""


class TamDataError(Exception):
    """Base exception for all tam-data-hub errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[fred] HTTP 500 from series endpoint``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration / request errors
# ---------------------------------------------------------------------------

class ConfigurationError(TamDataError):
    """Raised when configuration is invalid or missing at construction time."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidRequestError(TamDataError, ValueError):
    """Raised when a caller passes a malformed identifier or region."""

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Cache errors
# ---------------------------------------------------------------------------

class CacheError(TamDataError):
    """Raised when a cache backend operation fails."""

    def __init__(
        self,
        message: str = "Cache operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CacheUnavailableError(CacheError):
    """Raised when the remote store is down and in-process fallback is disabled."""

    def __init__(
        self,
        message: str = "Remote cache is not connected and fallback is disabled",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SerializationError(CacheError):
    """Raised when a value cannot be serialized for storage."""

    def __init__(
        self,
        message: str = "Failed to serialize cache value",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External data provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(TamDataError):
    """Raised when an external data provider cannot be used.

    Typically the provider's access credential is not configured.  The
    source orchestrator treats this exactly like "no result" and tries the
    next provider in the derived priority order.
    """

    def __init__(
        self,
        message: str = "External data provider is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DataFetchError(TamDataError):
    """Raised when a provider request fails at the transport or payload level."""

    def __init__(
        self,
        message: str = "Failed to fetch data from provider",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(DataFetchError):
    """Raised when a provider reports that its request quota is exhausted."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
