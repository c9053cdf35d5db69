"""Deterministic cache-key construction.

Every cached provider call is stored under a key derived from
``(provider, operation, parameters)``.  The key must be identical for the
same logical request no matter how the caller ordered its arguments, and it
must never contain a credential: keys are logged, enumerated by pattern
operations and written to disk as filenames.

Examples::

    make_cache_key("fred", "market_size", series_id="GDP", region="US")
    # -> "fred:market_size:region=US|series_id=GDP"

    make_cache_key("fred", "market_size", region="US", series_id="GDP", api_key="abc")
    # -> "fred:market_size:region=US|series_id=GDP"   (same key, secret dropped)
"""

from __future__ import annotations

from typing import Any

# Parameter names that carry credentials.  Compared case-insensitively.
SECRET_PARAM_NAMES = frozenset(
    {"api_key", "apikey", "registrationkey", "key", "token", "password", "secret"}
)


def _normalize_value(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_normalize_value(v) for v in value)
    return str(value)


def make_cache_key(provider: str, operation: str, **params: Any) -> str:
    """Build a stable, secret-free cache key.

    Parameters are sorted by name, ``None`` values are dropped and any
    parameter whose name is listed in :data:`SECRET_PARAM_NAMES` is excluded.
    """
    parts = [
        f"{name}={_normalize_value(value)}"
        for name, value in sorted(params.items())
        if value is not None and name.lower() not in SECRET_PARAM_NAMES
    ]
    return f"{provider}:{operation}:{'|'.join(parts)}"
