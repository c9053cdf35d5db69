"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml : Static defaults checked into the repo
#   2. .env file          : Local developer overrides (not committed)
#   3. Environment vars   : Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the values
# that were explicitly supplied through .env or the environment on top.
# Settings fields left at their defaults do not override the YAML.
#
# The _deep_merge helper does recursive dict merging:
#   base = {"cache": {"type": "memory"}}
#   overrides = {"cache": {"redis": {"host": "cache.internal"}}}
#   result = {"cache": {"type": "memory", "redis": {"host": "cache.internal"}}}
#
# There is no runtime reconfiguration: the resolved dict is read once at
# startup by tamdata.main.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path
from typing import Any

import yaml

from tamdata.config.settings import Settings

# Settings field -> path inside the YAML document.
_ENV_PATHS: dict[str, tuple[str, ...]] = {
    "app_env": ("app", "env"),
    "log_level": ("logging", "level"),
    "cache_type": ("cache", "type"),
    "cache_dir": ("cache", "memory", "persistence_dir"),
    "cache_fallback_timeout": ("cache", "fallback_timeout"),
    "redis_host": ("cache", "redis", "host"),
    "redis_port": ("cache", "redis", "port"),
    "redis_password": ("cache", "redis", "password"),
    "redis_db": ("cache", "redis", "db"),
    "redis_key_prefix": ("cache", "redis", "key_prefix"),
    "redis_default_ttl": ("cache", "redis", "default_ttl"),
    "redis_enable_fallback": ("cache", "redis", "enable_fallback"),
    "redis_connect_timeout": ("cache", "redis", "connect_timeout"),
    "redis_command_timeout": ("cache", "redis", "command_timeout"),
    "redis_max_reconnect_attempts": ("cache", "redis", "max_reconnect_attempts"),
    "redis_subscribe_invalidations": ("cache", "subscribe_invalidations"),
    "cache_ttl_provider": ("ttl", "provider"),
    "cache_ttl_no_data": ("ttl", "no_data"),
    "cache_ttl_rate_limit": ("ttl", "rate_limit"),
    "cache_ttl_market_size": ("ttl", "market_size"),
    "http_timeout": ("http", "timeout"),
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; constructed from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides: dict[str, Any] = {}
    for field in sorted(settings.model_fields_set):
        target = _ENV_PATHS.get(field)
        if target is None:
            continue
        node = env_overrides
        for part in target[:-1]:
            node = node.setdefault(part, {})
        node[target[-1]] = getattr(settings, field)

    env_overrides.setdefault("providers", {})["available"] = settings.get_available_providers()

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
