"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ─────────────────────────────────────────────────
#
# pydantic-settings reads configuration from TWO sources (in priority order):
#
#   1. **Environment variables**: e.g., FRED_API_KEY=abc123
#      (highest priority, always wins)
#   2. **.env file**: key=value lines in the project root .env file
#      (lower priority, used for local development)
#
# Field name `fred_api_key` maps to env var `FRED_API_KEY`.
#
# Empty-string API keys mean "not configured": the matching provider
# reports itself unavailable and the source orchestrator skips it.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """tam-data-hub settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Data Providers ===
    alpha_vantage_api_key: str = ""
    fred_api_key: str = ""
    bls_api_key: str = ""
    census_api_key: str = ""
    # World Bank and IMF are public and need no key.

    # === Cache ===
    cache_type: str = "memory"  # memory | redis (alias: remote) | hybrid
    cache_dir: str = ".cache_data"
    cache_fallback_timeout: float = 1.0  # seconds, hybrid remote-read race
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0
    redis_key_prefix: str = "tam_cache:"
    redis_default_ttl: float = 3600.0
    redis_enable_fallback: bool = True
    redis_connect_timeout: float = 10.0
    redis_command_timeout: float = 5.0
    redis_max_reconnect_attempts: int = 10
    redis_subscribe_invalidations: bool = False

    # === Cache TTLs (seconds) ===
    cache_ttl_provider: float = 24 * 60 * 60
    cache_ttl_no_data: float = 60 * 60
    cache_ttl_rate_limit: float = 5 * 60
    cache_ttl_market_size: float = 30 * 60

    # === HTTP ===
    http_timeout: float = 15.0

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_providers(self) -> list[str]:
        """Return provider names that are usable with the current credentials."""
        providers: list[str] = []
        if self.alpha_vantage_api_key:
            providers.append("alpha_vantage")
        if self.fred_api_key:
            providers.append("fred")
        providers.append("world_bank")
        providers.append("imf")
        if self.bls_api_key:
            providers.append("bls")
        if self.census_api_key:
            providers.append("census")
        return providers
