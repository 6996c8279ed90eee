"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# This class reads configuration from TWO sources (in priority order):
#
#   1. **Environment variables** - e.g., SUPABASE_SERVICE_KEY=eyJ...
#      (highest priority - always wins)
#   2. **.env file** - key=value lines in the project root .env file
#      (lower priority - used for local development)
#
# Field name `supabase_url` maps to env var `SUPABASE_URL`.
#
# Defaults are used when neither an env var nor a .env entry exists.
# Static tuning defaults that are not secrets live in config/config.yaml
# and are merged by src/config/loader.py.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Artist-similarity service settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Storage backend ===
    # "postgrest" talks to the hosted Postgres (pgvector + RPC) over HTTP;
    # "sqlite" uses the local store at sqlite_db_path and computes
    # similarities in-process.
    store_backend: str = "postgrest"
    supabase_url: str = ""
    supabase_service_key: str = ""
    sqlite_db_path: str = "data/similarity.db"

    # === Table / function names on the hosted database ===
    match_rpc_function: str = "match_articles"
    similarity_table: str = "similar_artists"
    calculation_function: str = "calculate-artist-similarities"

    # === Lookup ===
    match_threshold: float = 0.7
    match_count: int = 10

    # === Freshness policy ===
    staleness_days: float = 7.0
    poll_initial_delay: float = 0.5
    poll_max_delay: float = 5.0
    poll_backoff_factor: float = 2.0
    poll_timeout: float = 30.0

    # === HTTP ===
    http_timeout: float = 30.0
    calculation_timeout: float = 120.0
    result_cache_ttl: int = 86400
    result_cache_size: int = 1000

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def rest_url(self) -> str:
        """Base URL of the PostgREST endpoint (``{supabase_url}/rest/v1``)."""
        return f"{self.supabase_url.rstrip('/')}/rest/v1"

    @property
    def functions_url(self) -> str:
        """Base URL of the hosted edge functions (``{supabase_url}/functions/v1``)."""
        return f"{self.supabase_url.rstrip('/')}/functions/v1"
