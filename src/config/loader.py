"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is resolved in layers (later layers override earlier):
#
#   1. Settings defaults   - the field defaults in settings.py
#   2. config/config.yaml  - static defaults checked into the repo
#   3. .env / env vars     - only the values actually set there
#
# The result is a nested dict, e.g.
#   {"lookup": {"match_threshold": 0.7, "match_count": 10}, ...}
#
# _deep_merge does recursive dict merging:
#   base = {"freshness": {"staleness_days": 7}}
#   overrides = {"freshness": {"poll": {"timeout": 10}}}
#   result = {"freshness": {"staleness_days": 7, "poll": {"timeout": 10}}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings

# Settings field -> path inside the nested config dict.
_FIELD_PATHS: dict[str, tuple[str, ...]] = {
    "store_backend": ("store", "backend"),
    "supabase_url": ("store", "supabase_url"),
    "sqlite_db_path": ("store", "sqlite_db_path"),
    "match_rpc_function": ("store", "match_rpc_function"),
    "similarity_table": ("store", "similarity_table"),
    "calculation_function": ("calculation", "function"),
    "calculation_timeout": ("calculation", "timeout"),
    "match_threshold": ("lookup", "match_threshold"),
    "match_count": ("lookup", "match_count"),
    "staleness_days": ("freshness", "staleness_days"),
    "poll_initial_delay": ("freshness", "poll", "initial_delay"),
    "poll_max_delay": ("freshness", "poll", "max_delay"),
    "poll_backoff_factor": ("freshness", "poll", "backoff_factor"),
    "poll_timeout": ("freshness", "poll", "timeout"),
    "http_timeout": ("http", "timeout"),
    "result_cache_ttl": ("cache", "ttl"),
    "result_cache_size": ("cache", "max_size"),
    "app_host": ("app", "host"),
    "app_port": ("app", "port"),
    "app_env": ("app", "env"),
    "log_level": ("logging", "level"),
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is not
            an error; Settings defaults are used instead.
        settings: Pre-built settings (tests pass their own).

    Returns:
        Fully resolved configuration dictionary.
    """
    settings = settings or Settings()

    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    resolved = _sections(settings, _FIELD_PATHS.keys())
    _deep_merge(resolved, yaml_config)
    _deep_merge(resolved, _sections(settings, settings.model_fields_set & _FIELD_PATHS.keys()))
    return resolved


def _sections(settings: Settings, fields: Any) -> dict[str, Any]:
    """Project the given Settings *fields* onto the nested config layout."""
    out: dict[str, Any] = {}
    for field in fields:
        *parents, leaf = _FIELD_PATHS[field]
        node = out
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = getattr(settings, field)
    return out


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
