"""Unit tests for factory functions in src/main.py.

Covers backend selection, poll settings mapping, _build_all assembly
and the create_app factory, without network access.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI

from src.config.settings import Settings


# ======================================================================
# Shared helpers
# ======================================================================


def _settings(**overrides: Any) -> Settings:
    """Build a Settings instance that ignores any local .env file."""
    defaults: dict[str, Any] = {
        "store_backend": "sqlite",
        "supabase_url": "",
        "supabase_service_key": "",
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def _config(tmp_path: Path, **sections: Any) -> dict[str, Any]:
    config: dict[str, Any] = {
        "store": {"backend": "sqlite", "sqlite_db_path": str(tmp_path / "test.db")},
        "lookup": {"match_threshold": 0.8, "match_count": 5},
        "freshness": {"staleness_days": 3, "poll": {"timeout": 2.0, "max_attempts": 4}},
        "cache": {"ttl": 60, "max_size": 10},
        "http": {"timeout": 5.0, "cache_control": "max-age=60"},
    }
    config.update(sections)
    return config


# ======================================================================
# _poll_settings
# ======================================================================


class TestPollSettings:
    def test_maps_config_keys(self) -> None:
        from src.main import _poll_settings

        poll = _poll_settings(
            {"freshness": {"poll": {"initial_delay": 1, "max_delay": 4, "backoff_factor": 3, "timeout": 9}}}
        )
        assert (poll.initial_delay, poll.max_delay, poll.factor, poll.timeout) == (1.0, 4.0, 3.0, 9.0)

    def test_defaults_when_missing(self) -> None:
        from src.main import _poll_settings
        from src.services.freshness_policy import PollSettings

        assert _poll_settings({}) == PollSettings()


# ======================================================================
# _build_all
# ======================================================================


class TestBuildAll:
    @pytest.mark.asyncio
    async def test_sqlite_backend(self, tmp_path: Path) -> None:
        from src.main import _build_all
        from src.providers.calculation.local_calculator import LocalSimilarityCalculator
        from src.providers.store.sqlite_store import SQLiteStore

        components = _build_all(_settings(), _config(tmp_path))
        try:
            assert isinstance(components["store"], SQLiteStore)
            assert isinstance(components["trigger"], LocalSimilarityCalculator)
            assert components["cache_control"] == "max-age=60"
            assert components["freshness_policy"].staleness_threshold.days == 3
            for key in ("pipeline", "record_service", "pairwise_service", "stale_refresher"):
                assert components[key] is not None
        finally:
            await components["http_client"].aclose()

    @pytest.mark.asyncio
    async def test_postgrest_backend(self, tmp_path: Path) -> None:
        from src.main import _build_all
        from src.providers.calculation.edge_function_trigger import EdgeFunctionTrigger
        from src.providers.store.postgrest_store import PostgRESTStore

        settings = _settings(
            store_backend="postgrest",
            supabase_url="https://proj.supabase.co",
            supabase_service_key="service-key",
        )
        config = _config(tmp_path, store={"backend": "postgrest"})

        components = _build_all(settings, config)
        try:
            assert isinstance(components["store"], PostgRESTStore)
            assert isinstance(components["trigger"], EdgeFunctionTrigger)
        finally:
            await components["http_client"].aclose()

    def test_postgrest_without_credentials(self, tmp_path: Path) -> None:
        from src.main import _build_all
        from src.utils.errors import ConfigurationError

        config = _config(tmp_path, store={"backend": "postgrest"})
        with pytest.raises(ConfigurationError, match="SUPABASE_URL"):
            _build_all(_settings(store_backend="postgrest"), config)

    def test_unknown_backend(self, tmp_path: Path) -> None:
        from src.main import _build_all
        from src.utils.errors import ConfigurationError

        with pytest.raises(ConfigurationError, match="Unknown store backend"):
            _build_all(_settings(), _config(tmp_path, store={"backend": "mongo"}))


# ======================================================================
# create_app
# ======================================================================


class TestCreateApp:
    def test_returns_fastapi_with_routes(self) -> None:
        from src.main import create_app

        application = create_app()
        paths = {route.path for route in application.routes}

        assert isinstance(application, FastAPI)
        assert "/api/v1/similar-artists" in paths
        assert "/api/v1/health" in paths
