"""Artist-similarity FastAPI application entry point.

Wires together the store, calculation trigger, services and routes via
dependency injection.  Loads configuration from ``.env`` and
``config/config.yaml`` and configures structured logging.

Backend selection (``STORE_BACKEND``):
    postgrest  hosted Postgres + pgvector over PostgREST, calculations run
               by the hosted edge function
    sqlite     local SQLite file, calculations run in-process
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    RequestLoggingMiddleware,
    configure_cors,
    register_error_handlers,
)
from src.api.routes import DEFAULT_CACHE_CONTROL
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.calculation_trigger import ICalculationTrigger
from src.pipeline.orchestrator import SimilarArtistsPipeline
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.calculation.edge_function_trigger import EdgeFunctionTrigger
from src.providers.calculation.local_calculator import LocalSimilarityCalculator
from src.providers.store.postgrest_store import PostgRESTStore
from src.providers.store.sqlite_store import SQLiteStore
from src.services.freshness_policy import PollSettings, SimilarityFreshnessPolicy
from src.services.similarity_enrichment import SimilarityEnrichment
from src.services.similarity_lookup import SimilarityLookup
from src.services.similarity_records import SimilarityRecordService
from src.services.similarity_scoring import (
    PairwiseSimilarityService,
    ScoringWeights,
    SimilarityScorer,
)
from src.services.stale_refresher import StaleSimilarityRefresher
from src.utils.concurrency import SingleFlight
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging, get_logger

_APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def _poll_settings(app_config: dict[str, Any]) -> PollSettings:
    poll = app_config.get("freshness", {}).get("poll", {})
    defaults = PollSettings()
    return PollSettings(
        initial_delay=float(poll.get("initial_delay", defaults.initial_delay)),
        max_delay=float(poll.get("max_delay", defaults.max_delay)),
        factor=float(poll.get("backoff_factor", defaults.factor)),
        timeout=float(poll.get("timeout", defaults.timeout)),
        max_attempts=poll.get("max_attempts", defaults.max_attempts),
    )


def _build_store_and_trigger(
    app_settings: Settings,
    app_config: dict[str, Any],
    http_client: httpx.AsyncClient,
    scorer: SimilarityScorer,
) -> tuple[PostgRESTStore | SQLiteStore, ICalculationTrigger]:
    """Select the store and calculation trigger for the configured backend."""
    store_cfg = app_config.get("store", {})
    calc_cfg = app_config.get("calculation", {})
    backend = str(store_cfg.get("backend", app_settings.store_backend)).lower()

    if backend == "sqlite":
        store = SQLiteStore(db_path=store_cfg.get("sqlite_db_path", app_settings.sqlite_db_path))
        return store, LocalSimilarityCalculator(store, scorer)

    if backend == "postgrest":
        if not app_settings.supabase_url or not app_settings.supabase_service_key:
            raise ConfigurationError(
                message="SUPABASE_URL and SUPABASE_SERVICE_KEY are required for the postgrest backend",
                provider_name="postgrest",
            )
        store = PostgRESTStore(
            http_client=http_client,
            rest_url=app_settings.rest_url,
            api_key=app_settings.supabase_service_key,
            match_function=store_cfg.get("match_rpc_function", app_settings.match_rpc_function),
            similarity_table=store_cfg.get("similarity_table", app_settings.similarity_table),
        )
        trigger = EdgeFunctionTrigger(
            http_client=http_client,
            functions_url=app_settings.functions_url,
            api_key=app_settings.supabase_service_key,
            function_name=calc_cfg.get("function", app_settings.calculation_function),
            timeout=float(calc_cfg.get("timeout", app_settings.calculation_timeout)),
        )
        return store, trigger

    raise ConfigurationError(message=f"Unknown store backend: {backend!r}")


def _build_all(app_settings: Settings, app_config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Construct every provider and service.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    app_config = app_config if app_config is not None else load_config(settings=app_settings)
    http_cfg = app_config.get("http", {})
    lookup_cfg = app_config.get("lookup", {})
    cache_cfg = app_config.get("cache", {})
    freshness_cfg = app_config.get("freshness", {})

    http_client = httpx.AsyncClient(timeout=float(http_cfg.get("timeout", app_settings.http_timeout)))
    scorer = SimilarityScorer(ScoringWeights.from_config(app_config))
    store, trigger = _build_store_and_trigger(app_settings, app_config, http_client, scorer)

    cache_ttl = int(cache_cfg.get("ttl", app_settings.result_cache_ttl))
    cache = MemoryCacheProvider(
        max_size=int(cache_cfg.get("max_size", app_settings.result_cache_size)),
        ttl=cache_ttl,
    )
    single_flight: SingleFlight[None] = SingleFlight()

    freshness_policy = SimilarityFreshnessPolicy(
        records=store,
        trigger=trigger,
        staleness_days=float(freshness_cfg.get("staleness_days", app_settings.staleness_days)),
        poll=_poll_settings(app_config),
        single_flight=single_flight,
    )
    lookup = SimilarityLookup(
        store,
        match_threshold=float(lookup_cfg.get("match_threshold", app_settings.match_threshold)),
        match_count=int(lookup_cfg.get("match_count", app_settings.match_count)),
    )
    enrichment = SimilarityEnrichment(store)
    pipeline = SimilarArtistsPipeline(
        freshness_policy=freshness_policy,
        lookup=lookup,
        enrichment=enrichment,
        cache=cache,
        cache_ttl=cache_ttl,
    )

    return {
        "http_client": http_client,
        "store": store,
        "trigger": trigger,
        "cache": cache,
        "single_flight": single_flight,
        "scorer": scorer,
        "freshness_policy": freshness_policy,
        "lookup": lookup,
        "enrichment": enrichment,
        "pipeline": pipeline,
        "record_service": SimilarityRecordService(store, store),
        "pairwise_service": PairwiseSimilarityService(store, scorer),
        "stale_refresher": StaleSimilarityRefresher(store, freshness_policy),
        "cache_control": http_cfg.get("cache_control", DEFAULT_CACHE_CONTROL),
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    store = components["store"]
    if isinstance(store, SQLiteStore):
        await store.initialize()

    _logger.info(
        "app_startup",
        version=_APP_VERSION,
        environment=settings.app_env,
        store=store.get_provider_name(),
        trigger=components["trigger"].get_provider_name(),
    )

    yield

    # -- Shutdown: close shared httpx client --
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Musicboard Similarity API",
        version=_APP_VERSION,
        description=(
            "Similar-artist lookup over Wikipedia-article embeddings, with "
            "freshness-checked similarity records and on-demand recalculation."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    register_error_handlers(application)
    configure_cors(application)
    application.add_middleware(RequestLoggingMiddleware)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
