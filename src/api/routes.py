"""FastAPI API routes for the artist-similarity service.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.  Application errors raised
by the services propagate to the handler in ``src/api/middleware.py``,
which renders them with the right status code.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                                   Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/similar-artists?id=                GET     Similar artists (fresh or recomputed)
# /api/v1/similar-artists?id=                POST    Same, forcing recomputation
# /api/v1/artists/{artist_id}/similarities   GET     Stored records + factor breakdown
# /api/v1/similarity                         POST    Score two artists against each other
# /api/v1/similarities/refresh-stale         POST    Recompute all stale artists
# /api/v1/health                             GET     Health check + backend status
# ──────────────────────────────────────────────────────────────────────
#
# DEPENDENCY RESOLUTION:
# Each handler declares its services as Annotated params.  FastAPI calls
# the _get_* helpers below, which read the singletons _build_all put on
# app.state at startup.  Tests build an app with in-memory stores and set
# the same attributes.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response

from src.api.schemas import (
    HealthResponse,
    PairwiseSimilarityRequest,
    PairwiseSimilarityResponse,
    RefreshStaleResponse,
    SimilarArtistsResponse,
    StoredSimilaritiesResponse,
)
from src.models.similarity import utcnow
from src.pipeline.orchestrator import SimilarArtistsPipeline
from src.services.similarity_records import SimilarityRecordService
from src.services.similarity_scoring import PairwiseSimilarityService
from src.services.stale_refresher import StaleSimilarityRefresher
from src.utils.logging import get_logger
from src.utils.text_normalizer import validate_artist_id

_logger: structlog.BoundLogger = get_logger(__name__)

# All routes in this file are prefixed with /api/v1.
router = APIRouter(prefix="/api/v1")

_APP_VERSION = "0.1.0"

# 24h shared-cache window with a 12h stale-while-revalidate tail.
DEFAULT_CACHE_CONTROL = "max-age=86400, s-maxage=86400, stale-while-revalidate=43200"


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> SimilarArtistsPipeline:
    """Return the similar-artists pipeline from application state."""
    return request.app.state.pipeline


def _get_record_service(request: Request) -> SimilarityRecordService:
    return request.app.state.record_service


def _get_pairwise_service(request: Request) -> PairwiseSimilarityService:
    return request.app.state.pairwise_service


def _get_refresher(request: Request) -> StaleSimilarityRefresher:
    return request.app.state.stale_refresher


def _get_cache_control(request: Request) -> str:
    return getattr(request.app.state, "cache_control", DEFAULT_CACHE_CONTROL)


PipelineDep = Annotated[SimilarArtistsPipeline, Depends(_get_pipeline)]
RecordServiceDep = Annotated[SimilarityRecordService, Depends(_get_record_service)]
PairwiseDep = Annotated[PairwiseSimilarityService, Depends(_get_pairwise_service)]
RefresherDep = Annotated[StaleSimilarityRefresher, Depends(_get_refresher)]
CacheControlDep = Annotated[str, Depends(_get_cache_control)]


# ---------------------------------------------------------------------------
# Similar artists
# ---------------------------------------------------------------------------


async def _similar_artists(
    pipeline: SimilarArtistsPipeline,
    artist_id: str | None,
    force: bool,
    response: Response,
    cache_control: str,
) -> SimilarArtistsResponse:
    # The id arrives as an optional query param so a missing one reaches
    # validate_artist_id and is reported as a 400, not FastAPI's 422.
    validated = validate_artist_id(artist_id)
    run = await pipeline.run(validated, force=force)
    # Only successful responses are cacheable; an error raised above
    # skips this line and the error handler sets no Cache-Control.
    response.headers["Cache-Control"] = cache_control
    return SimilarArtistsResponse(data=run.results)


@router.get("/similar-artists", response_model=SimilarArtistsResponse)
async def get_similar_artists(
    pipeline: PipelineDep,
    response: Response,
    cache_control: CacheControlDep,
    artist_id: Annotated[str | None, Query(alias="id")] = None,
) -> SimilarArtistsResponse:
    """Return similar artists, recomputing first if the stored ones are stale."""
    return await _similar_artists(pipeline, artist_id, False, response, cache_control)


@router.post("/similar-artists", response_model=SimilarArtistsResponse)
async def regenerate_similar_artists(
    pipeline: PipelineDep,
    response: Response,
    cache_control: CacheControlDep,
    artist_id: Annotated[str | None, Query(alias="id")] = None,
) -> SimilarArtistsResponse:
    """Recompute similarities for the artist, then return them."""
    return await _similar_artists(pipeline, artist_id, True, response, cache_control)


# ---------------------------------------------------------------------------
# Stored similarities / pairwise score
# ---------------------------------------------------------------------------


@router.get("/artists/{artist_id}/similarities", response_model=StoredSimilaritiesResponse)
async def get_stored_similarities(
    artist_id: str,
    record_service: RecordServiceDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> StoredSimilaritiesResponse:
    """List the stored similarity records of an artist with factor breakdown."""
    validated = validate_artist_id(artist_id)
    stored = await record_service.get_stored(validated, limit=limit)
    return StoredSimilaritiesResponse(artist_id=validated, data=stored)


@router.post("/similarity", response_model=PairwiseSimilarityResponse)
async def compare_artists(
    body: PairwiseSimilarityRequest,
    pairwise: PairwiseDep,
) -> PairwiseSimilarityResponse:
    """Score two artists against each other."""
    # Both ids are validated before the store is touched; the service then
    # rejects identical ids (400) and unknown artists (404).
    artist1_id = validate_artist_id(body.artist1_id)
    artist2_id = validate_artist_id(body.artist2_id)
    score, factors = await pairwise.compare(artist1_id, artist2_id)
    return PairwiseSimilarityResponse(
        artist1_id=artist1_id,
        artist2_id=artist2_id,
        similarity_score=score,
        factors=factors,
    )


@router.post("/similarities/refresh-stale", response_model=RefreshStaleResponse)
async def refresh_stale_similarities(
    refresher: RefresherDep,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> RefreshStaleResponse:
    """Recompute every artist whose similarity records are stale."""
    summary = await refresher.refresh(limit=limit)
    _logger.info("stale_refresh_requested", checked=summary.checked, failed=len(summary.failed))
    return RefreshStaleResponse(
        checked=summary.checked,
        refreshed=summary.refreshed,
        failed=summary.failed,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report which backends are configured."""
    # Reports configuration only and makes no store query.  A store that
    # reports itself unavailable turns the status to "degraded".
    providers: dict[str, Any] = {}
    store = getattr(request.app.state, "store", None)
    if store is not None:
        providers["store"] = {
            "name": store.get_provider_name(),
            "available": store.is_available(),
        }
    trigger = getattr(request.app.state, "trigger", None)
    if trigger is not None:
        providers["calculation"] = {"name": trigger.get_provider_name()}

    status = "healthy" if all(p.get("available", True) for p in providers.values()) else "degraded"
    return HealthResponse(
        status=status,
        version=_APP_VERSION,
        providers=providers,
        timestamp=utcnow(),
    )
