"""Pydantic request/response schemas for the artist-similarity API.

Defines the public contract for the REST endpoints: similar artists,
stored similarities, pairwise comparison, stale refresh and health.

# ─── ENVELOPE ─────────────────────────────────────────────────────────
#
# Every body carries a ``success`` flag so the dashboard can branch on
# one field:
#
#   200  {"success": true,  "data": [...]}
#   4xx  {"success": false, "error": "NotFoundError", "detail": "..."}
#
# An empty ``data`` list means "no similar artists"; failures never
# come back as empty lists.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from src.models.similarity import SimilarArtist, SimilarityFactors, StoredSimilarity


class SimilarArtistsResponse(BaseModel):
    """Enriched nearest neighbours of an artist."""

    success: bool = True
    data: list[SimilarArtist]


class StoredSimilaritiesResponse(BaseModel):
    """Stored similarity records with their factor breakdown."""

    success: bool = True
    artist_id: str
    data: list[StoredSimilarity]


class PairwiseSimilarityRequest(BaseModel):
    """Two artists to compare.

    Ids are optional here so missing or blank values reach
    ``validate_artist_id`` and are reported as a 400 ValidationError.
    """

    artist1_id: str | None = None
    artist2_id: str | None = None


class PairwiseSimilarityResponse(BaseModel):
    success: bool = True
    artist1_id: str
    artist2_id: str
    similarity_score: float
    factors: SimilarityFactors


class RefreshStaleResponse(BaseModel):
    """Summary of a stale-similarity refresh run."""

    success: bool = True
    checked: int
    refreshed: list[str]
    failed: dict[str, str]


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response body."""

    success: bool = False
    error: str
    detail: str | None = None
