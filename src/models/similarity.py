"""Domain models for artist similarity.

Defines Pydantic v2 models for artists, article embeddings, stored
similarity records, raw nearest-neighbour hits and enriched results.  All
models use frozen config; adapters build new instances rather than
mutating existing ones.

Data ownership:
    - ``Artist`` and ``ArticleEmbedding`` are owned by the relational store
      and are read-only from this service's point of view.
    - ``SimilarityRecord`` rows are written by the calculation job (hosted
      edge function or the local calculator) and only read and
      staleness-checked by the freshness policy.
    - ``Neighbor`` and ``SimilarArtist`` are per-request values.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

WIKIPEDIA_SOURCE = "wikipedia"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)  # noqa: UP017
    return value.astimezone(timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# Artist - identity + display attributes.
# ---------------------------------------------------------------------------
class Artist(BaseModel):
    """An artist identity record with the attributes shown next to results."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    # Single display genre (legacy column) and the full genre list used
    # for Jaccard scoring.
    genre: str | None = None
    popularity: int | None = None
    image: str | None = None
    genres: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# ArticleEmbedding - one vector per (artist, source).
# ---------------------------------------------------------------------------
class ArticleEmbedding(BaseModel):
    """Embedding of an artist's reference article (Wikipedia by default)."""

    model_config = ConfigDict(frozen=True)

    artist_id: str
    source: str = WIKIPEDIA_SOURCE
    embedding: list[float] = Field(min_length=1)


# ---------------------------------------------------------------------------
# SimilarityFactors / SimilarityRecord - stored calculation output.
# ---------------------------------------------------------------------------
class SimilarityFactors(BaseModel):
    """Per-factor breakdown of a similarity score (each 0-1)."""

    model_config = ConfigDict(frozen=True)

    genre_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    name_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    content_similarity: float = Field(default=0.0, ge=0.0, le=1.0)


class SimilarityRecord(BaseModel):
    """A directional similarity score ``artist1 -> artist2``.

    At most one record exists per ``(artist1_id, artist2_id)``; writers
    upsert on that pair.
    """

    model_config = ConfigDict(frozen=True)

    artist1_id: str
    artist2_id: str
    similarity_score: float = Field(ge=0.0, le=1.0)
    factors: SimilarityFactors | None = None
    computed_at: datetime

    @field_validator("computed_at")
    @classmethod
    def _normalize_computed_at(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_metadata(self) -> dict:
        """Storage shape of the ``metadata`` column (``{"factors": {...}}``)."""
        return {"factors": self.factors.model_dump() if self.factors else None}


# ---------------------------------------------------------------------------
# Neighbor / SimilarArtist - lookup output before and after enrichment.
# ---------------------------------------------------------------------------
class Neighbor(BaseModel):
    """A raw nearest-neighbour hit from the embedding store."""

    model_config = ConfigDict(frozen=True)

    artist_id: str
    similarity_score: float = Field(ge=0.0, le=1.0)


class SimilarArtist(BaseModel):
    """A neighbour merged with display attributes.

    Attribute fields are ``None`` when the artist record is missing; the
    entry itself is never dropped.
    """

    model_config = ConfigDict(frozen=True)

    artist_id: str
    similarity_score: float = Field(ge=0.0, le=1.0)
    name: str | None = None
    genre: str | None = None
    popularity: int | None = None
    image: str | None = None


class StoredSimilarity(BaseModel):
    """A stored similarity record joined with the target artist's attributes."""

    model_config = ConfigDict(frozen=True)

    artist_id: str
    similarity_score: float = Field(ge=0.0, le=1.0)
    name: str | None = None
    image: str | None = None
    genres: list[str] = Field(default_factory=list)
    factors: SimilarityFactors | None = None
    computed_at: datetime


# ---------------------------------------------------------------------------
# CalculationResult - what a calculation trigger reports back.
# ---------------------------------------------------------------------------
class ProcessedArtist(BaseModel):
    """One source artist handled by a calculation run."""

    model_config = ConfigDict(frozen=True)

    artist_id: str
    artist_name: str | None = None
    similarities_calculated: int = Field(default=0, ge=0)


class CalculationResult(BaseModel):
    """Outcome of a calculation trigger invocation.

    ``processed`` is ``None`` when the trigger did not report per-artist
    detail (the caller then has to poll for completion).
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    error: str | None = None
    message: str | None = None
    processed: list[ProcessedArtist] | None = None
    total_artists_processed: int | None = None

    def calculated_for(self, artist_id: str) -> int | None:
        """Return how many similarities were written for *artist_id*.

        ``None`` means the result carries no per-artist information.
        """
        if self.processed is None:
            return None
        return sum(p.similarities_calculated for p in self.processed if p.artist_id == artist_id)
