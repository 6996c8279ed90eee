"""Multi-factor artist similarity scoring.

Combines three signals into one 0-1 score:

    genre_similarity    Jaccard overlap of the two genre sets
    name_similarity     exact / word-overlap / substring / edit-distance
    content_similarity  cosine similarity of the article embeddings

weighted 0.6 / 0.1 / 0.3 by default.  The local calculator uses this to
write similarity records; the pairwise endpoint uses it to compare two
artists on demand.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import structlog

from src.interfaces.embedding_store import IEmbeddingStore
from src.models.similarity import Artist, SimilarityFactors
from src.utils.errors import NotFoundError, ValidationError
from src.utils.text_normalizer import (
    edit_similarity,
    name_tokens,
    normalize_artist_name,
    normalize_genres,
)

logger = structlog.get_logger(logger_name=__name__)

# Name-match tiers: word overlap scales up to 0.8, a bare substring
# match is worth 0.6.
_WORD_OVERLAP_WEIGHT = 0.8
_SUBSTRING_SCORE = 0.6


def genre_similarity(genres1: list[str] | None, genres2: list[str] | None) -> float:
    """Jaccard similarity of two genre lists; 0.0 if either is empty."""
    set1 = normalize_genres(genres1)
    set2 = normalize_genres(genres2)
    if not set1 or not set2:
        return 0.0
    return len(set1 & set2) / len(set1 | set2)


def name_similarity(name1: str | None, name2: str | None) -> float:
    """Score how alike two artist names are.

    Exact match (after normalization) scores 1.0.  Shared words score
    ``0.8 * shared / max(word counts)``.  One name containing the other
    scores 0.6.  Anything else falls back to normalized Levenshtein
    similarity.
    """
    n1 = normalize_artist_name(name1)
    n2 = normalize_artist_name(name2)
    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0

    words1 = name_tokens(n1)
    words2 = name_tokens(n2)
    shared = words1 & words2
    if shared:
        return _WORD_OVERLAP_WEIGHT * len(shared) / max(len(words1), len(words2))

    if n1 in n2 or n2 in n1:
        return _SUBSTRING_SCORE

    return edit_similarity(n1, n2)


def content_similarity(vec1: list[float] | None, vec2: list[float] | None) -> float:
    """Cosine similarity of two embeddings clamped to [0, 1].

    Missing or zero vectors score 0.0.
    """
    if not vec1 or not vec2:
        return 0.0
    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)
    if a.shape != b.shape:
        logger.warning("embedding_dimension_mismatch", dim1=a.shape[0], dim2=b.shape[0])
        return 0.0
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    return float(np.clip(np.dot(a, b) / denom, 0.0, 1.0))


@dataclass(frozen=True)
class ScoringWeights:
    """Relative weight of each factor; normalized when combined."""

    genre: float = 0.6
    name: float = 0.1
    content: float = 0.3

    @classmethod
    def from_config(cls, config: dict | None) -> ScoringWeights:
        """Build weights from the ``scoring.weights`` section of the config."""
        weights = ((config or {}).get("scoring") or {}).get("weights") or {}
        return cls(
            genre=float(weights.get("genre", cls.genre)),
            name=float(weights.get("name", cls.name)),
            content=float(weights.get("content", cls.content)),
        )

    @property
    def total(self) -> float:
        return self.genre + self.name + self.content


class SimilarityScorer:
    """Weighted combination of the three similarity factors."""

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self._weights = weights or ScoringWeights()
        if self._weights.total <= 0:
            raise ValueError("Scoring weights must sum to a positive value")

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    def factors(
        self,
        source: Artist,
        target: Artist,
        source_embedding: list[float] | None = None,
        target_embedding: list[float] | None = None,
    ) -> SimilarityFactors:
        return SimilarityFactors(
            genre_similarity=genre_similarity(source.genres, target.genres),
            name_similarity=name_similarity(source.name, target.name),
            content_similarity=content_similarity(source_embedding, target_embedding),
        )

    def combine(self, factors: SimilarityFactors) -> float:
        w = self._weights
        raw = (
            factors.genre_similarity * w.genre
            + factors.name_similarity * w.name
            + factors.content_similarity * w.content
        ) / w.total
        return max(0.0, min(1.0, raw))

    def score(
        self,
        source: Artist,
        target: Artist,
        source_embedding: list[float] | None = None,
        target_embedding: list[float] | None = None,
    ) -> tuple[float, SimilarityFactors]:
        """Return ``(score, factors)`` for *source* compared to *target*."""
        factors = self.factors(source, target, source_embedding, target_embedding)
        return self.combine(factors), factors


class PairwiseSimilarityService:
    """Compute the similarity of two specific artists on demand."""

    def __init__(self, store: IEmbeddingStore, scorer: SimilarityScorer) -> None:
        self._store = store
        self._scorer = scorer

    async def compare(self, artist1_id: str, artist2_id: str) -> tuple[float, SimilarityFactors]:
        """Score *artist1_id* against *artist2_id*.

        Raises
        ------
        ValidationError
            If both ids are the same artist.
        NotFoundError
            If either artist record does not exist.
        """
        if artist1_id == artist2_id:
            raise ValidationError(message="Cannot compare an artist with itself")

        artists = await self._store.get_attributes([artist1_id, artist2_id])
        missing = [a for a in (artist1_id, artist2_id) if a not in artists]
        if missing:
            raise NotFoundError(
                message=f"Artist not found: {', '.join(missing)}",
                provider_name=self._store.get_provider_name(),
            )

        # A missing or ambiguous article just zeroes the content factor.
        emb1 = await self._store.get_embeddings(artist1_id)
        emb2 = await self._store.get_embeddings(artist2_id)
        vec1 = emb1[0].embedding if len(emb1) == 1 else None
        vec2 = emb2[0].embedding if len(emb2) == 1 else None

        score, factors = self._scorer.score(artists[artist1_id], artists[artist2_id], vec1, vec2)
        logger.info(
            "pairwise_similarity_computed",
            artist1_id=artist1_id,
            artist2_id=artist2_id,
            score=round(score, 4),
        )
        return score, factors
