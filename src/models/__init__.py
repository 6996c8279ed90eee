"""Domain models - re-exports all public model classes.

Import models from ``src.models`` rather than their submodules:
    - similarity.py - artists, embeddings, similarity records, results
    - pipeline.py   - per-request state machine for similar-artists runs
"""

from __future__ import annotations

from src.models.pipeline import SimilarityPhase, SimilarityRun
from src.models.similarity import (
    WIKIPEDIA_SOURCE,
    ArticleEmbedding,
    Artist,
    CalculationResult,
    Neighbor,
    ProcessedArtist,
    SimilarArtist,
    SimilarityFactors,
    SimilarityRecord,
    StoredSimilarity,
)

__all__ = [
    "WIKIPEDIA_SOURCE",
    "ArticleEmbedding",
    "Artist",
    "CalculationResult",
    "Neighbor",
    "ProcessedArtist",
    "SimilarArtist",
    "SimilarityFactors",
    "SimilarityPhase",
    "SimilarityRecord",
    "SimilarityRun",
    "StoredSimilarity",
]
