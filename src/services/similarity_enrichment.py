"""Attach display attributes to nearest-neighbour hits."""

from __future__ import annotations

import structlog

from src.interfaces.embedding_store import IEmbeddingStore
from src.models.similarity import Neighbor, SimilarArtist

logger = structlog.get_logger(logger_name=__name__)


class SimilarityEnrichment:
    """Merge neighbours with name, genre, popularity and image.

    Attributes are fetched in one batch request.  Output order and length
    always match the input; a neighbour whose artist record is missing
    keeps its score with ``None`` attributes.
    """

    def __init__(self, store: IEmbeddingStore) -> None:
        self._store = store

    async def enrich(self, neighbors: list[Neighbor]) -> list[SimilarArtist]:
        if not neighbors:
            return []

        attributes = await self._store.get_attributes([n.artist_id for n in neighbors])

        enriched: list[SimilarArtist] = []
        for neighbor in neighbors:
            artist = attributes.get(neighbor.artist_id)
            enriched.append(
                SimilarArtist(
                    artist_id=neighbor.artist_id,
                    similarity_score=neighbor.similarity_score,
                    name=artist.name if artist else None,
                    genre=artist.genre if artist else None,
                    popularity=artist.popularity if artist else None,
                    image=artist.image if artist else None,
                )
            )

        missing = len(neighbors) - sum(1 for n in neighbors if n.artist_id in attributes)
        if missing:
            logger.warning("enrichment_missing_attributes", missing=missing, total=len(neighbors))
        return enriched
