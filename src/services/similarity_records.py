"""Read stored similarity records joined with artist attributes."""

from __future__ import annotations

import structlog

from src.interfaces.embedding_store import IEmbeddingStore
from src.interfaces.similarity_record_store import ISimilarityRecordStore
from src.models.similarity import StoredSimilarity

logger = structlog.get_logger(logger_name=__name__)


class SimilarityRecordService:
    """List an artist's stored similarities with their factor breakdown.

    Unlike the similar-artists pipeline this never triggers a
    calculation; it shows what the last run wrote.
    """

    def __init__(self, records: ISimilarityRecordStore, store: IEmbeddingStore) -> None:
        self._records = records
        self._store = store

    async def get_stored(self, artist_id: str, limit: int = 10) -> list[StoredSimilarity]:
        records = await self._records.get_records(artist_id, limit=limit)
        if not records:
            return []

        attributes = await self._store.get_attributes([r.artist2_id for r in records])
        stored = []
        for record in records:
            artist = attributes.get(record.artist2_id)
            stored.append(
                StoredSimilarity(
                    artist_id=record.artist2_id,
                    similarity_score=record.similarity_score,
                    name=artist.name if artist else None,
                    image=artist.image if artist else None,
                    genres=artist.genres if artist else [],
                    factors=record.factors,
                    computed_at=record.computed_at,
                )
            )
        logger.debug("stored_similarities_loaded", artist_id=artist_id, count=len(stored))
        return stored
