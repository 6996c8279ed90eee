"""In-process similarity calculator over the SQLite store.

Does locally what the hosted edge function does remotely: for each
source artist, score every other artist with :class:`SimilarityScorer`
and upsert the results as similarity records.  Used with the ``sqlite``
backend and by the CLI.
"""

from __future__ import annotations

import structlog

from src.interfaces.calculation_trigger import ICalculationTrigger
from src.models.similarity import (
    Artist,
    CalculationResult,
    ProcessedArtist,
    SimilarityRecord,
    utcnow,
)
from src.providers.store.sqlite_store import SQLiteStore
from src.services.similarity_scoring import SimilarityScorer
from src.utils.errors import BackendError, CalculationError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_BATCH_LIMIT = 10


class LocalSimilarityCalculator(ICalculationTrigger):
    """Compute and persist similarity records without a remote job."""

    def __init__(self, store: SQLiteStore, scorer: SimilarityScorer | None = None) -> None:
        self._store = store
        self._scorer = scorer or SimilarityScorer()

    async def calculate(
        self,
        artist_id: str | None = None,
        limit: int | None = None,
    ) -> CalculationResult:
        try:
            return await self._calculate(artist_id, limit)
        except BackendError as exc:
            raise CalculationError(
                message=f"Local similarity calculation failed: {exc.message}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def _calculate(self, artist_id: str | None, limit: int | None) -> CalculationResult:
        if artist_id is not None:
            found = await self._store.get_artist(artist_id)
            sources = [found] if found is not None else []
        else:
            sources = await self._store.list_artists(limit=limit or _DEFAULT_BATCH_LIMIT)

        # An unknown id or an empty table ends here, before the full scan.
        if not sources:
            return CalculationResult(success=True, message="No artists to process", processed=[])

        all_artists = await self._store.list_artists()
        vectors = await self._store.all_embeddings()
        processed: list[ProcessedArtist] = []
        for source in sources:
            records = self._score_against(source, all_artists, vectors)
            if not records:
                continue
            await self._store.upsert_records(records)
            processed.append(
                ProcessedArtist(
                    artist_id=source.id,
                    artist_name=source.name,
                    similarities_calculated=len(records),
                )
            )
            logger.info("local_similarities_calculated", artist_id=source.id, count=len(records))

        return CalculationResult(
            success=True,
            processed=processed,
            total_artists_processed=len(processed),
        )

    def _score_against(
        self,
        source: Artist,
        candidates: list[Artist],
        vectors: dict[str, list[float]],
    ) -> list[SimilarityRecord]:
        computed_at = utcnow()
        records = []
        for target in candidates:
            if target.id == source.id:
                continue
            score, factors = self._scorer.score(
                source, target, vectors.get(source.id), vectors.get(target.id)
            )
            records.append(
                SimilarityRecord(
                    artist1_id=source.id,
                    artist2_id=target.id,
                    similarity_score=score,
                    factors=factors,
                    computed_at=computed_at,
                )
            )
        return records

    def get_provider_name(self) -> str:
        return "local"
