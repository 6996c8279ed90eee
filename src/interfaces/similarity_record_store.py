"""Abstract base class for similarity-record stores.

Similarity records are the directional ``artist1 -> artist2`` scores
written by a calculation run.  The freshness policy reads their
timestamps to decide whether a recalculation is needed; the records
endpoint lists them with their factor breakdown.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.models.similarity import SimilarityRecord


class ISimilarityRecordStore(ABC):
    """Contract for reading and writing :class:`SimilarityRecord` rows."""

    @abstractmethod
    async def latest_computed_at(self, artist_id: str) -> datetime | None:
        """Return the newest ``computed_at`` among records of *artist_id*.

        ``None`` when the artist has no records at all.  Timestamps are
        timezone-aware UTC.
        """

    @abstractmethod
    async def get_records(self, artist_id: str, limit: int = 10) -> list[SimilarityRecord]:
        """Return records with ``artist1_id = artist_id``, best score first."""

    @abstractmethod
    async def list_stale_artist_ids(
        self,
        older_than: datetime,
        limit: int | None = None,
    ) -> list[str]:
        """Return source artists whose newest record predates *older_than*.

        Artists with at least one record newer than the cutoff are fresh
        and must not be listed.
        """

    @abstractmethod
    async def upsert_records(self, records: list[SimilarityRecord]) -> int:
        """Insert or replace records keyed on ``(artist1_id, artist2_id)``.

        Returns
        -------
        int
            Number of rows written.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"postgrest"`` or ``"sqlite"``."""
