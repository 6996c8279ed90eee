"""Periodic refresh of stale similarity records.

Finds every source artist whose newest similarity record is older than
the staleness threshold and recomputes it through the freshness policy,
one artist at a time.  A failure for one artist is recorded in the
summary and does not stop the others.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.interfaces.similarity_record_store import ISimilarityRecordStore
from src.services.freshness_policy import SimilarityFreshnessPolicy
from src.utils.errors import MusicboardError

logger = structlog.get_logger(logger_name=__name__)


class RefreshSummary(BaseModel):
    """Outcome of one stale-refresh run."""

    model_config = ConfigDict(frozen=True)

    checked: int = 0
    refreshed: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)


class StaleSimilarityRefresher:
    def __init__(
        self,
        records: ISimilarityRecordStore,
        policy: SimilarityFreshnessPolicy,
    ) -> None:
        self._records = records
        self._policy = policy

    async def refresh(self, limit: int | None = None) -> RefreshSummary:
        """Recompute up to *limit* stale artists (all of them when ``None``)."""
        stale_ids = await self._records.list_stale_artist_ids(
            self._policy.stale_cutoff(), limit=limit
        )
        logger.info("stale_refresh_started", stale=len(stale_ids), limit=limit)

        refreshed: list[str] = []
        failed: dict[str, str] = {}
        for artist_id in stale_ids:
            try:
                await self._policy.ensure_fresh(artist_id, force=True)
            except MusicboardError as exc:
                logger.warning("stale_refresh_artist_failed", artist_id=artist_id, error=str(exc))
                failed[artist_id] = exc.message
            else:
                refreshed.append(artist_id)

        logger.info(
            "stale_refresh_complete",
            checked=len(stale_ids),
            refreshed=len(refreshed),
            failed=len(failed),
        )
        return RefreshSummary(checked=len(stale_ids), refreshed=refreshed, failed=failed)
