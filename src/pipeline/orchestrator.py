"""Orchestrator for the similar-artists request pipeline.

Coordinates the freshness policy, the nearest-neighbour lookup and the
attribute enrichment into one request.  Each step moves a frozen
:class:`SimilarityRun` to its next phase via ``model_copy`` and logs the
transition:

    START -> FRESH | STALE -> LOOKUP -> ENRICH -> DONE
      any failure                                -> ERROR (exception re-raised)

A result cache sits in front of the whole run.  A cached list for the
artist is served without touching the store; a forced run drops the
cached entry before recomputing.  There is no partial success: if any
step fails the caller gets the typed exception, never a shortened list.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog

from src.interfaces.cache_provider import ICacheProvider
from src.models.pipeline import SimilarityPhase, SimilarityRun
from src.models.similarity import SimilarArtist
from src.services.freshness_policy import SimilarityFreshnessPolicy
from src.services.similarity_enrichment import SimilarityEnrichment
from src.services.similarity_lookup import SimilarityLookup
from src.utils.errors import MusicboardError
from src.utils.logging import get_logger, run_context

_CACHE_PREFIX = "similar-artists:"


def cache_key(artist_id: str) -> str:
    return f"{_CACHE_PREFIX}{artist_id}"


class SimilarArtistsPipeline:
    """Run the similar-artists flow for one artist.

    All collaborators are injected; the pipeline never builds them.  The
    ``cache`` may be ``None`` to disable result caching.
    """

    def __init__(
        self,
        freshness_policy: SimilarityFreshnessPolicy,
        lookup: SimilarityLookup,
        enrichment: SimilarityEnrichment,
        cache: ICacheProvider | None = None,
        cache_ttl: int | None = None,
    ) -> None:
        self._freshness = freshness_policy
        self._lookup = lookup
        self._enrichment = enrichment
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def run(self, artist_id: str, force: bool = False) -> SimilarityRun:
        """Return the similar artists of *artist_id* in a finished run.

        Parameters
        ----------
        artist_id:
            An already validated artist id.
        force:
            Recompute similarities even if the stored ones are fresh.

        Raises
        ------
        NotFoundError, BackendError, CalculationError
            Propagated unchanged from the failing step.
        """
        run = SimilarityRun(run_id=uuid.uuid4().hex, artist_id=artist_id, forced=force)
        # run_id/artist_id are bound for the whole run so log lines from
        # the store and trigger below carry them.
        with run_context(run.run_id, artist_id):
            return await self._execute(run)

    async def _execute(self, run: SimilarityRun) -> SimilarityRun:
        artist_id = run.artist_id
        force = run.forced
        self._logger.info("similarity_run_start", forced=force)

        try:
            # ─── Cache ───────────────────────────────────────────────────
            # A cached list short-circuits the run: no freshness check, no
            # store round trip.  A forced run evicts the entry instead so
            # the recomputed list replaces it below.
            if self._cache is not None:
                if force:
                    await self._cache.delete(cache_key(artist_id))
                else:
                    cached = await self._cache.get(cache_key(artist_id))
                    if cached is not None:
                        run = run.advance(SimilarityPhase.FRESH, from_cache=True)
                        return self._finish(run, cached)

            # ─── Freshness ───────────────────────────────────────────────
            # ensure_fresh returns True when it had to trigger (or join) a
            # recomputation.  A failed or timed-out job raises
            # CalculationError.
            recomputed = await self._freshness.ensure_fresh(artist_id, force=force)
            run = run.advance(
                SimilarityPhase.STALE if recomputed else SimilarityPhase.FRESH,
                recomputed=recomputed,
            )
            self._log_transition(run)

            # ─── Lookup ──────────────────────────────────────────────────
            # Nearest neighbours over the artist's article embedding, self
            # excluded, ranked by score then artist id.  An artist with no
            # embedding raises NotFoundError here.
            run = run.advance(SimilarityPhase.LOOKUP)
            neighbors = await self._lookup.find_similar(artist_id)
            self._log_transition(run, neighbors=len(neighbors))

            # ─── Enrich ──────────────────────────────────────────────────
            # Order and length are preserved; missing artist rows yield
            # entries with empty attributes.
            run = run.advance(SimilarityPhase.ENRICH)
            results = await self._enrichment.enrich(neighbors)
            self._log_transition(run, results=len(results))

            if self._cache is not None:
                await self._cache.set(cache_key(artist_id), results, ttl=self._cache_ttl)
        except MusicboardError as exc:
            # Nothing is cached on failure; the next request retries from
            # the freshness check.
            failed = run.advance(
                SimilarityPhase.ERROR,
                error=str(exc),
                completed_at=datetime.now(tz=timezone.utc),  # noqa: UP017
            )
            self._logger.error(
                "similarity_run_failed",
                failed_after=run.phase.value,
                phases=[p.value for p in failed.history],
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        return self._finish(run, results)

    def _finish(self, run: SimilarityRun, results: list[SimilarArtist]) -> SimilarityRun:
        done = run.advance(
            SimilarityPhase.DONE,
            results=results,
            completed_at=datetime.now(tz=timezone.utc),  # noqa: UP017
        )
        self._logger.info(
            "similarity_run_complete",
            results=len(results),
            recomputed=done.recomputed,
            from_cache=done.from_cache,
            phases=[p.value for p in done.history],
        )
        return done

    def _log_transition(self, run: SimilarityRun, **fields: object) -> None:
        self._logger.debug("similarity_run_phase", phase=run.phase.value, **fields)
