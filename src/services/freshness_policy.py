"""Freshness policy for stored similarity records.

Decides whether an artist's similarity records can be served as they are
or must be recomputed first, and drives the recomputation:

    has_similarities(artist)        newest record younger than the
                                    staleness threshold (7 days)?
    ensure_fresh(artist, force)     if not (or forced): trigger the
                                    calculation, then wait until records
                                    written after the trigger show up

Waiting is a real completion signal, not a fixed sleep: the record
store's newest ``computed_at`` for the artist is polled with exponential
backoff until it is at or after the moment the trigger was sent, bounded
by a total timeout.  Concurrent callers for the same artist share one
recomputation through a :class:`~src.utils.concurrency.SingleFlight`
group.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import structlog

from src.interfaces.calculation_trigger import ICalculationTrigger
from src.interfaces.similarity_record_store import ISimilarityRecordStore
from src.models.similarity import as_utc, utcnow
from src.utils.concurrency import SingleFlight, poll_until
from src.utils.errors import CalculationError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_STALENESS_DAYS = 7.0


@dataclass(frozen=True)
class PollSettings:
    """Backoff schedule used while waiting for a calculation to land."""

    initial_delay: float = 0.5
    max_delay: float = 5.0
    factor: float = 2.0
    timeout: float = 30.0
    max_attempts: int | None = None
    # Records are stamped by the job's clock, which may run slightly
    # behind ours.
    clock_skew: float = 2.0


class SimilarityFreshnessPolicy:
    """Serve-or-recompute decision for an artist's similarity records.

    Parameters
    ----------
    records:
        Store holding :class:`SimilarityRecord` rows.
    trigger:
        Starts the calculation job.
    staleness_days:
        Records older than this are stale.
    poll:
        Completion polling schedule.
    single_flight:
        Shared in-flight group; one is created when omitted.
    now, sleep, monotonic:
        Clock and sleep functions, injected in tests.
    """

    def __init__(
        self,
        records: ISimilarityRecordStore,
        trigger: ICalculationTrigger,
        staleness_days: float = DEFAULT_STALENESS_DAYS,
        poll: PollSettings | None = None,
        single_flight: SingleFlight[None] | None = None,
        now: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if staleness_days <= 0:
            raise ValueError("staleness_days must be positive")
        self._records = records
        self._trigger = trigger
        self._staleness = timedelta(days=staleness_days)
        self._poll = poll or PollSettings()
        self._single_flight: SingleFlight[None] = single_flight or SingleFlight()
        self._now = now
        self._sleep = sleep
        self._monotonic = monotonic

    @property
    def staleness_threshold(self) -> timedelta:
        return self._staleness

    def stale_cutoff(self) -> datetime:
        """Records computed before this instant are stale."""
        return as_utc(self._now()) - self._staleness

    def is_recomputing(self, artist_id: str) -> bool:
        """Return ``True`` while a recomputation for *artist_id* is in flight."""
        return self._single_flight.in_flight(artist_id)

    async def has_similarities(self, artist_id: str) -> bool:
        """Return ``True`` if *artist_id* has at least one non-stale record."""
        latest = await self._records.latest_computed_at(artist_id)
        if latest is None:
            return False
        return as_utc(self._now()) - as_utc(latest) <= self._staleness

    async def ensure_fresh(self, artist_id: str, force: bool = False) -> bool:
        """Make sure *artist_id* has fresh similarity records.

        Returns
        -------
        bool
            ``True`` if a recomputation ran (or was joined), ``False`` if
            the existing records were fresh.

        Raises
        ------
        CalculationError
            If the trigger could not be invoked, reported a failure, or
            completion was not observed before the poll timeout.
        BackendError
            If the record store cannot be read.
        """
        if not force and await self.has_similarities(artist_id):
            logger.debug("similarities_fresh", artist_id=artist_id)
            return False

        logger.info(
            "similarities_recompute_needed",
            artist_id=artist_id,
            forced=force,
            joining=self.is_recomputing(artist_id),
        )
        await self._single_flight.do(artist_id, lambda: self._recompute(artist_id))
        return True

    async def _recompute(self, artist_id: str) -> None:
        provider = self._trigger.get_provider_name()
        triggered_at = as_utc(self._now())

        logger.info("calculation_triggered", artist_id=artist_id, provider=provider)
        result = await self._trigger.calculate(artist_id=artist_id)

        if not result.success:
            logger.error(
                "calculation_reported_failure",
                artist_id=artist_id,
                provider=provider,
                error=result.error,
            )
            raise CalculationError(
                message=result.error or "Similarity calculation failed",
                provider_name=provider,
            )

        if result.calculated_for(artist_id) == 0:
            # Nothing was written, so there is nothing to wait for.
            logger.info("calculation_produced_no_records", artist_id=artist_id)
            return

        since = triggered_at - timedelta(seconds=self._poll.clock_skew)

        async def _landed() -> bool:
            latest = await self._records.latest_computed_at(artist_id)
            return latest is not None and as_utc(latest) >= since

        completed = await poll_until(
            _landed,
            initial_delay=self._poll.initial_delay,
            max_delay=self._poll.max_delay,
            factor=self._poll.factor,
            timeout=self._poll.timeout,
            max_attempts=self._poll.max_attempts,
            sleep=self._sleep,
            clock=self._monotonic,
        )
        if not completed:
            raise CalculationError(
                message=(
                    f"Similarity calculation for artist {artist_id} did not complete "
                    f"within {self._poll.timeout:g}s"
                ),
                provider_name=provider,
            )
        logger.info("calculation_completed", artist_id=artist_id, provider=provider)
