"""Abstract base class for similarity calculation triggers.

A calculation trigger starts the job that computes similarity scores and
persists them as :class:`~src.models.similarity.SimilarityRecord` rows.
The job itself may run remotely (a hosted edge function) or in-process
(the local calculator over the SQLite store); the freshness policy only
decides *when* to call it and waits for its records to appear.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.similarity import CalculationResult


class ICalculationTrigger(ABC):
    """Contract for starting a similarity calculation."""

    @abstractmethod
    async def calculate(
        self,
        artist_id: str | None = None,
        limit: int | None = None,
    ) -> CalculationResult:
        """Calculate similarities for one artist, or for a batch.

        Parameters
        ----------
        artist_id:
            Calculate for this artist only.
        limit:
            When *artist_id* is ``None``, process up to this many of the
            most recently added artists.

        Returns
        -------
        CalculationResult
            ``success=False`` with an ``error`` message when the job ran but
            reported a failure.

        Raises
        ------
        src.utils.errors.CalculationError
            If the job could not be invoked at all.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"edge_function"`` or ``"local"``."""
