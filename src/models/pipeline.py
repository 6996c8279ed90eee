"""Request state models for the similar-artists pipeline.

Each request to the similar-artists endpoints runs through a small state
machine.  The state is a frozen :class:`SimilarityRun`; every transition
produces a new copy via ``model_copy(update={...})`` so the phase history
of a run can be logged or returned without worrying about partial
mutation.

    START -> FRESH | STALE -> LOOKUP -> ENRICH -> DONE
      any stage failure                          -> ERROR
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.similarity import SimilarArtist


class SimilarityPhase(str, Enum):  # noqa: UP042
    """Phases of a similar-artists request."""

    START = "START"      # Request accepted, nothing checked yet
    FRESH = "FRESH"      # Cached similarity records are usable
    STALE = "STALE"      # Records missing/stale (or forced): recomputed
    LOOKUP = "LOOKUP"    # Nearest-neighbour search
    ENRICH = "ENRICH"    # Attaching display attributes
    DONE = "DONE"        # Result ready
    ERROR = "ERROR"      # A stage failed; no partial result is returned


class SimilarityRun(BaseModel):
    """Immutable state of one similar-artists request."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    artist_id: str
    forced: bool = False
    phase: SimilarityPhase = SimilarityPhase.START
    history: list[SimilarityPhase] = Field(default_factory=lambda: [SimilarityPhase.START])
    recomputed: bool = False
    from_cache: bool = False
    results: list[SimilarArtist] = Field(default_factory=list)
    error: str | None = None
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    completed_at: datetime | None = None

    def advance(self, phase: SimilarityPhase, **updates: object) -> SimilarityRun:
        """Return a copy moved to *phase* with *updates* applied."""
        return self.model_copy(
            update={"phase": phase, "history": [*self.history, phase], **updates}
        )
