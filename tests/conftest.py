"""Shared pytest fixtures for the artist-similarity test suite."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from src.interfaces.calculation_trigger import ICalculationTrigger
from src.interfaces.embedding_store import IEmbeddingStore
from src.interfaces.similarity_record_store import ISimilarityRecordStore
from src.models.similarity import (
    WIKIPEDIA_SOURCE,
    ArticleEmbedding,
    Artist,
    CalculationResult,
    Neighbor,
    ProcessedArtist,
    SimilarityFactors,
    SimilarityRecord,
)

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# In-memory fakes
# ---------------------------------------------------------------------------


class InMemoryStore(IEmbeddingStore, ISimilarityRecordStore):
    """Dict-backed store with scripted nearest-neighbour rows."""

    def __init__(self) -> None:
        self.artists: dict[str, Artist] = {}
        self.embeddings: dict[str, list[list[float]]] = {}
        self.nearest_rows: list[Neighbor] = []
        self.records: dict[tuple[str, str], SimilarityRecord] = {}
        self.find_nearest_calls: list[dict[str, Any]] = []
        self.get_attributes_calls: list[list[str]] = []

    # -- setup helpers --

    def add_artist(self, artist_id: str, name: str = "", **attrs: Any) -> Artist:
        artist = Artist(id=artist_id, name=name or artist_id.title(), **attrs)
        self.artists[artist_id] = artist
        return artist

    def add_embedding(self, artist_id: str, vector: list[float] | None = None) -> None:
        self.embeddings.setdefault(artist_id, []).append(vector or [0.1, 0.2, 0.3])

    def add_record(
        self,
        artist1_id: str,
        artist2_id: str,
        score: float,
        computed_at: datetime,
    ) -> None:
        self.records[(artist1_id, artist2_id)] = SimilarityRecord(
            artist1_id=artist1_id,
            artist2_id=artist2_id,
            similarity_score=score,
            factors=SimilarityFactors(genre_similarity=score),
            computed_at=computed_at,
        )

    # -- IEmbeddingStore --

    async def get_embeddings(
        self, artist_id: str, source: str = WIKIPEDIA_SOURCE
    ) -> list[ArticleEmbedding]:
        return [
            ArticleEmbedding(artist_id=artist_id, source=source, embedding=v)
            for v in self.embeddings.get(artist_id, [])
        ]

    async def find_nearest(self, embedding: list[float], threshold: float, limit: int) -> list[Neighbor]:
        self.find_nearest_calls.append({"threshold": threshold, "limit": limit})
        return list(self.nearest_rows[:limit])

    async def get_attributes(self, artist_ids: list[str]) -> dict[str, Artist]:
        self.get_attributes_calls.append(list(artist_ids))
        return {a: self.artists[a] for a in artist_ids if a in self.artists}

    def is_available(self) -> bool:
        return True

    # -- ISimilarityRecordStore --

    async def latest_computed_at(self, artist_id: str) -> datetime | None:
        stamps = [r.computed_at for (a1, _), r in self.records.items() if a1 == artist_id]
        return max(stamps) if stamps else None

    async def get_records(self, artist_id: str, limit: int = 10) -> list[SimilarityRecord]:
        rows = [r for (a1, _), r in self.records.items() if a1 == artist_id]
        rows.sort(key=lambda r: (-r.similarity_score, r.artist2_id))
        return rows[:limit]

    async def list_stale_artist_ids(self, older_than: datetime, limit: int | None = None) -> list[str]:
        latest: dict[str, datetime] = {}
        for (a1, _), r in self.records.items():
            latest[a1] = max(latest.get(a1, r.computed_at), r.computed_at)
        stale = sorted(a for a, ts in latest.items() if ts < older_than)
        return stale[:limit] if limit is not None else stale

    async def upsert_records(self, records: list[SimilarityRecord]) -> int:
        for r in records:
            self.records[(r.artist1_id, r.artist2_id)] = r
        return len(records)

    def get_provider_name(self) -> str:
        return "memory"


class FakeTrigger(ICalculationTrigger):
    """Calculation trigger that writes one fresh record per call.

    ``result`` overrides the reported outcome; ``delay`` keeps the call
    in flight long enough for concurrency tests.
    """

    def __init__(
        self,
        store: InMemoryStore,
        now: datetime = FIXED_NOW,
        result: CalculationResult | None = None,
        delay: float = 0.0,
        write: bool = True,
    ) -> None:
        self.store = store
        self.now = now
        self.result = result
        self.delay = delay
        self.write = write
        self.calls: list[dict[str, Any]] = []

    async def calculate(self, artist_id: str | None = None, limit: int | None = None) -> CalculationResult:
        self.calls.append({"artist_id": artist_id, "limit": limit})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.result is not None:
            return self.result
        if self.write and artist_id is not None:
            self.store.add_record(artist_id, "calc-target", 0.5, self.now)
        return CalculationResult(
            success=True,
            processed=[ProcessedArtist(artist_id=artist_id or "", similarities_calculated=1)],
            total_artists_processed=1,
        )

    def get_provider_name(self) -> str:
        return "fake"


async def no_sleep(_: float) -> None:
    """Drop-in for asyncio.sleep that returns immediately."""
    await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def seeded_store() -> InMemoryStore:
    """Store with a query artist, four neighbours and fresh records."""
    s = InMemoryStore()
    s.add_artist("query", name="Query Artist", genre="techno", popularity=50)
    s.add_embedding("query")
    s.add_artist("a1", name="Alpha", genre="house", popularity=70, image="https://img/a1.jpg")
    s.add_artist("a2", name="Bravo", genre="techno", popularity=40)
    s.add_artist("a3", name="Charlie", genre="electro", popularity=20)
    s.nearest_rows = [
        Neighbor(artist_id="query", similarity_score=1.0),
        Neighbor(artist_id="a1", similarity_score=0.9),
        Neighbor(artist_id="a2", similarity_score=0.8),
        Neighbor(artist_id="a3", similarity_score=0.75),
        Neighbor(artist_id="a4", similarity_score=0.65),
    ]
    s.add_record("query", "a1", 0.9, FIXED_NOW - timedelta(days=1))
    return s


@pytest.fixture
def trigger(store: InMemoryStore) -> FakeTrigger:
    return FakeTrigger(store)


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Return a minimal resolved configuration for testing."""
    return {
        "store": {"backend": "sqlite", "sqlite_db_path": "data/test.db"},
        "lookup": {"match_threshold": 0.7, "match_count": 10},
        "freshness": {
            "staleness_days": 7,
            "poll": {"initial_delay": 0.01, "max_delay": 0.05, "backoff_factor": 2.0, "timeout": 1.0},
        },
        "scoring": {"weights": {"genre": 0.6, "name": 0.1, "content": 0.3}},
        "cache": {"ttl": 60, "max_size": 10},
        "http": {"timeout": 5.0},
    }
