"""Unit tests for StaleSimilarityRefresher and SimilarityRecordService."""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.models.similarity import CalculationResult
from src.services.freshness_policy import PollSettings, SimilarityFreshnessPolicy
from src.services.similarity_records import SimilarityRecordService
from src.services.stale_refresher import StaleSimilarityRefresher
from tests.conftest import FIXED_NOW, FakeTrigger, InMemoryStore, no_sleep


class _FailingForTrigger(FakeTrigger):
    """Reports failure for the artists in *failing*, succeeds otherwise."""

    def __init__(self, store: InMemoryStore, failing: set[str]) -> None:
        super().__init__(store)
        self.failing = failing

    async def calculate(self, artist_id: str | None = None, limit: int | None = None) -> CalculationResult:
        if artist_id in self.failing:
            self.calls.append({"artist_id": artist_id, "limit": limit})
            return CalculationResult(success=False, error="quota exceeded")
        return await super().calculate(artist_id=artist_id, limit=limit)


def _refresher(store: InMemoryStore, trigger: FakeTrigger) -> StaleSimilarityRefresher:
    policy = SimilarityFreshnessPolicy(
        records=store,
        trigger=trigger,
        poll=PollSettings(initial_delay=0.01, timeout=0.5, max_attempts=5),
        now=lambda: FIXED_NOW,
        sleep=no_sleep,
    )
    return StaleSimilarityRefresher(store, policy)


@pytest.fixture
def aged_store(store: InMemoryStore) -> InMemoryStore:
    store.add_record("a", "x", 0.6, FIXED_NOW - timedelta(days=10))
    store.add_record("b", "x", 0.6, FIXED_NOW - timedelta(days=30))
    store.add_record("c", "x", 0.6, FIXED_NOW - timedelta(days=2))
    return store


class TestStaleSimilarityRefresher:
    @pytest.mark.asyncio
    async def test_refreshes_only_stale_artists(self, aged_store: InMemoryStore) -> None:
        trigger = FakeTrigger(aged_store)
        summary = await _refresher(aged_store, trigger).refresh()

        assert summary.checked == 2
        assert sorted(summary.refreshed) == ["a", "b"]
        assert summary.failed == {}
        assert {c["artist_id"] for c in trigger.calls} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_run(self, aged_store: InMemoryStore) -> None:
        trigger = _FailingForTrigger(aged_store, failing={"a"})
        summary = await _refresher(aged_store, trigger).refresh()

        assert summary.refreshed == ["b"]
        assert summary.failed == {"a": "quota exceeded"}

    @pytest.mark.asyncio
    async def test_limit(self, aged_store: InMemoryStore) -> None:
        trigger = FakeTrigger(aged_store)
        summary = await _refresher(aged_store, trigger).refresh(limit=1)
        assert summary.checked == 1
        assert len(trigger.calls) == 1

    @pytest.mark.asyncio
    async def test_nothing_stale(self, store: InMemoryStore) -> None:
        store.add_record("c", "x", 0.6, FIXED_NOW)
        trigger = FakeTrigger(store)
        summary = await _refresher(store, trigger).refresh()
        assert summary.checked == 0
        assert trigger.calls == []


class TestSimilarityRecordService:
    @pytest.mark.asyncio
    async def test_joins_attributes(self, seeded_store: InMemoryStore) -> None:
        seeded_store.add_record("query", "ghost", 0.95, FIXED_NOW)

        stored = await SimilarityRecordService(seeded_store, seeded_store).get_stored("query")

        assert [s.artist_id for s in stored] == ["ghost", "a1"]
        assert stored[0].name is None
        assert stored[0].genres == []
        assert stored[1].name == "Alpha"
        assert stored[1].image == "https://img/a1.jpg"
        assert stored[1].factors is not None

    @pytest.mark.asyncio
    async def test_limit_is_passed_through(self, seeded_store: InMemoryStore) -> None:
        seeded_store.add_record("query", "a2", 0.5, FIXED_NOW)
        stored = await SimilarityRecordService(seeded_store, seeded_store).get_stored("query", limit=1)
        assert [s.artist_id for s in stored] == ["a1"]

    @pytest.mark.asyncio
    async def test_no_records_skips_attribute_lookup(self, store: InMemoryStore) -> None:
        assert await SimilarityRecordService(store, store).get_stored("nobody") == []
        assert store.get_attributes_calls == []
