"""Unit tests for SimilarArtistsPipeline."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
import structlog

from src.models.pipeline import SimilarityPhase
from src.models.similarity import CalculationResult, Neighbor
from src.pipeline.orchestrator import SimilarArtistsPipeline, cache_key
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.services.freshness_policy import PollSettings, SimilarityFreshnessPolicy
from src.services.similarity_enrichment import SimilarityEnrichment
from src.services.similarity_lookup import SimilarityLookup
from src.utils.errors import CalculationError, NotFoundError
from tests.conftest import FIXED_NOW, FakeTrigger, InMemoryStore, no_sleep


def _pipeline(
    store: InMemoryStore,
    trigger: FakeTrigger,
    cache: MemoryCacheProvider | None = None,
) -> SimilarArtistsPipeline:
    policy = SimilarityFreshnessPolicy(
        records=store,
        trigger=trigger,
        poll=PollSettings(initial_delay=0.01, timeout=0.5, max_attempts=5),
        now=lambda: FIXED_NOW,
        sleep=no_sleep,
    )
    return SimilarArtistsPipeline(
        freshness_policy=policy,
        lookup=SimilarityLookup(store),
        enrichment=SimilarityEnrichment(store),
        cache=cache,
    )


class TestSimilarArtistsPipeline:
    @pytest.mark.asyncio
    async def test_fresh_run_phases(self, seeded_store: InMemoryStore) -> None:
        trigger = FakeTrigger(seeded_store)
        run = await _pipeline(seeded_store, trigger).run("query")

        assert run.phase == SimilarityPhase.DONE
        assert run.history == [
            SimilarityPhase.START,
            SimilarityPhase.FRESH,
            SimilarityPhase.LOOKUP,
            SimilarityPhase.ENRICH,
            SimilarityPhase.DONE,
        ]
        assert run.recomputed is False
        assert [r.artist_id for r in run.results] == ["a1", "a2", "a3"]
        assert run.results[0].name == "Alpha"
        assert run.completed_at is not None
        assert trigger.calls == []

    @pytest.mark.asyncio
    async def test_stale_run_recomputes(self, seeded_store: InMemoryStore) -> None:
        seeded_store.records.clear()
        seeded_store.add_record("query", "a1", 0.9, FIXED_NOW - timedelta(days=10))
        trigger = FakeTrigger(seeded_store)

        run = await _pipeline(seeded_store, trigger).run("query")

        assert SimilarityPhase.STALE in run.history
        assert run.recomputed is True
        assert len(trigger.calls) == 1

    @pytest.mark.asyncio
    async def test_forced_run_recomputes_fresh_records(self, seeded_store: InMemoryStore) -> None:
        trigger = FakeTrigger(seeded_store)
        run = await _pipeline(seeded_store, trigger).run("query", force=True)
        assert run.forced is True
        assert run.recomputed is True
        assert len(trigger.calls) == 1

    @pytest.mark.asyncio
    async def test_calculation_failure_propagates(self, seeded_store: InMemoryStore) -> None:
        seeded_store.records.clear()
        trigger = FakeTrigger(
            seeded_store, result=CalculationResult(success=False, error="quota exceeded")
        )
        with pytest.raises(CalculationError, match="quota exceeded"):
            await _pipeline(seeded_store, trigger).run("query")

    @pytest.mark.asyncio
    async def test_missing_embedding_is_not_found(self, seeded_store: InMemoryStore) -> None:
        seeded_store.add_record("nobody", "a1", 0.9, FIXED_NOW)
        trigger = FakeTrigger(seeded_store)
        with pytest.raises(NotFoundError):
            await _pipeline(seeded_store, trigger).run("nobody")

    @pytest.mark.asyncio
    async def test_empty_result_is_a_success(self, store: InMemoryStore) -> None:
        store.add_embedding("lonely")
        store.add_record("lonely", "x", 0.1, FIXED_NOW)
        run = await _pipeline(store, FakeTrigger(store)).run("lonely")
        assert run.phase == SimilarityPhase.DONE
        assert run.results == []

    @pytest.mark.asyncio
    async def test_two_rapid_runs_on_empty_store_trigger_once(self, seeded_store: InMemoryStore) -> None:
        seeded_store.records.clear()
        trigger = FakeTrigger(seeded_store, delay=0.05)
        pipeline = _pipeline(seeded_store, trigger)

        first, second = await asyncio.gather(pipeline.run("query"), pipeline.run("query"))

        assert len(trigger.calls) == 1
        assert first.results == second.results

    @pytest.mark.asyncio
    async def test_sequential_runs_are_idempotent(self, seeded_store: InMemoryStore) -> None:
        seeded_store.records.clear()
        trigger = FakeTrigger(seeded_store)
        pipeline = _pipeline(seeded_store, trigger)

        first = await pipeline.run("query")
        second = await pipeline.run("query")

        assert len(trigger.calls) == 1
        assert first.results == second.results
        assert second.recomputed is False


class TestPipelineCache:
    @pytest.mark.asyncio
    async def test_second_run_served_from_cache(self, seeded_store: InMemoryStore) -> None:
        cache = MemoryCacheProvider(max_size=10, ttl=60)
        pipeline = _pipeline(seeded_store, FakeTrigger(seeded_store), cache)

        await pipeline.run("query")
        calls_after_first = len(seeded_store.find_nearest_calls)
        second = await pipeline.run("query")

        assert second.from_cache is True
        assert second.history == [SimilarityPhase.START, SimilarityPhase.FRESH, SimilarityPhase.DONE]
        assert len(seeded_store.find_nearest_calls) == calls_after_first
        assert [r.artist_id for r in second.results] == ["a1", "a2", "a3"]

    @pytest.mark.asyncio
    async def test_forced_run_bypasses_and_refreshes_cache(self, seeded_store: InMemoryStore) -> None:
        cache = MemoryCacheProvider(max_size=10, ttl=60)
        trigger = FakeTrigger(seeded_store)
        pipeline = _pipeline(seeded_store, trigger, cache)
        await cache.set(cache_key("query"), [])

        run = await pipeline.run("query", force=True)

        assert run.from_cache is False
        assert len(trigger.calls) == 1
        assert [r.artist_id for r in await cache.get(cache_key("query"))] == ["a1", "a2", "a3"]

    @pytest.mark.asyncio
    async def test_failed_run_is_not_cached(self, seeded_store: InMemoryStore) -> None:
        cache = MemoryCacheProvider(max_size=10, ttl=60)
        seeded_store.records.clear()
        trigger = FakeTrigger(seeded_store, result=CalculationResult(success=False, error="boom"))
        with pytest.raises(CalculationError):
            await _pipeline(seeded_store, trigger, cache).run("query")
        assert await cache.get(cache_key("query")) is None


class TestPipelineLogContext:
    @pytest.mark.asyncio
    async def test_run_fields_are_bound_during_lookup(self, seeded_store: InMemoryStore) -> None:
        seen: dict[str, object] = {}
        original = seeded_store.find_nearest

        async def find_nearest(embedding: list[float], threshold: float, limit: int) -> list[Neighbor]:
            seen.update(structlog.contextvars.get_contextvars())
            return await original(embedding, threshold, limit)

        seeded_store.find_nearest = find_nearest  # type: ignore[method-assign]
        run = await _pipeline(seeded_store, FakeTrigger(seeded_store)).run("query")

        assert seen["run_id"] == run.run_id
        assert seen["artist_id"] == "query"
        assert "run_id" not in structlog.contextvars.get_contextvars()
