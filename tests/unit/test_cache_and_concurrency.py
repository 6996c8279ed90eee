"""Unit tests for MemoryCacheProvider, SingleFlight and poll_until."""

from __future__ import annotations

import asyncio

import pytest

from src.providers.cache.memory_cache import MemoryCacheProvider
from src.utils.concurrency import SingleFlight, poll_until
from src.utils.errors import CalculationError


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


# ======================================================================
# MemoryCacheProvider
# ======================================================================


class TestMemoryCacheProvider:
    @pytest.fixture()
    def clock(self) -> _FakeClock:
        return _FakeClock()

    @pytest.fixture()
    def cache(self, clock: _FakeClock) -> MemoryCacheProvider:
        return MemoryCacheProvider(max_size=100, ttl=3600, timer=clock)

    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self, cache: MemoryCacheProvider) -> None:
        assert await cache.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: MemoryCacheProvider) -> None:
        await cache.set("similar-artists:a1", ["x", "y"])
        assert await cache.get("similar-artists:a1") == ["x", "y"]

    @pytest.mark.asyncio
    async def test_delete_removes_key(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        await cache.delete("key1")
        assert await cache.get("key1") is None

    @pytest.mark.asyncio
    async def test_delete_nonexistent_is_noop(self, cache: MemoryCacheProvider) -> None:
        await cache.delete("nonexistent")

    @pytest.mark.asyncio
    async def test_empty_list_is_a_hit(self, cache: MemoryCacheProvider) -> None:
        await cache.set("similar-artists:lonely", [])
        assert await cache.get("similar-artists:lonely") == []

    @pytest.mark.asyncio
    async def test_entry_expires_after_default_ttl(
        self, cache: MemoryCacheProvider, clock: _FakeClock
    ) -> None:
        await cache.set("key1", "value1")
        clock.now += 3599
        assert await cache.get("key1") == "value1"
        clock.now += 2
        assert await cache.get("key1") is None

    @pytest.mark.asyncio
    async def test_shorter_per_item_ttl_is_honoured(
        self, cache: MemoryCacheProvider, clock: _FakeClock
    ) -> None:
        await cache.set("key1", "value1", ttl=10)
        clock.now += 11
        assert await cache.get("key1") is None


# ======================================================================
# SingleFlight
# ======================================================================


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_execution(self) -> None:
        group: SingleFlight[int] = SingleFlight()
        calls = 0
        release = asyncio.Event()

        async def work() -> int:
            nonlocal calls
            calls += 1
            await release.wait()
            return 42

        first = asyncio.create_task(group.do("artist-1", work))
        second = asyncio.create_task(group.do("artist-1", work))
        await asyncio.sleep(0)
        assert group.in_flight("artist-1")

        release.set()
        assert await asyncio.gather(first, second) == [42, 42]
        assert calls == 1
        assert len(group) == 0

    @pytest.mark.asyncio
    async def test_followers_receive_leader_exception(self) -> None:
        group: SingleFlight[None] = SingleFlight()
        release = asyncio.Event()

        async def failing() -> None:
            await release.wait()
            raise CalculationError(message="quota exceeded")

        first = asyncio.create_task(group.do("a", failing))
        second = asyncio.create_task(group.do("a", failing))
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(first, second, return_exceptions=True)
        assert all(isinstance(r, CalculationError) for r in results)
        assert all(r.message == "quota exceeded" for r in results)

    @pytest.mark.asyncio
    async def test_different_keys_run_independently(self) -> None:
        group: SingleFlight[str] = SingleFlight()
        seen: list[str] = []

        async def work(key: str) -> str:
            seen.append(key)
            return key

        results = await asyncio.gather(
            group.do("a", lambda: work("a")),
            group.do("b", lambda: work("b")),
        )
        assert results == ["a", "b"]
        assert sorted(seen) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_finished_call_runs_again(self) -> None:
        group: SingleFlight[int] = SingleFlight()
        calls = 0

        async def work() -> int:
            nonlocal calls
            calls += 1
            return calls

        assert await group.do("a", work) == 1
        assert await group.do("a", work) == 2


# ======================================================================
# poll_until
# ======================================================================


class TestPollUntil:
    @pytest.mark.asyncio
    async def test_returns_true_immediately_when_check_passes(self) -> None:
        clock = _FakeClock()

        async def check() -> bool:
            return True

        assert await poll_until(check, sleep=clock.sleep, clock=clock) is True
        assert clock.now == 0.0

    @pytest.mark.asyncio
    async def test_backoff_grows_and_is_capped(self) -> None:
        clock = _FakeClock()
        delays: list[float] = []
        attempts = 0

        async def sleep(seconds: float) -> None:
            delays.append(seconds)
            await clock.sleep(seconds)

        async def check() -> bool:
            nonlocal attempts
            attempts += 1
            return attempts == 6

        done = await poll_until(
            check, initial_delay=0.5, max_delay=2.0, factor=2.0, timeout=60.0, sleep=sleep, clock=clock
        )
        assert done is True
        assert delays == [0.5, 1.0, 2.0, 2.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_timeout(self) -> None:
        clock = _FakeClock()

        async def check() -> bool:
            return False

        done = await poll_until(
            check, initial_delay=1.0, max_delay=4.0, timeout=10.0, sleep=clock.sleep, clock=clock
        )
        assert done is False
        assert clock.now == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        clock = _FakeClock()
        attempts = 0

        async def check() -> bool:
            nonlocal attempts
            attempts += 1
            return False

        done = await poll_until(check, max_attempts=3, timeout=1000.0, sleep=clock.sleep, clock=clock)
        assert done is False
        assert attempts == 3
