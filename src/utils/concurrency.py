"""Shared concurrency primitives for the similarity pipeline.

Two patterns are exposed:

1. **SingleFlight** -- at most one in-flight computation per key.  The
   first caller for a key (the leader) runs the coroutine; concurrent
   callers for the same key await the leader's outcome instead of starting
   their own.  Used to stop two requests for the same artist from both
   triggering a recalculation.

2. **poll_until** -- repeatedly await an async predicate with exponential
   backoff until it returns ``True``, a total timeout elapses, or an
   attempt budget is exhausted.  Used as the completion signal after a
   calculation has been triggered.

Both are plain objects constructed and injected by the caller (see
``src/main.py``); nothing here is a module-level singleton.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class SingleFlight(Generic[_T]):
    """Deduplicate concurrent calls per key within one event loop.

    The group is process-scoped: callers in other worker processes are not
    deduplicated.  A finished call leaves no trace, so the next call for
    the same key runs again.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Future[_T]] = {}

    def in_flight(self, key: str) -> bool:
        """Return ``True`` if a computation for *key* is currently running."""
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: str, fn: Callable[[], Awaitable[_T]]) -> _T:
        """Run *fn* for *key*, or join the computation already running.

        Followers see exactly what the leader saw: its return value or its
        exception.  Cancelling a follower does not cancel the leader.
        """
        existing = self._inflight.get(key)
        if existing is not None:
            _logger.debug("single_flight_join", key=key)
            return await asyncio.shield(existing)

        future: asyncio.Future[_T] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await fn()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unshared failure is not reported as
            # "exception was never retrieved" at garbage collection.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)


async def poll_until(
    check: Callable[[], Awaitable[bool]],
    *,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    factor: float = 2.0,
    timeout: float = 30.0,
    max_attempts: int | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Await *check* with exponential backoff until it returns ``True``.

    The predicate is evaluated once immediately, then after each sleep.
    Delays grow ``initial_delay * factor**n`` capped at ``max_delay`` and
    never overshoot the deadline.

    Parameters
    ----------
    check:
        Async predicate signalling completion.  Exceptions propagate.
    initial_delay, max_delay, factor:
        Backoff schedule in seconds.
    timeout:
        Total time budget in seconds measured with *clock*.
    max_attempts:
        Optional cap on the number of predicate evaluations.
    sleep, clock:
        Injected for tests.

    Returns
    -------
    bool
        ``True`` if the predicate succeeded, ``False`` on timeout or when
        the attempt budget ran out.
    """
    deadline = clock() + timeout
    delay = initial_delay
    attempts = 0

    while True:
        attempts += 1
        if await check():
            _logger.debug("poll_succeeded", attempts=attempts)
            return True

        if max_attempts is not None and attempts >= max_attempts:
            break
        remaining = deadline - clock()
        if remaining <= 0:
            break

        await sleep(min(delay, remaining))
        delay = min(delay * factor, max_delay)

    _logger.warning("poll_gave_up", attempts=attempts, timeout=timeout)
    return False
