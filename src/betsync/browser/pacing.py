"""Randomized delays between simulated user actions."""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable

SleepFn = Callable[[float], Awaitable[None]]


class Pacer:
    """
    Suspends the caller for human-like, randomized intervals.

    The only state is the random source, so one pacer can be shared by
    workflows running concurrently.

    Args:
        rng: Random source (seed it for reproducible delays)
        sleep: Coroutine used to suspend; tests pass a recorder
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.rng = rng or random.Random()
        self._sleep = sleep

    def pick(self, min_ms: int, max_ms: int) -> float:
        """Uniformly pick a delay in ``[min_ms, max_ms]`` milliseconds."""
        if min_ms < 0 or max_ms < min_ms:
            raise ValueError(f'Invalid delay bounds: {min_ms}..{max_ms}')
        return self.rng.uniform(min_ms, max_ms)

    async def delay(self, min_ms: int, max_ms: int) -> float:
        """Sleep for a random delay and return it in milliseconds."""
        delay_ms = self.pick(min_ms, max_ms)
        await self._sleep(delay_ms / 1000.0)
        return delay_ms

    async def pause(self, ms: float) -> None:
        """Sleep for a fixed interval (settle waits, polling)."""
        await self._sleep(ms / 1000.0)


_default_pacer = Pacer()


async def random_delay(min_ms: int, max_ms: int) -> float:
    """Sleep for a uniformly random delay using the shared pacer."""
    return await _default_pacer.delay(min_ms, max_ms)
