"""Tests for randomized pacing between simulated user actions."""

import random
from unittest.mock import patch

import pytest

from betsync.browser import pacing
from betsync.browser.pacing import Pacer, random_delay

from fakes import SleepRecorder


class TestPacer:
    """Test Pacer delay selection and sleeping."""

    @pytest.mark.asyncio
    async def test_delay_within_bounds(self, pacer, sleeps):
        """Every delay lies in the requested range and is slept in seconds."""
        for _ in range(50):
            delay_ms = await pacer.delay(1200, 2500)
            assert 1200 <= delay_ms <= 2500

        assert len(sleeps.calls) == 50
        assert all(1.2 <= seconds <= 2.5 for seconds in sleeps.calls)

    @pytest.mark.asyncio
    async def test_equal_bounds(self, pacer, sleeps):
        assert await pacer.delay(500, 500) == 500
        assert sleeps.calls == [0.5]

    @pytest.mark.parametrize('min_ms,max_ms', [(-1, 10), (100, 50)])
    def test_invalid_bounds(self, pacer, min_ms, max_ms):
        with pytest.raises(ValueError, match='Invalid delay bounds'):
            pacer.pick(min_ms, max_ms)

    def test_seeded_rng_is_reproducible(self):
        first = Pacer(rng=random.Random(7))
        second = Pacer(rng=random.Random(7))

        assert [first.pick(0, 1000) for _ in range(5)] == [
            second.pick(0, 1000) for _ in range(5)
        ]

    @pytest.mark.asyncio
    async def test_pause_is_fixed(self, pacer, sleeps):
        await pacer.pause(1500)
        assert sleeps.calls == [1.5]


@pytest.mark.asyncio
async def test_random_delay_uses_shared_pacer():
    """random_delay sleeps through the module-level pacer."""
    recorder = SleepRecorder()
    with patch.object(pacing, '_default_pacer', Pacer(sleep=recorder)):
        delay_ms = await random_delay(800, 1800)

    assert 800 <= delay_ms <= 1800
    assert recorder.calls == [delay_ms / 1000.0]
