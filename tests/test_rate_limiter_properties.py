"""
Property-based tests for the Rate Limiter module.

Uses Hypothesis for property-based testing with an injected clock, so request
spacing is verified without real waiting.
"""

import asyncio
from typing import List

from hypothesis import given, settings
from hypothesis import strategies as st

from wp_remote_manager.rate_limiter import IntervalRateLimiter


class FakeClock:
    """Monotonic clock advanced only by sleeps and explicit ticks."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class TestMinimumSpacingProperty:
    """
    Property-based tests for minimum spacing between dispatches.
    """

    @given(
        interval=st.floats(min_value=0.1, max_value=5.0),
        gaps=st.lists(st.floats(min_value=0.0, max_value=6.0), min_size=1, max_size=8),
    )
    @settings(max_examples=100)
    def test_consecutive_slots_are_at_least_interval_apart(
        self,
        interval: float,
        gaps: List[float],
    ) -> None:
        """
        *For any* sequence of caller gaps, consecutive slot times SHALL be at
        least ``interval`` apart.
        """
        clock = FakeClock()
        limiter = IntervalRateLimiter(interval, clock=clock, sleep=clock.sleep)
        slot_times: List[float] = []

        async def run() -> None:
            await limiter.wait_for_slot()
            slot_times.append(clock())
            for gap in gaps:
                clock.advance(gap)
                await limiter.wait_for_slot()
                slot_times.append(clock())

        asyncio.run(run())

        for earlier, later in zip(slot_times, slot_times[1:]):
            assert later - earlier >= interval - 1e-9

    @given(gap=st.floats(min_value=0.0, max_value=10.0))
    @settings(max_examples=100)
    def test_wait_is_exactly_the_remainder(self, gap: float) -> None:
        """The limiter SHALL sleep only the remainder of the interval."""
        clock = FakeClock()
        limiter = IntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)

        async def run() -> float:
            await limiter.wait_for_slot()
            clock.advance(gap)
            return await limiter.wait_for_slot()

        waited = asyncio.run(run())

        expected = max(0.0, 1.0 - gap)
        assert abs(waited - expected) < 1e-9
        if expected == 0.0:
            assert clock.sleeps == []

    def test_first_request_never_waits(self) -> None:
        clock = FakeClock()
        limiter = IntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)

        waited = asyncio.run(limiter.wait_for_slot())

        assert waited == 0.0
        assert clock.sleeps == []
        assert limiter.last_request_time == clock.now


class TestSerialAccessProperty:
    """
    Property-based tests for concurrent callers sharing one limiter.
    """

    @given(num_requests=st.integers(min_value=2, max_value=6))
    @settings(max_examples=50)
    def test_concurrent_callers_are_spaced(self, num_requests: int) -> None:
        """
        *For any* number of concurrent callers, slots SHALL still be claimed
        at least one interval apart.
        """
        clock = FakeClock()
        limiter = IntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)
        slot_times: List[float] = []

        async def caller() -> None:
            await limiter.wait_for_slot()
            slot_times.append(clock())

        async def run() -> None:
            await asyncio.gather(*(caller() for _ in range(num_requests)))

        asyncio.run(run())

        slot_times.sort()
        assert len(slot_times) == num_requests
        for earlier, later in zip(slot_times, slot_times[1:]):
            assert later - earlier >= 1.0 - 1e-9
        assert limiter.wait_count == num_requests - 1

    def test_instances_do_not_share_state(self) -> None:
        """Two limiters (two sites) SHALL NOT delay one another."""
        clock = FakeClock()
        first = IntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)
        second = IntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)

        async def run() -> None:
            await first.wait_for_slot()
            await second.wait_for_slot()

        asyncio.run(run())

        assert clock.sleeps == []
