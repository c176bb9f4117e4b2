"""Tests for the sliding-window rate limiter."""

import asyncio

import pytest

from libscan.config.models import RateLimitConfig
from libscan.metadata.rate_limit import RateLimiter


class FakeClock:
    """Monotonic clock advanced only by the limiter's sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestRateLimiter:
    """Dispatch budget and settle-all semantics."""

    @pytest.mark.asyncio
    async def test_never_exceeds_budget(self, clock: FakeClock):
        """100 tasks never put more than 38 dispatches in one 10s window."""
        limiter = RateLimiter(38, 10.0, 10, clock=clock, sleep=clock.sleep)
        dispatch_times: list[float] = []

        async def task(i: int) -> int:
            dispatch_times.append(clock.now)
            return i

        futures = [limiter.submit(lambda i=i: task(i)) for i in range(100)]
        results = await asyncio.gather(*futures)

        assert results == list(range(100))
        assert limiter.dispatched == 100
        for start in dispatch_times:
            in_window = [t for t in dispatch_times if start <= t < start + 10.0]
            assert len(in_window) <= 38
        assert len(clock.sleeps) == 2
        assert all(s >= 10.0 for s in clock.sleeps)

    @pytest.mark.asyncio
    async def test_concurrency_cap(self, clock: FakeClock):
        """No more than ``concurrency`` tasks run at the same time."""
        limiter = RateLimiter(100, 10.0, 3, clock=clock, sleep=clock.sleep)
        running = 0
        peak = 0

        async def task() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0)
            running -= 1

        await asyncio.gather(*(limiter.submit(task) for _ in range(10)))
        assert peak == 3

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, clock: FakeClock):
        """A failing task rejects only its own future."""
        limiter = RateLimiter(38, 10.0, 10, clock=clock, sleep=clock.sleep)

        async def task(i: int) -> int:
            if i % 3 == 0:
                raise ValueError(f"task {i}")
            return i

        outcomes = await asyncio.gather(
            *(limiter.submit(lambda i=i: task(i)) for i in range(9)),
            return_exceptions=True,
        )
        assert [isinstance(o, ValueError) for o in outcomes] == [
            i % 3 == 0 for i in range(9)
        ]
        assert outcomes[1] == 1

    @pytest.mark.asyncio
    async def test_run(self, clock: FakeClock):
        limiter = RateLimiter(clock=clock, sleep=clock.sleep)

        async def task():
            return "ok"

        assert await limiter.run(task) == "ok"
        assert limiter.pending == 0

    def test_from_config(self):
        limiter = RateLimiter.from_config(
            RateLimitConfig(max_requests=5, window_seconds=2.0, concurrency=2)
        )
        assert (limiter.max_requests, limiter.window, limiter.concurrency) == (5, 2.0, 2)

    def test_rejects_invalid_limits(self):
        with pytest.raises(ValueError):
            RateLimiter(max_requests=0)
