"""Sliding-window rate limiter for provider calls.

At most ``max_requests`` task dispatches happen in any ``window``
seconds. Queued tasks are released in submission order, up to
``concurrency`` at a time, and a batch is joined with settle-all
semantics: one failing task never affects its siblings.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from libscan.config.models import RateLimitConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

TaskFactory = Callable[[], Awaitable[Any]]


class RateLimiter:
    """Gate for asynchronous tasks under a rolling request budget.

    Example:
        limiter = RateLimiter(max_requests=38, window=10.0, concurrency=10)
        metadata = await limiter.run(lambda: provider.get_metadata(...))

    ``clock`` and ``sleep`` are injectable so tests can drive time.
    """

    def __init__(
        self,
        max_requests: int = 38,
        window: float = 10.0,
        concurrency: int = 10,
        safety_buffer: float = 0.1,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_requests < 1 or concurrency < 1 or window <= 0:
            raise ValueError("max_requests, concurrency and window must be positive")
        self.max_requests = max_requests
        self.window = window
        self.concurrency = concurrency
        self.safety_buffer = safety_buffer
        self._clock = clock
        self._sleep = sleep
        self._queue: deque[tuple[TaskFactory, asyncio.Future]] = deque()
        self._timestamps: deque[float] = deque()
        self._worker: asyncio.Task | None = None
        self.dispatched = 0

    @classmethod
    def from_config(cls, config: RateLimitConfig, **kwargs: Any) -> RateLimiter:
        return cls(
            max_requests=config.max_requests,
            window=config.window_seconds,
            concurrency=config.concurrency,
            safety_buffer=config.safety_buffer_seconds,
            **kwargs,
        )

    @property
    def pending(self) -> int:
        """Tasks submitted but not yet dispatched."""
        return len(self._queue)

    def submit(self, task: TaskFactory) -> asyncio.Future:
        """Queue ``task`` and return a future for its result.

        Args:
            task: Zero-argument callable returning an awaitable. It is not
                called until the limiter dispatches it.

        Returns:
            Future resolved with the task's result or its exception.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append((task, future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._process())
        return future

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """Submit ``task`` and wait for its result."""
        return await self.submit(task)

    def _expire(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window:
            self._timestamps.popleft()

    async def _process(self) -> None:
        while self._queue:
            now = self._clock()
            self._expire(now)
            available = self.max_requests - len(self._timestamps)

            if available <= 0:
                wait = self.window - (now - self._timestamps[0]) + self.safety_buffer
                logger.debug(
                    "Rate limit reached (%d in %.0fs), waiting %.2fs; %d queued",
                    len(self._timestamps),
                    self.window,
                    wait,
                    len(self._queue),
                )
                await self._sleep(wait)
                continue

            size = min(self.concurrency, available, len(self._queue))
            batch = [self._queue.popleft() for _ in range(size)]
            dispatched_at = self._clock()
            self._timestamps.extend(dispatched_at for _ in batch)
            self.dispatched += size
            await asyncio.gather(*(self._execute(task, fut) for task, fut in batch))

    @staticmethod
    async def _execute(task: TaskFactory, future: asyncio.Future) -> None:
        if future.done():
            return
        try:
            result = await task()
        except Exception as e:
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(result)
