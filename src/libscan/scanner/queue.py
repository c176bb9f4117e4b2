"""Single-active-scan queue.

Scans compete for the provider's rate limit and for slow filesystems, so
only one runs at a time per process. Further requests wait in FIFO order
and start automatically when the active scan finishes.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

ScanFactory = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class EnqueueResult:
    """Outcome of ScanQueue.enqueue.

    Attributes:
        queued: False when the scan started immediately.
        position: 1-based place in the waiting queue; 0 when started.
        future: Resolves with the scan's result or exception.
    """

    queued: bool
    position: int
    future: asyncio.Future


@dataclass(frozen=True)
class ScanQueueStatus:
    is_scanning: bool
    current: str | None
    queue_length: int


@dataclass
class _QueuedScan:
    factory: ScanFactory
    label: str
    future: asyncio.Future


class ScanQueue:
    """Run scan coroutines one at a time, in submission order.

    Example:
        queue = ScanQueue()
        result = queue.enqueue(lambda: orchestrator.scan(path, config), path)
        summary = await result.future
    """

    def __init__(self) -> None:
        self._waiting: deque[_QueuedScan] = deque()
        self._current: _QueuedScan | None = None
        self._worker: asyncio.Task | None = None

    def enqueue(self, factory: ScanFactory, label: str = "") -> EnqueueResult:
        """Start ``factory()`` now, or queue it behind the active scan.

        Must be called from a running event loop.
        """
        future = asyncio.get_running_loop().create_future()
        item = _QueuedScan(factory, label, future)
        if self._current is None:
            self._current = item
            self._worker = asyncio.create_task(self._drain())
            logger.info("Starting scan %s", label)
            return EnqueueResult(queued=False, position=0, future=future)

        self._waiting.append(item)
        position = len(self._waiting)
        logger.info(
            "Scan %s queued at position %d (active: %s)",
            label,
            position,
            self._current.label,
        )
        return EnqueueResult(queued=True, position=position, future=future)

    async def run(self, factory: ScanFactory, label: str = "") -> Any:
        """Enqueue and wait for the result."""
        return await self.enqueue(factory, label).future

    def status(self) -> ScanQueueStatus:
        return ScanQueueStatus(
            is_scanning=self._current is not None,
            current=self._current.label if self._current else None,
            queue_length=len(self._waiting),
        )

    async def _drain(self) -> None:
        while self._current is not None:
            item = self._current
            try:
                result = await item.factory()
            except asyncio.CancelledError:
                item.future.cancel()
                for waiting in self._waiting:
                    waiting.future.cancel()
                self._waiting.clear()
                self._current = None
                raise
            except Exception as e:
                logger.error("Scan %s failed: %s", item.label, e)
                if not item.future.done():
                    item.future.set_exception(e)
            else:
                if not item.future.done():
                    item.future.set_result(result)

            if self._waiting:
                self._current = self._waiting.popleft()
                logger.info(
                    "Starting queued scan %s (%d still waiting)",
                    self._current.label,
                    len(self._waiting),
                )
            else:
                self._current = None
