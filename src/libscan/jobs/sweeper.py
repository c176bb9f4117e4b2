"""Background task that periodically runs the stale scan job sweep."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timezone

from libscan.jobs.maintenance import DEFAULT_STALE_TIMEOUT_HOURS, cleanup_stale_scan_jobs

logger = logging.getLogger(__name__)

# Consecutive failed sweeps before the task reports unhealthy
_UNHEALTHY_THRESHOLD = 3


class StaleJobSweepTask:
    """Run cleanup_stale_scan_jobs on an interval until stopped.

    Usage:
        task = StaleJobSweepTask(
            connection_factory=lambda: open_connection(db_path),
            interval_seconds=1800,
        )
        asyncio.create_task(task.run())
        # ... later ...
        task.stop()
    """

    def __init__(
        self,
        *,
        connection_factory: Callable[[], sqlite3.Connection],
        interval_seconds: float,
        timeout_hours: float = DEFAULT_STALE_TIMEOUT_HOURS,
        run_immediately: bool = True,
    ) -> None:
        """Initialize the sweep task.

        Args:
            connection_factory: Opens a fresh connection per sweep; it is
                used from a worker thread and closed afterwards.
            interval_seconds: Seconds between sweeps.
            timeout_hours: Staleness threshold passed to the sweep.
            run_immediately: Sweep once on start instead of after one interval.
        """
        self.interval_seconds = interval_seconds
        self.timeout_hours = timeout_hours
        self.run_immediately = run_immediately
        self._connection_factory = connection_factory
        self._stop_event = asyncio.Event()
        self._running = False
        self._last_run: datetime | None = None
        self._consecutive_failures = 0
        self._is_healthy = True
        self.total_failed_jobs = 0

    async def run(self) -> None:
        """Sweep loop; returns once stop() is called."""
        if self._running:
            logger.warning("Stale job sweep already running")
            return
        self._running = True
        logger.info(
            "Stale job sweep started (interval %.0f seconds, timeout %g hours)",
            self.interval_seconds,
            self.timeout_hours,
        )
        try:
            if self.run_immediately:
                await self.sweep_once()
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.interval_seconds
                    )
                    break
                except asyncio.TimeoutError:
                    pass  # interval elapsed
                await self.sweep_once()
        finally:
            self._running = False
            logger.info("Stale job sweep stopped")

    def stop(self) -> None:
        """Signal the loop to stop."""
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_healthy(self) -> bool:
        return self._is_healthy

    @property
    def last_run(self) -> datetime | None:
        return self._last_run

    async def sweep_once(self) -> list[str]:
        """Run one sweep. Failures are logged and tracked, not raised."""

        def _sweep() -> list[str]:
            conn = self._connection_factory()
            try:
                return cleanup_stale_scan_jobs(conn, self.timeout_hours)
            finally:
                conn.close()

        try:
            failed = await asyncio.to_thread(_sweep)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._consecutive_failures += 1
            if self._consecutive_failures >= _UNHEALTHY_THRESHOLD and self._is_healthy:
                self._is_healthy = False
                logger.error(
                    "Stale job sweep marked unhealthy after %d consecutive failures",
                    self._consecutive_failures,
                )
            logger.exception("Stale job sweep failed: %s", e)
            return []

        self._last_run = datetime.now(timezone.utc)
        self._consecutive_failures = 0
        if not self._is_healthy:
            self._is_healthy = True
            logger.info("Stale job sweep recovered, marking healthy")
        self.total_failed_jobs += len(failed)
        return failed
