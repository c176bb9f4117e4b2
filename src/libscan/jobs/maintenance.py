"""Scan job maintenance (staleness sweep)."""

import logging
import sqlite3
from datetime import datetime, timedelta, timezone

from libscan.db.connection import transaction
from libscan.db.queries import fail_scan_jobs, find_stale_scan_jobs

logger = logging.getLogger(__name__)

DEFAULT_STALE_TIMEOUT_HOURS = 6.0


def cleanup_stale_scan_jobs(
    conn: sqlite3.Connection,
    timeout_hours: float = DEFAULT_STALE_TIMEOUT_HOURS,
    *,
    now: datetime | None = None,
) -> list[str]:
    """Fail IN_PROGRESS scan jobs that have gone quiet.

    A job is stale when its last batch finished (or, if no batch ever
    finished, it started) more than ``timeout_hours`` ago. This reclaims
    jobs orphaned by a process that died mid-scan; they can then be
    resumed.

    Safe to call repeatedly.

    Args:
        conn: Database connection.
        timeout_hours: Inactivity threshold.
        now: Reference time; defaults to the current UTC time.

    Returns:
        IDs of the jobs marked FAILED.
    """
    if timeout_hours <= 0:
        raise ValueError("timeout_hours must be positive")

    now = now or datetime.now(timezone.utc)
    cutoff = (now - timedelta(hours=timeout_hours)).isoformat()

    with transaction(conn):
        stale = find_stale_scan_jobs(conn, cutoff)
        message = (
            f"Scan job timed out after {timeout_hours:g} hours of inactivity "
            "(no batch progress). The process may have stopped mid-scan; "
            "resume the job to continue."
        )
        fail_scan_jobs(conn, stale, message)

    if stale:
        logger.warning(
            "Marked %d stale scan job(s) as failed: %s", len(stale), ", ".join(stale)
        )
    else:
        logger.debug("No stale scan jobs")
    return stale
