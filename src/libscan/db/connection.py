"""SQLite connection management for libscan."""

from __future__ import annotations

import logging
import random
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseLockedError(Exception):
    """Raised when the database stays locked after all retries."""


def ensure_db_directory(db_path: Path) -> None:
    """Create the database's parent directory if needed."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def configure_connection(conn: sqlite3.Connection) -> sqlite3.Connection:
    """Apply the pragmas and row factory every libscan connection uses."""
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA busy_timeout = 10000")
    conn.execute("PRAGMA temp_store = MEMORY")
    conn.row_factory = sqlite3.Row
    return conn


def open_connection(db_path: Path, timeout: float = 30.0) -> sqlite3.Connection:
    """Open a configured connection. The caller must close it."""
    ensure_db_directory(db_path)
    conn = sqlite3.connect(str(db_path), timeout=timeout)
    return configure_connection(conn)


@contextmanager
def get_connection(
    db_path: Path, timeout: float = 30.0
) -> Iterator[sqlite3.Connection]:
    """Yield a configured connection and close it afterwards.

    Args:
        db_path: Path to the database file.
        timeout: Seconds to wait for locks.

    Yields:
        An sqlite3 Connection with Row factory and WAL enabled.
    """
    conn = open_connection(db_path, timeout=timeout)
    try:
        yield conn
    finally:
        conn.close()


def execute_with_retry(
    func: Callable[[], T],
    max_retries: int = 5,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    jitter: float = 0.1,
) -> T:
    """Run ``func``, retrying with exponential backoff on lock contention.

    Args:
        func: Unit of database work. It should roll back its own partial
            changes before raising.
        max_retries: Retry attempts after the first failure.
        base_delay: First backoff delay in seconds.
        max_delay: Upper bound for the backoff delay.
        jitter: Random +/- fraction applied to each delay.

    Returns:
        Whatever ``func`` returns.

    Raises:
        DatabaseLockedError: If the database is still locked after all retries.
        sqlite3.OperationalError: For errors other than lock contention.
    """
    delay = base_delay
    for attempt in range(max_retries + 1):
        try:
            result = func()
        except sqlite3.OperationalError as e:
            message = str(e).lower()
            if "locked" not in message and "busy" not in message:
                raise
            if attempt >= max_retries:
                raise DatabaseLockedError(
                    f"Database is locked after {max_retries + 1} attempts: {e}"
                ) from e
            wait = delay * (1 + random.uniform(-jitter, jitter))  # nosec B311
            logger.info(
                "Database locked (attempt %d/%d), retrying in %.2fs",
                attempt + 1,
                max_retries + 1,
                wait,
            )
            time.sleep(wait)
            delay = min(delay * 2, max_delay)
        else:
            if attempt > 0:
                logger.info("Database operation succeeded after %d retries", attempt)
            return result
    raise RuntimeError("execute_with_retry: unreachable")


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block as one write transaction.

    Starts with BEGIN IMMEDIATE (unless a transaction is already open),
    commits on success and rolls back on any exception.

    Example:
        with transaction(conn):
            insert_media(conn, ...)
            link_media_library(conn, ...)
    """
    if not conn.in_transaction:
        conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except Exception:
        conn.rollback()
        raise
    conn.commit()
