"""Timeout and retry guards for filesystem work on slow mounts.

Network shares, FTP/SMB/NFS mounts and sleepy USB drives can stall a
directory listing indefinitely. These helpers bound each attempt and
retry with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from libscan.scanner.exceptions import OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


async def with_timeout(
    awaitable: Awaitable[T], timeout: float, operation: str
) -> T:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    Work running in a thread (``asyncio.to_thread``) cannot be interrupted;
    on timeout the caller stops waiting and the thread finishes in the
    background.

    Raises:
        OperationTimeoutError: If the deadline passes first.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise OperationTimeoutError(operation, timeout) from e


async def with_retry(
    operation_factory: Callable[[], Awaitable[T]],
    operation: str,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> T:
    """Run ``operation_factory()`` until it succeeds or retries run out.

    Args:
        operation_factory: Returns a fresh awaitable per attempt.
        operation: Name used in log messages.
        max_retries: Attempts after the first.
        initial_delay: Delay before the first retry, doubled each time.
        max_delay: Upper bound for the delay.

    Returns:
        The first successful result.

    Raises:
        Exception: Whatever the final attempt raised.
    """
    for attempt in range(max_retries + 1):
        try:
            return await operation_factory()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt >= max_retries:
                logger.error(
                    'Operation "%s" failed after %d attempts: %s',
                    operation,
                    max_retries + 1,
                    e,
                )
                raise
            delay = min(initial_delay * (2**attempt), max_delay)
            logger.warning(
                'Operation "%s" failed (attempt %d/%d), retrying in %.1fs: %s',
                operation,
                attempt + 1,
                max_retries + 1,
                delay,
                e,
            )
            await asyncio.sleep(delay)
    raise RuntimeError("with_retry: unreachable")


async def with_timeout_and_retry(
    operation_factory: Callable[[], Awaitable[T]],
    operation: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
) -> T:
    """Combine with_timeout per attempt with with_retry across attempts."""
    return await with_retry(
        lambda: with_timeout(operation_factory(), timeout, operation),
        operation,
        max_retries=max_retries,
        initial_delay=initial_delay,
    )
