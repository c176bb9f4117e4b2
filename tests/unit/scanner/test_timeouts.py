"""Tests for timeout and retry guards."""

import asyncio

import pytest

from libscan.scanner.exceptions import OperationTimeoutError
from libscan.scanner.timeouts import with_retry, with_timeout, with_timeout_and_retry


class TestWithTimeout:
    """Tests for with_timeout."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def quick():
            return 42

        assert await with_timeout(quick(), 1.0, "quick") == 42

    @pytest.mark.asyncio
    async def test_raises_operation_timeout(self):
        """Slow operations raise OperationTimeoutError naming the operation."""
        with pytest.raises(OperationTimeoutError, match='"listing" timed out'):
            await with_timeout(asyncio.sleep(5), 0.01, "listing")


class TestWithRetry:
    """Tests for with_retry."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        """Transient failures are retried."""
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise OSError("stale mount")
            return "ok"

        result = await with_retry(flaky, "flaky", max_retries=3, initial_delay=0)
        assert result == "ok"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_raises_last_error(self):
        """The final failure propagates once retries run out."""
        attempts = []

        async def broken():
            attempts.append(1)
            raise OSError(f"failure {len(attempts)}")

        with pytest.raises(OSError, match="failure 3"):
            await with_retry(broken, "broken", max_retries=2, initial_delay=0)

    @pytest.mark.asyncio
    async def test_timeout_each_attempt(self):
        """Each attempt gets its own deadline."""
        calls = []

        def factory():
            calls.append(1)
            return asyncio.sleep(5)

        with pytest.raises(OperationTimeoutError):
            await with_timeout_and_retry(
                factory, "slow", timeout=0.01, max_retries=1, initial_delay=0
            )
        assert len(calls) == 2
