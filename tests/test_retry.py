"""Tests for the retry policy."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from rumori.exceptions import ErrorKind, NetworkError, NotFoundError
from rumori.retry import NO_RETRY, RetryPolicy, async_retry


class TestRetryPolicy:

    def test_delay_grows_and_is_capped(self):
        policy = RetryPolicy(base_delay=1.0, backoff_factor=2.0, max_delay=3.0)
        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]

    def test_at_least_one_attempt(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_only_configured_kinds_are_retryable(self):
        policy = RetryPolicy()
        assert policy.is_retryable(NetworkError("down"))
        assert not policy.is_retryable(NotFoundError("gone"))
        assert not policy.is_retryable(ValueError("plain"))
        assert RetryPolicy(retryable_kinds=frozenset({ErrorKind.NOT_FOUND})).is_retryable(NotFoundError("gone"))

    @pytest.mark.asyncio
    async def test_network_errors_are_retried_until_success(self):
        func = AsyncMock(side_effect=[NetworkError("down"), NetworkError("down"), "ok"])
        result = await RetryPolicy(base_delay=0).run(func, name="fetch")
        assert result == "ok"
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        func = AsyncMock(side_effect=NetworkError("down"))
        with pytest.raises(NetworkError):
            await RetryPolicy(max_attempts=2, base_delay=0).run(func)
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_other_errors_fail_immediately(self):
        func = AsyncMock(side_effect=NotFoundError("gone"))
        with pytest.raises(NotFoundError):
            await RetryPolicy(base_delay=0).run(func)
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_no_retry_policy(self):
        func = AsyncMock(side_effect=NetworkError("down"))
        with pytest.raises(NetworkError):
            await NO_RETRY.run(func)
        assert func.await_count == 1


@pytest.mark.asyncio
async def test_decorator():
    calls = []

    @async_retry(RetryPolicy(base_delay=0))
    async def flaky(value):
        calls.append(value)
        if len(calls) < 2:
            raise NetworkError("down")
        return value * 2

    assert await flaky(21) == 42
    assert calls == [21, 21]
    assert flaky.__name__ == "flaky"
