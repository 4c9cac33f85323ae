"""Tests for arena/retry.py."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from arena.cancel import CancelToken
from arena.errors import CancellationError, ConfigurationError, NetworkError, RateLimitError
from arena.models import TypedError
from arena.retry import OperationError, backoff_delay, retry
from config.config_loader import RetryConfig

FAST = RetryConfig(max_attempts=3, base_delay_sec=0.0, backoff_factor=2.0, max_delay_sec=0.0)


def test_backoff_delay_grows_exponentially():
    policy = RetryConfig(max_attempts=4, base_delay_sec=1.0, backoff_factor=2.0, max_delay_sec=30.0)
    assert [backoff_delay(policy, i) for i in range(3)] == [1.0, 2.0, 4.0]


def test_backoff_delay_is_capped():
    policy = RetryConfig(max_attempts=10, base_delay_sec=1.0, backoff_factor=2.0, max_delay_sec=5.0)
    assert backoff_delay(policy, 6) == 5.0


def test_backoff_delay_honours_retry_after():
    policy = RetryConfig(base_delay_sec=1.0, backoff_factor=2.0, max_delay_sec=30.0)
    err = TypedError(code="RATE_LIMIT_ERROR", message="", retryable=True, retry_after=9.0)
    assert backoff_delay(policy, 0, err) == 9.0


async def test_retry_returns_first_success():
    op = AsyncMock(return_value="pitch")
    assert await retry(op, FAST) == "pitch"
    assert op.await_count == 1


async def test_retry_recovers_after_transient_failures():
    op = AsyncMock(side_effect=[NetworkError("down"), httpx.ReadTimeout("slow"), "pitch"])
    on_retry = MagicMock()
    assert await retry(op, FAST, on_retry=on_retry, provider="openai") == "pitch"
    assert op.await_count == 3
    assert [c.args[1] for c in on_retry.call_args_list] == [1, 2]
    assert on_retry.call_args_list[0].args[0].code == "NETWORK_ERROR"


async def test_retry_gives_up_after_max_attempts():
    op = AsyncMock(side_effect=NetworkError("down"))
    with pytest.raises(OperationError) as info:
        await retry(op, FAST, provider="openai")
    assert op.await_count == 3
    assert info.value.attempts == 3
    assert info.value.error.code == "NETWORK_ERROR"
    assert info.value.error.provider == "openai"


async def test_retry_stops_on_non_retryable():
    op = AsyncMock(side_effect=ConfigurationError("no key"))
    on_retry = MagicMock()
    with pytest.raises(OperationError) as info:
        await retry(op, FAST, on_retry=on_retry)
    assert op.await_count == 1
    assert info.value.error.code == "CONFIGURATION_ERROR"
    on_retry.assert_not_called()


async def test_retry_logs_each_retry(caplog):
    op = AsyncMock(side_effect=[RateLimitError("slow down"), "ok"])
    with caplog.at_level("WARNING"):
        await retry(op, FAST, provider="groq")
    assert any("groq attempt 1/3" in r.getMessage() for r in caplog.records)


async def test_retry_propagates_cancellation_unchanged():
    op = AsyncMock(side_effect=CancellationError("stop"))
    with pytest.raises(CancellationError):
        await retry(op, FAST)
    assert op.await_count == 1


async def test_cancelled_token_aborts_backoff_wait():
    policy = RetryConfig(max_attempts=3, base_delay_sec=30.0, backoff_factor=1.0, max_delay_sec=30.0)
    token = CancelToken()
    op = AsyncMock(side_effect=NetworkError("down"))

    task = asyncio.create_task(retry(op, policy, token=token))
    await asyncio.sleep(0.01)
    token.cancel()
    with pytest.raises(CancellationError):
        await asyncio.wait_for(task, timeout=1)
    assert op.await_count == 1


async def test_cancelled_token_prevents_first_attempt():
    token = CancelToken()
    token.cancel()
    op = AsyncMock(return_value="never")
    with pytest.raises(CancellationError):
        await retry(op, FAST, token=token)
    op.assert_not_awaited()
