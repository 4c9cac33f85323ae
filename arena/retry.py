"""Bounded exponential-backoff retry around any awaitable operation."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from arena.cancel import CancelToken
from arena.errors import CancellationError, classify
from arena.models import TypedError
from config.config_loader import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationError(Exception):
    """Raised when an operation fails for good: not retryable, or attempts exhausted."""

    def __init__(self, error: TypedError, attempts: int) -> None:
        self.error = error
        self.attempts = attempts
        super().__init__(f"{error.code}: {error.message} (after {attempts} attempt(s))")


def backoff_delay(policy: RetryConfig, attempt_index: int, error: TypedError | None = None) -> float:
    """Delay before the retry that follows attempt ``attempt_index`` (0-based)."""
    delay = policy.base_delay_sec * (policy.backoff_factor ** attempt_index)
    if error is not None and error.retry_after is not None:
        delay = max(delay, error.retry_after)
    return min(delay, policy.max_delay_sec)


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryConfig,
    *,
    token: CancelToken | None = None,
    on_retry: Callable[[TypedError, int], None] | None = None,
    provider: str | None = None,
) -> T:
    """Run ``operation`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        policy: Attempt count and backoff shape.
        token: Cancelling it aborts the attempt in flight or the pending wait.
        on_retry: Called with (error, attempt_number) before each wait.
        provider: Attached to classified errors.

    Returns:
        The operation's result.

    Raises:
        OperationError: Final classified failure.
        CancellationError / asyncio.CancelledError: The sequence was cancelled.
    """
    attempts = max(1, policy.max_attempts)
    for attempt_index in range(attempts):
        if token is not None:
            token.raise_if_cancelled()
        try:
            return await operation()
        except (CancellationError, asyncio.CancelledError):
            raise
        except Exception as exc:
            error = classify(exc, provider)
            if error.cancelled:
                raise CancellationError("Operation cancelled", provider) from exc

            attempt_number = attempt_index + 1
            if not error.retryable or attempt_number >= attempts:
                if error.retryable:
                    logger.warning(
                        "%s failed after %d attempts: %s",
                        provider or "operation", attempt_number, error.message,
                    )
                else:
                    logger.warning(
                        "%s failed with non-retryable %s: %s",
                        provider or "operation", error.code, error.message,
                    )
                raise OperationError(error, attempt_number) from exc

            delay = backoff_delay(policy, attempt_index, error)
            logger.warning(
                "%s attempt %d/%d failed (%s), retrying in %.1fs",
                provider or "operation", attempt_number, attempts, error.code, delay,
            )
            if on_retry is not None:
                on_retry(error, attempt_number)

            if token is not None:
                await token.sleep(delay)
            else:
                await asyncio.sleep(delay)

    # range() always runs at least once and every path returns or raises
    raise AssertionError("unreachable")
