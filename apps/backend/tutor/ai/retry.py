from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_incrementing

T = TypeVar("T")


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logging.warning(
        f"Attempt {retry_state.attempt_number} failed ({type(exc).__name__}: {exc}); "
        f"retrying in {retry_state.upcoming_sleep:g}s"
    )


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_s: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` up to ``max_attempts`` times with linear backoff.

    After attempt ``n`` fails the policy waits ``base_delay_s * n`` seconds.
    Every exception is retried the same way and the last one is re-raised
    unchanged once attempts run out.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_incrementing(start=base_delay_s, increment=base_delay_s),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(operation)
