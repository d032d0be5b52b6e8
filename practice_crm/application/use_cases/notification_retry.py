"""Retry with exponential backoff for notification sends."""

import asyncio
from typing import Awaitable, Callable

from practice_crm.application.dtos.notification import SendResult
from practice_crm.infrastructure.logging.logger import logger


async def send_with_retry(
    send_fn: Callable[[], Awaitable[SendResult]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[SendResult, int]:
    """
    Call a sender until it succeeds or fails permanently.

    The delay doubles after each retryable failure (1s, 2s, ...). Failures
    not marked retryable end the loop immediately.

    Args:
        send_fn: Zero-argument coroutine factory performing one send
        max_attempts: Maximum number of attempts (at least one is made)
        base_delay: Delay before the second attempt, in seconds
        sleep: Sleep function (injectable for tests)

    Returns:
        Tuple of (last SendResult, attempts made)
    """
    attempts = max(1, max_attempts)
    result = SendResult(success=False, error="No attempt made")
    for attempt in range(attempts):
        result = await send_fn()
        if result.success or not result.retryable:
            return result, attempt + 1
        if attempt < attempts - 1:
            delay = base_delay * (2**attempt)
            logger.warning(f"Notification send failed, retrying in {delay}s: {result.error}")
            if delay:
                await sleep(delay)
    return result, attempts
