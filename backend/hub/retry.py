"""
Retry with exponential backoff for upstream fetches.

Usage:
    payload = await run_with_retry(
        lambda: client.fetch_image_info("library", "nginx"),
        RetryPolicy(max_attempts=3, base_delay_ms=1000),
        description="library/nginx",
    )

Retryable failures (429, 408, 5xx, timeouts, connection errors) are retried
up to policy.max_attempts times; anything else is raised immediately.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from hub.errors import HubError, RetriesExhaustedError
from hub.types import RetryPolicy

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


def is_retryable(error: BaseException) -> bool:
    """Classify a failure as retryable or terminal."""
    if isinstance(error, HubError):
        return error.retryable
    if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
        return True
    return False


async def run_with_retry(
    operation: Operation,
    policy: RetryPolicy,
    *,
    classify: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    description: Optional[str] = None,
) -> Any:
    """
    Run operation with bounded retries and exponential backoff.

    Args:
        operation: Zero-argument coroutine function; called once per attempt
        policy: Attempt count, delays and per-attempt timeout
        classify: Returns True when a failure should be retried
        sleep: Awaitable sleep in seconds (injected by tests)
        description: Resource name used in logs and errors

    Returns:
        Whatever the first successful attempt returned

    Raises:
        The original error for terminal failures (after one attempt)
        RetriesExhaustedError after max_attempts retryable failures
    """
    label = description or getattr(operation, "__name__", "operation")
    timeout_s = policy.timeout_ms / 1000
    last_error: Optional[BaseException] = None

    for attempt in range(1, policy.max_attempts + 1):
        delay_ms = policy.delay_before(attempt)
        if delay_ms > 0:
            await sleep(delay_ms / 1000)

        try:
            return await asyncio.wait_for(operation(), timeout=timeout_s)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                logger.warning(f"Attempt {attempt}/{policy.max_attempts} for {label} timed out after {policy.timeout_ms}ms")
            if not classify(e):
                logger.debug(f"Terminal failure for {label} on attempt {attempt}: {e}")
                raise
            last_error = e

        if attempt < policy.max_attempts:
            next_delay = policy.delay_before(attempt + 1)
            logger.warning(
                f"Retryable failure for {label} (attempt {attempt}/{policy.max_attempts}): "
                f"{type(last_error).__name__}: {last_error}; retrying in {next_delay:.0f}ms"
            )

    logger.error(f"Giving up on {label} after {policy.max_attempts} attempts: {last_error}")
    raise RetriesExhaustedError(last_error, policy.max_attempts, resource=description)
