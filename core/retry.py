"""
Retry policy engine with exponential backoff, jitter and rate-limit awareness.

Wraps any awaitable-producing callable:

    result = await with_retry(lambda: client.get(url), policy)

Fatal errors (``retryable`` is False on the exception) propagate immediately
without consuming an attempt. When every attempt failed, the last error is
wrapped in ``RetriesExhaustedError``.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from core.config import Settings, settings as default_settings
from core.exceptions import RateLimitError, RetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(error: BaseException) -> bool:
    """Default retry predicate: structured errors carry their own flag."""
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
        return True
    return bool(getattr(error, "retryable", False))


@dataclass
class RetryPolicy:
    """
    Backoff configuration for ``with_retry``.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound of the computed backoff delay, in seconds
        backoff_multiplier: Growth factor between consecutive delays
        jitter: Upper bound of the random delay added to each backoff, in seconds
        rate_limit_buffer: Added on top of a server supplied Retry-After value
        retry_condition: Predicate deciding whether an error is worth retrying
    """

    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: float = 1.0
    rate_limit_buffer: float = 0.5
    retry_condition: Callable[[BaseException], bool] = field(default=is_retryable)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, **overrides: Any) -> "RetryPolicy":
        """Build the catalog API policy from application settings."""
        config = config or default_settings
        values = dict(
            max_retries=config.MAX_RETRIES,
            base_delay=config.RETRY_BASE_DELAY,
            max_delay=config.RETRY_MAX_DELAY,
            backoff_multiplier=config.RETRY_BACKOFF_MULTIPLIER,
            jitter=config.RETRY_JITTER,
            rate_limit_buffer=config.RATE_LIMIT_BUFFER,
        )
        values.update(overrides)
        return cls(**values)

    def compute_delay(self, attempt: int, error: Optional[BaseException] = None) -> float:
        """
        Delay before the retry that follows failed attempt ``attempt`` (1-indexed).

        A Retry-After hint on a rate-limit error raises the floor of the delay,
        even above ``max_delay``.
        """
        backoff = self.base_delay * (self.backoff_multiplier ** (attempt - 1))
        if self.jitter > 0:
            backoff += random.uniform(0, self.jitter)
        delay = min(backoff, self.max_delay)

        if isinstance(error, RateLimitError) and error.retry_after is not None:
            delay = max(delay, error.retry_after + self.rate_limit_buffer)

        return delay


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    description: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> T:
    """
    Run ``operation`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument callable returning an awaitable
        policy: Backoff configuration (defaults to ``RetryPolicy()``)
        description: Label used in log lines
        sleep: Coroutine used to wait between attempts

    Returns:
        The operation's result

    Raises:
        Exception: Any non-retryable error, unchanged
        RetriesExhaustedError: After ``max_retries + 1`` failed attempts
    """
    policy = policy or RetryPolicy()
    total_attempts = policy.max_retries + 1
    last_error: Optional[BaseException] = None

    for attempt in range(1, total_attempts + 1):
        try:
            result = await operation()
            if attempt > 1:
                logger.info(f"{description} succeeded on attempt {attempt}/{total_attempts}")
            return result

        except Exception as e:
            if not policy.retry_condition(e):
                raise

            last_error = e
            if attempt == total_attempts:
                break

            delay = policy.compute_delay(attempt, e)
            logger.warning(
                f"{description} failed on attempt {attempt}/{total_attempts}: {e}. "
                f"Retrying in {delay:.2f} seconds"
            )
            await sleep(delay)

    cause = getattr(last_error, "message", None) or str(last_error)
    logger.error(f"{description} failed after {total_attempts} attempts: {cause}")
    raise RetriesExhaustedError(
        f"{description} failed after {total_attempts} attempts: {cause}",
        attempts=total_attempts,
        last_error=last_error,
        context={"operation": description}
    )
