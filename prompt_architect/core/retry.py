"""
Retry utilities with exponential backoff.

Wraps a single analysis call so rate-limit and quota failures are retried
with a bounded number of attempts, while every other failure propagates
on the first occurrence.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from prompt_architect.core.exceptions import TransientCapacityError
from prompt_architect.core.logging_config import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")

TRANSIENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (TransientCapacityError,)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 4  # Total invocations, first call included
    base_delay: float = 2.0  # Seconds before the first retry
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = False
    jitter_range: Tuple[float, float] = (0.5, 1.5)
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_EXCEPTIONS


@dataclass
class RetryAttempt:
    """Reported to the retry observer before each backoff sleep."""
    attempt: int  # 1-based number of the attempt that just failed
    attempts_remaining: int
    delay: float
    error: Exception


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay before next retry attempt.

    Args:
        attempt: Retry number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds before next attempt
    """
    delay = config.base_delay * (config.exponential_base ** attempt)
    delay = min(delay, config.max_delay)

    if config.jitter:
        delay *= random.uniform(*config.jitter_range)

    return delay


async def retry_async_call(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[RetryAttempt], None]] = None,
    should_continue: Optional[Callable[[], bool]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any
) -> T:
    """
    Retry an async function call with exponential backoff.

    Args:
        func: Async function to call
        *args: Positional arguments for the function
        config: Retry configuration (uses ANALYSIS_RETRY_CONFIG if not provided)
        on_retry: Optional observer called synchronously before each backoff
        should_continue: Optional predicate checked before and after each
            backoff; when it turns false the last error is re-raised at once
        sleep: Awaitable sleep used for backoff
        **kwargs: Keyword arguments for the function

    Returns:
        Result of the function call

    Raises:
        The first non-retryable exception, or the last retryable one once
        max_attempts invocations have failed.

    Example:
        text = await retry_async_call(
            client.analyze, media, instructions, context, tier,
            config=RetryConfig(max_attempts=5)
        )
    """
    config = config or ANALYSIS_RETRY_CONFIG
    if config.max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(config.max_attempts):
        try:
            return await func(*args, **kwargs)
        except config.retryable_exceptions as e:
            remaining = config.max_attempts - attempt - 1
            if remaining == 0:
                logger.error(f"All {config.max_attempts} attempts failed. Last error: {e}")
                raise
            if should_continue is not None and not should_continue():
                logger.info(f"Retry abandoned after attempt {attempt + 1}: caller no longer waiting")
                raise

            delay = calculate_delay(attempt, config)
            logger.warning(
                f"Rate limit hit. Retrying in {delay:.2f}s... ({remaining} attempts left)"
            )
            if on_retry:
                on_retry(RetryAttempt(
                    attempt=attempt + 1,
                    attempts_remaining=remaining,
                    delay=delay,
                    error=e,
                ))
            await sleep(delay)
            if should_continue is not None and not should_continue():
                logger.info("Retry abandoned after backoff: caller no longer waiting")
                raise

    raise RuntimeError("Retry logic failed unexpectedly")


# Reference policy: one call plus three retries at 2s, 4s, 8s
ANALYSIS_RETRY_CONFIG = RetryConfig(
    max_attempts=4,
    base_delay=2.0,
    max_delay=60.0,
    exponential_base=2.0,
    jitter=False
)
