"""
Retry policy for image model calls.

Each viewpoint gets a bounded number of attempts. An attempt that runs past
``attempt_timeout`` is abandoned and counts as a transient failure, so slow
responses and rate limits share one backoff schedule.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from firesim.core.config import Settings
from firesim.core.exceptions import TransientImageGenerationError
from firesim.core.logging_config import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")

JITTER_RANGE = (0.5, 1.5)


@dataclass
class RetryConfig:
    """Retry policy for one image model call."""
    max_retries: int = 2
    base_delay: float = 2.0  # Doubles after every failed attempt
    max_delay: float = 30.0
    jitter: bool = True
    attempt_timeout: Optional[float] = None  # Seconds; None waits indefinitely
    retryable_exceptions: Tuple[Type[Exception], ...] = (TransientImageGenerationError,)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_settings(cls, settings: Settings) -> 'RetryConfig':
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            attempt_timeout=settings.image_timeout_seconds,
        )


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Seconds to wait after failed attempt ``attempt`` (0-indexed).

    The delay doubles per attempt up to ``max_delay``, then is scaled by a
    random factor from JITTER_RANGE when jitter is on.
    """
    delay = min(config.base_delay * (2 ** attempt), config.max_delay)
    if config.jitter:
        delay *= random.uniform(*JITTER_RANGE)
    return delay


async def _attempt(func: Callable[[], Awaitable[T]], config: RetryConfig, label: str) -> T:
    if config.attempt_timeout is None:
        return await func()
    try:
        return await asyncio.wait_for(func(), timeout=config.attempt_timeout)
    except asyncio.TimeoutError as e:
        raise TransientImageGenerationError(
            f"{label} timed out after {config.attempt_timeout:g} seconds"
        ) from e


async def retry_async_call(
    func: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    label: str = "Image request",
    on_retry: Optional[Callable[[Exception, int], None]] = None
) -> T:
    """
    Call ``func`` until it succeeds or the retry budget is spent.

    ``func`` takes no arguments and is called afresh for every attempt.
    Only ``config.retryable_exceptions`` are retried; anything else
    propagates from the first attempt.

    Args:
        func: Factory for the awaitable to run
        config: Retry policy (defaults to RetryConfig())
        label: Names the call in timeout errors and log lines
        on_retry: Called with (exception, attempt) before each backoff

    Example:
        result = await retry_async_call(
            lambda: generator.generate(prompt),
            config=RetryConfig.from_settings(settings),
            label="Viewpoint aerial",
        )
    """
    config = config or RetryConfig()

    for attempt in range(config.max_attempts):
        try:
            return await _attempt(func, config, label)
        except config.retryable_exceptions as e:
            if attempt + 1 >= config.max_attempts:
                logger.error(f"{label}: all {config.max_attempts} attempts failed. Last error: {e}")
                raise

            delay = calculate_delay(attempt, config)
            logger.warning(
                f"{label}: attempt {attempt + 1}/{config.max_attempts} failed: {e}. "
                f"Retrying in {delay:.2f}s"
            )
            if on_retry:
                on_retry(e, attempt)
            await asyncio.sleep(delay)

    raise RuntimeError("Retry loop exited without a result")
