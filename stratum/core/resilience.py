"""
Stratum Core - Resilience patterns.

Retry with exponential backoff for provider calls and state persistence.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable  # noqa: TC003
from dataclasses import dataclass
from functools import wraps
from typing import Any, TypeVar

from loguru import logger

from stratum.core.metrics import track_retry
from stratum.utils.logger import log_prefix

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff parameters."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given (1-based) failed attempt."""
        return min(self.initial_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)


@dataclass
class RetryOutcome:
    """Result of a retried call: the value and how many attempts it took."""

    value: Any
    attempts: int


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    is_retryable: Callable[[Exception], bool],
    *,
    name: str = "call",
    should_stop: Callable[[], bool] | None = None,
    on_attempt: Callable[[int], None] | None = None,
) -> RetryOutcome:
    """
    Call ``func`` until it succeeds, fails permanently, or attempts run out.

    Args:
        func: Zero-argument coroutine factory, invoked once per attempt
        policy: Backoff parameters
        is_retryable: Predicate deciding whether an error is transient
        name: Label used in logs and metrics
        should_stop: When it returns True no further attempt is started
        on_attempt: Called with the attempt number before each attempt

    Returns:
        RetryOutcome with the result and the number of attempts used

    Raises:
        Exception: The last error, once it is non-retryable, attempts are
            exhausted, or ``should_stop`` fires
    """
    attempt = 0
    while True:
        attempt += 1
        if on_attempt:
            on_attempt(attempt)
        try:
            return RetryOutcome(value=await func(), attempts=attempt)
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt >= policy.max_attempts:
                logger.error(
                    f"{log_prefix('❌')} Retry exhausted after {policy.max_attempts} attempts: {name}"
                )
                raise
            if should_stop and should_stop():
                logger.warning(f"{log_prefix('⚠️')} Not retrying {name}: run cancelled")
                raise

            track_retry(name, attempt)
            delay = policy.delay_for(attempt)
            error_msg = str(e)[:80] + "..." if len(str(e)) > 80 else str(e)
            logger.warning(
                f"{log_prefix('🔄')} Retry {attempt}/{policy.max_attempts} for {name} "
                f"after {delay:.1f}s: {error_msg}"
            )
            await asyncio.sleep(delay)
            if should_stop and should_stop():
                logger.warning(f"{log_prefix('⚠️')} Not retrying {name}: run cancelled")
                raise


def retry(
    max_attempts: int = 3,
    initial_delay: float = 0.1,
    max_delay: float = 2.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable:
    """
    Retry decorator with exponential backoff.

    Args:
        max_attempts: Maximum attempts (default: 3)
        initial_delay: Initial delay in seconds (default: 0.1)
        max_delay: Maximum delay in seconds (default: 2.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        exceptions: Exception types to retry (default: all exceptions)

    Example:
        @retry(exceptions=(sqlite3.OperationalError,))
        async def write(...):
            ...
    """
    policy = RetryPolicy(max_attempts, initial_delay, max_delay, exponential_base)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            outcome = await call_with_retry(
                lambda: func(*args, **kwargs),
                policy,
                lambda e: isinstance(e, exceptions),
                name=func.__name__,
            )
            return outcome.value

        return wrapper

    return decorator
