"""
Bounded retry with exponential backoff for blocking external calls.

Celery tasks get retries from the task base class; synchronous calls made
inside a request (for example creating a booking at the calendar provider)
use this module instead. The policy is a plain value object so callers can
build it from settings and tests can swap the sleep function.

Author: HireMatch Team
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration.

    Attributes:
        max_attempts: Total calls allowed, including the first one
        base_delay: Delay in seconds before the first retry
        max_delay: Upper bound for a single delay
        jitter: Add up to 10% random jitter to each delay
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: bool = True

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, retry_count: int) -> float:
        """
        Calculate exponential backoff delay with jitter.

        Args:
            retry_count: Zero-based index of the retry about to happen

        Returns:
            Delay in seconds
        """
        # Exponential backoff: 2^retry_count * base_delay
        delay = min(self.base_delay * (2 ** retry_count), self.max_delay)

        # Add jitter to prevent thundering herd
        if self.jitter and delay > 0:
            delay = delay + random.uniform(0, delay * 0.1)

        return delay

    @classmethod
    def from_settings(cls, config: dict) -> 'RetryPolicy':
        """Build a policy from the HIREMATCH_SCHEDULING settings dict."""
        return cls(
            max_attempts=config.get('BOOKING_MAX_ATTEMPTS', 3),
            base_delay=config.get('BOOKING_BACKOFF_BASE_SECONDS', 0.5),
            max_delay=config.get('BOOKING_BACKOFF_MAX_SECONDS', 8.0),
            jitter=config.get('BOOKING_BACKOFF_JITTER', True),
        )


class RetryExhausted(Exception):
    """
    Raised when every attempt failed with a retryable error.

    Attributes:
        last_error: The exception raised by the final attempt.
        attempts: Number of attempts made.
    """

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


def call_with_retry(
    func: Callable[[], T],
    policy: RetryPolicy,
    is_retryable: Callable[[BaseException], bool],
    sleep: Callable[[float], Any] = time.sleep,
    on_retry: Optional[Callable[[int, BaseException, float], Any]] = None,
) -> T:
    """
    Call ``func`` until it succeeds, a non-retryable error occurs, or the
    policy's attempt budget is spent.

    Args:
        func: Zero-argument callable performing the external call
        policy: Attempt budget and backoff
        is_retryable: Classifies an exception as transient
        sleep: Sleep function (injected in tests)
        on_retry: Optional hook called with (attempt, error, delay)

    Returns:
        Whatever ``func`` returns

    Raises:
        RetryExhausted: When all attempts failed with retryable errors
        Exception: The first non-retryable error, unchanged
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return func()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if attempt >= policy.max_attempts:
                logger.error(f"Retry budget exhausted after {attempt} attempts: {exc}")
                raise RetryExhausted(exc, attempt) from exc

            delay = policy.delay_for(attempt - 1)
            logger.warning(
                f"Retryable failure, retrying in {delay:.2f}s "
                f"(attempt {attempt + 1}/{policy.max_attempts}): {exc}"
            )
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            sleep(delay)
