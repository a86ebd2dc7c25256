"""
Retry with exponential backoff for retryable census errors.

Only exceptions flagged `retryable` (FeedUnavailable, HashError) are
retried; everything else propagates on the first failure. When retries
are exhausted the last error is re-raised unchanged.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from census.schemas.errors import CensusException


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff parameters.

    Attempt n (0-based) waits min(initial_delay * backoff_factor**n,
    max_delay) before the next try.
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 10.0

    def delay_for(self, attempt: int) -> float:
        return min(self.initial_delay * (self.backoff_factor ** attempt), self.max_delay)

    @classmethod
    def none(cls) -> "RetryPolicy":
        return cls(max_retries=0, initial_delay=0.0, max_delay=0.0)


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, CensusException) and error.retryable


def call_with_retries(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    description: str = "operation",
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Call `fn` until it succeeds, a non-retryable error occurs, or the
    policy runs out of retries.
    """
    do_sleep = sleep or time.sleep
    for attempt in range(policy.max_retries + 1):
        try:
            return fn()
        except CensusException as e:
            if not e.retryable or attempt >= policy.max_retries:
                if e.retryable:
                    logger.error(
                        f"{description} failed after {attempt + 1} attempts: {e.message}"
                    )
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                f"{description} attempt {attempt + 1} failed ({e.code}): {e.message}; "
                f"retrying in {delay:.1f}s"
            )
            do_sleep(delay)
    raise AssertionError("unreachable")


__all__ = ["RetryPolicy", "call_with_retries", "is_retryable"]
