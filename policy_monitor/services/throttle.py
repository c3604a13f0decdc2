# policy_monitor/services/throttle.py
"""
Pacing helpers for Google Ads calls.

- RateLimiter: enforces a minimum wall-clock spacing between consecutive calls.
- RetryPolicy / call_with_retry: bounded retry with a fixed backoff schedule,
  used for quota (RESOURCE_EXHAUSTED) responses.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Process-local limiter holding the timestamp of the last API call."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    @property
    def last_call(self) -> Optional[float]:
        return self._last_call

    def wait(self) -> float:
        """Block until the minimum interval has elapsed; return seconds slept."""
        waited = 0.0
        if self._last_call is not None:
            elapsed = self._clock() - self._last_call
            if elapsed < self.min_interval:
                waited = self.min_interval - elapsed
                logger.debug("Rate limiting: waiting %.2fs before next API call", waited)
                self._sleep(waited)
        self._last_call = self._clock()
        return waited


@dataclass
class RetryPolicy:
    """max_attempts counts the first call; backoff[i] is slept before retry i+1."""
    max_attempts: int = 2
    backoff: Sequence[float] = (60.0,)
    retry_on: Tuple[Type[BaseException], ...] = ()
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay_for(self, retry_number: int) -> float:
        if not self.backoff:
            return 0.0
        idx = min(retry_number - 1, len(self.backoff) - 1)
        return float(self.backoff[idx])


def call_with_retry(fn: Callable[[], T], policy: RetryPolicy, what: str = "call") -> T:
    """Run fn, retrying on policy.retry_on errors up to policy.max_attempts.

    The last error is re-raised unchanged once attempts are exhausted.
    """
    attempts = max(1, int(policy.max_attempts))
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except policy.retry_on as e:
            if attempt >= attempts:
                logger.error("%s failed after %d attempt(s): %s", what, attempt, e)
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s hit a retryable error on attempt %d/%d; backing off %.1fs: %s",
                what,
                attempt,
                attempts,
                delay,
                e,
            )
            policy.sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
