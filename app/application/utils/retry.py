from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return min(self.initial_delay * (self.multiplier ** (attempt - 1)), self.max_delay)


class RetryError(Exception):
    def __init__(self, last_error: Exception, attempts: int) -> None:
        super().__init__(str(last_error))
        self.last_error = last_error
        self.attempts = attempts


def retry_with_backoff(
    fn: Callable[[], T],
    policy: RetryPolicy,
    should_retry: Callable[[Exception], bool],
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[T, int]:
    """
    Call fn until it succeeds, should_retry says no, or attempts run out.
    Returns (result, attempts). Raises RetryError wrapping the last error.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn(), attempt
        except Exception as e:
            if attempt >= policy.max_attempts or not should_retry(e):
                raise RetryError(e, attempt) from e
            delay = policy.delay_for(attempt)
            logger.info(
                "Retrying after failure",
                extra={"attempt": attempt, "max_attempts": policy.max_attempts, "delay": delay, "error": str(e)},
            )
            sleep(delay)
