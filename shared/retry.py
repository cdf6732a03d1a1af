"""
Retry policy for resilient operations.
"""

import random
from typing import Optional

BACKOFF_FIXED = "fixed"
BACKOFF_EXPONENTIAL = "exponential"


class RetryConfig:
    """Configuration for retry behavior.

    ``max_retries`` counts retries after the first attempt, so an operation is
    tried ``max_retries + 1`` times in total.
    """

    def __init__(self,
                 max_retries: int = 3,
                 base_delay: float = 2.0,
                 backoff_strategy: str = BACKOFF_EXPONENTIAL,
                 max_delay: Optional[float] = None,
                 jitter: bool = False):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if backoff_strategy not in (BACKOFF_FIXED, BACKOFF_EXPONENTIAL):
            raise ValueError(f"Unknown backoff strategy: {backoff_strategy}")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self.backoff_strategy = backoff_strategy
        self.max_delay = max_delay
        self.jitter = jitter

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt_index: int) -> float:
        """Delay to wait after the failed attempt ``attempt_index`` (0-based)."""
        return calculate_delay(attempt_index, self)


def calculate_delay(attempt_index: int, config: RetryConfig) -> float:
    """Calculate delay between retry attempts."""
    if config.backoff_strategy == BACKOFF_EXPONENTIAL:
        delay = config.base_delay * (2 ** attempt_index)
    else:
        delay = config.base_delay

    if config.max_delay is not None:
        delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)
