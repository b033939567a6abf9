"""Retry policy for outbound forwarding.

- Retry on 5xx, 429 and network failures
- No retry on any other 4xx
- Delay before attempt n+1: backoff_base ** n * base_delay + jitter
"""

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff with jitter."""

    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    backoff_base: float = 2.0
    jitter_min: float = 0.25  # seconds
    jitter_max: float = 0.5  # seconds
    max_delay: float = 32.0  # seconds

    def delay_for(self, attempt: int, rng: random.Random | None = None) -> float:
        """Seconds to wait after failed attempt ``attempt`` (1-based)."""
        rng = rng or random
        exponential = (self.backoff_base ** attempt) * self.base_delay
        jitter = rng.uniform(self.jitter_min, self.jitter_max)
        return min(exponential + jitter, self.max_delay)

    def can_retry(self, attempt: int) -> bool:
        """Whether another attempt may follow attempt ``attempt``."""
        return attempt < self.max_attempts


def is_success(status: int) -> bool:
    """2xx and 3xx count as delivered."""
    return 200 <= status < 400


def is_retryable(status: int | None) -> bool:
    """Classify an attempt outcome. ``None`` means no HTTP response."""
    if status is None:
        return True
    if status == 429:
        return True
    return status >= 500


def format_retry_info(attempt: int, next_delay: float, reason: str) -> str:
    """One-line retry summary for logs."""
    return (
        f"retry_attempt={attempt} next_delay_ms={round(next_delay * 1000)} reason={reason}"
    )
