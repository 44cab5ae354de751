"""
Retry configuration and exponential backoff for the Mailchimp API client.

Delays grow as ``initial_delay_ms * 2 ** attempt`` and are capped at
``max_delay_ms``. There is no jitter: concurrent clients that hit a rate
limit at the same moment will retry in lock-step.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryConfig:
    """Immutable retry budget shared by every request of a client."""
    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_ms <= 0:
            raise ValueError("initial_delay_ms must be > 0")
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must be >= initial_delay_ms")

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1


DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_backoff(attempt: int, config: RetryConfig) -> int:
    """
    Compute the delay before retrying.

    Args:
        attempt: Zero-based index of the attempt that just failed
        config: Retry budget

    Returns:
        Delay in milliseconds, never above ``config.max_delay_ms``
    """
    return min(config.initial_delay_ms * (2 ** attempt), config.max_delay_ms)
