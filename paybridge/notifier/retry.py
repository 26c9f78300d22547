from paybridge.config import MIN_CALLBACK_ATTEMPTS
from paybridge.errors import ConfigurationError


class RetryPolicy:
    """Retry budget and backoff for merchant callbacks.

    The wait after attempt ``n`` is ``n * base_delay`` seconds, capped at
    ``max_delay``: non-decreasing and bounded, so the worst-case latency of a
    delivery is known up front.
    """

    DEFAULT_MAX_ATTEMPTS = MIN_CALLBACK_ATTEMPTS
    DEFAULT_BASE_DELAY = 2.0
    DEFAULT_MAX_DELAY = 30.0

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 base_delay: float = DEFAULT_BASE_DELAY,
                 max_delay: float = DEFAULT_MAX_DELAY):
        if max_attempts < MIN_CALLBACK_ATTEMPTS:
            raise ConfigurationError(
                f"callbacks need at least {MIN_CALLBACK_ATTEMPTS} attempts, got {max_attempts}"
            )
        if base_delay < 0 or max_delay < 0:
            raise ConfigurationError("retry delays must not be negative")
        self.max_attempts = max_attempts
        self.base_delay = float(base_delay)
        self.max_delay = float(max(max_delay, base_delay))

    def should_retry(self, status_code: int | None) -> bool:
        """Anything but a 200, including network failures (None), is retried."""
        return status_code != 200

    def next_delay(self, attempt: int) -> float:
        """Seconds to wait after 1-based ``attempt`` before the next one."""
        return min(max(attempt, 1) * self.base_delay, self.max_delay)

    def has_attempts_remaining(self, attempt: int) -> bool:
        """True while 1-based ``attempt`` has not used up the budget."""
        return attempt < self.max_attempts

    def worst_case_delay(self) -> float:
        return sum(self.next_delay(n) for n in range(1, self.max_attempts))
