import threading
import time


class MetricsCollector:
    """Rolling-window counts of callback deliveries, keyed by order reference."""

    def __init__(self, window_seconds: float = 300):
        self._window_seconds = window_seconds
        self._successes: list[tuple[float, str | None]] = []  # (monotonic ts, reference)
        self._failures: list[tuple[float, str | None]] = []
        self._lock = threading.Lock()

    def record_success(self, reference: str | None = None) -> None:
        with self._lock:
            self._successes.append((time.monotonic(), reference))

    def record_failure(self, reference: str | None = None) -> None:
        with self._lock:
            self._failures.append((time.monotonic(), reference))

    def _prune(self, data: list[tuple[float, str | None]], now: float) -> list[tuple[float, str | None]]:
        cutoff = now - self._window_seconds
        return [entry for entry in data if entry[0] >= cutoff]

    def failure_rate(self) -> float:
        """Share of exhausted deliveries in the current window (0.0 to 1.0)."""
        with self._lock:
            now = time.monotonic()
            successes = len(self._prune(self._successes, now))
            failures = len(self._prune(self._failures, now))
            total = successes + failures
            if total == 0:
                return 0.0
            return failures / total

    def total_in_window(self) -> int:
        with self._lock:
            now = time.monotonic()
            return len(self._prune(self._successes, now)) + len(self._prune(self._failures, now))

    def failure_count_in_window(self) -> int:
        with self._lock:
            return len(self._prune(self._failures, time.monotonic()))

    def failed_references_in_window(self) -> list[str]:
        with self._lock:
            entries = self._prune(self._failures, time.monotonic())
            return [ref for _, ref in entries if ref is not None]

    def reset(self) -> None:
        with self._lock:
            self._successes.clear()
            self._failures.clear()
