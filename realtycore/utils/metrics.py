"""
Metrics utilities - latency timing and usage percentages for dashboards.
"""
import time
from typing import Optional


class Timer:
    """Simple timer for measuring operation latency."""

    def __init__(self):
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def start(self) -> "Timer":
        self._start = time.monotonic()
        return self

    def stop(self) -> int:
        """Stop timer and return elapsed milliseconds."""
        self._end = time.monotonic()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> int:
        """Return elapsed time in milliseconds."""
        if self._start is None:
            return 0
        end = self._end or time.monotonic()
        return int((end - self._start) * 1000)


def usage_percentage(current: int, limit: Optional[int]) -> float:
    """Percent of a cap consumed. Uncapped (None or 0) reports 0."""
    if not limit:
        return 0.0
    return round(current / limit * 100, 1)
