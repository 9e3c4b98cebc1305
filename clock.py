import threading
import time
from typing import Optional


class RateClock:
    """Tracks elapsed wall time against the configured test duration."""

    def __init__(self, duration: float):
        self.duration = duration
        self._start: Optional[float] = None

    def start(self):
        self._start = time.perf_counter()

    def elapsed(self) -> float:
        if self._start is None:
            return 0.0
        return time.perf_counter() - self._start

    def should_continue(self, elapsed: float) -> bool:
        return elapsed < self.duration


class IterationBudget:
    """Iteration count shared by every virtual user. None means unbounded."""

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit
        self.used = 0
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        if self.limit is None:
            return True
        with self._lock:
            if self.used >= self.limit:
                return False
            self.used += 1
            return True

    def exhausted(self) -> bool:
        if self.limit is None:
            return False
        with self._lock:
            return self.used >= self.limit
