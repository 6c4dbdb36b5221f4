import math
import time
from collections import deque
from threading import Lock


class SlidingWindowRateLimiter:
    """Allows at most `max_requests` hits per key inside a rolling window."""

    def __init__(self, *, max_requests: int, window_seconds: int, clock=time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()

    def check_and_consume(self, key: str) -> int:
        """
        Record one hit for the key.
        Returns retry-after seconds when the window is full, otherwise 0.
        """
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            cutoff = now - self.window_seconds
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return max(math.ceil(hits[0] + self.window_seconds - now), 1)
            hits.append(now)
            return 0

    def reset(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()
