"""
Fixed-window rate limiter shared by all concurrent requests

Every client key owns a counter for the current time window. Counters are
read and updated under a single lock, so that concurrent requests of the
same client never get admitted beyond the limit of the window.
"""

import math
import time
import threading
from typing import Callable, Dict, NamedTuple, Optional


class RateLimitState(NamedTuple):
    allowed: bool
    limit: int
    remaining: int
    reset: float

    @property
    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset))
        }
        if not self.allowed:
            headers["Retry-After"] = str(max(1, math.ceil(self.reset)))
        return headers


class _Window:
    __slots__ = ("start", "count")

    def __init__(self, start: float):
        self.start = start
        self.count = 0


class RateLimiter:
    """
    Limit the number of requests per client key within a fixed time window

    :param limit: maximum number of admitted requests per window and key
    :param window: window length in seconds
    :param clock: monotonic clock function (replaceable for testing)
    """

    PRUNE_THRESHOLD = 4096

    def __init__(self, limit: int, window: float, clock: Optional[Callable[[], float]] = None):
        if limit < 1:
            raise ValueError("The limit must be at least 1")
        if window <= 0:
            raise ValueError("The window must be positive")
        self.limit = limit
        self.window = window
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._windows: Dict[str, _Window] = {}

    def hit(self, key: str) -> RateLimitState:
        """
        Count a request of the client key and return whether it's admitted
        """

        with self._lock:
            now = self._clock()
            current = self._windows.get(key)
            if current is None or now - current.start >= self.window:
                if len(self._windows) >= self.PRUNE_THRESHOLD:
                    self._prune(now)
                current = _Window(now)
                self._windows[key] = current

            reset = current.start + self.window - now
            if current.count >= self.limit:
                return RateLimitState(False, self.limit, 0, reset)
            current.count += 1
            return RateLimitState(True, self.limit, self.limit - current.count, reset)

    def _prune(self, now: float):
        expired = [k for k, w in self._windows.items() if now - w.start >= self.window]
        for k in expired:
            del self._windows[k]

    def reset(self):
        with self._lock:
            self._windows.clear()
