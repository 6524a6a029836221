import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int = 0  # whole seconds until the window resets, when denied


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """At most ``limit`` requests per identifier in each ``window_seconds`` window."""

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            self._windows = {k: w for k, w in self._windows.items() if w.reset_at >= now}
            window = self._windows.get(identifier)
            if window is None:
                window = _Window(count=1, reset_at=now + self._window)
                self._windows[identifier] = window
                return RateLimitDecision(True, self._limit, self._limit - 1, window.reset_at)
            if window.count >= self._limit:
                retry_after = max(1, math.ceil(window.reset_at - now))
                return RateLimitDecision(False, self._limit, 0, window.reset_at, retry_after)
            window.count += 1
            return RateLimitDecision(True, self._limit, self._limit - window.count, window.reset_at)
