"""Per-client fixed-window request counter.

A window opens on a client's first request and resets ``window_seconds``
later. The limiter owns its state and clock so tests can drive time directly.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0


class RateLimiter:
    def __init__(
        self,
        window_seconds: float = 60.0,
        max_requests: int = 10,
        clock: Clock = time.monotonic,
    ):
        if window_seconds <= 0 or max_requests < 1:
            raise ValueError("window_seconds and max_requests must be positive")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config, clock: Clock = time.monotonic) -> RateLimiter:
        return cls(config.window_seconds, config.max_requests, clock)

    def check(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it may proceed."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return RateLimitDecision(allowed=True, remaining=self.max_requests - 1)

            if window.count >= self.max_requests:
                retry_after = max(1, math.ceil(window.reset_at - now))
                return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

            window.count += 1
            return RateLimitDecision(allowed=True, remaining=self.max_requests - window.count)

    def sweep(self) -> int:
        """Drop expired windows. Returns how many were evicted."""
        with self._lock:
            now = self._clock()
            expired = [key for key, window in self._windows.items() if now >= window.reset_at]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug("Evicted %d expired rate-limit windows", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
