"""
Rate limiting for inbound validation requests.

Uses collections.deque per client so expiring old timestamps is O(1) per
removal instead of filtering a list on every call.
"""

import time
from collections import deque
from collections.abc import Callable
from threading import Lock

from .exceptions import RateLimitExceededError


class RateLimiter:
    """Thread-safe sliding-window rate limiter keyed by client.

    Unlike an outbound API limiter this never sleeps: a request over the
    limit is rejected immediately and the caller is told how long to wait.
    """

    def __init__(
        self,
        calls: int,
        period: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            calls: Number of requests allowed per client in the period
            period: Window length in seconds
            clock: Time source, injectable for tests
        """
        self.calls = calls
        self.period = period
        self._clock = clock
        self._windows: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._last_sweep = clock()

    def _expire(self, window: deque[float], now: float) -> None:
        cutoff = now - self.period
        while window and window[0] <= cutoff:
            window.popleft()

    def _sweep(self, now: float) -> None:
        """Drop clients whose whole window has expired, at most once per period."""
        if now - self._last_sweep < self.period:
            return
        self._last_sweep = now
        cutoff = now - self.period
        stale = [
            key for key, window in self._windows.items() if not window or window[-1] <= cutoff
        ]
        for key in stale:
            del self._windows[key]

    def try_acquire(self, client: str) -> float | None:
        """Record a request for *client* if allowed.

        Returns:
            None when the request is allowed, otherwise the number of
            seconds until the oldest request leaves the window.
        """
        with self._lock:
            now = self._clock()
            self._sweep(now)
            window = self._windows.setdefault(client, deque())
            self._expire(window, now)

            if len(window) >= self.calls:
                return self.period - (now - window[0])

            window.append(now)
            return None

    def check(self, client: str) -> None:
        """Like try_acquire, but raise RateLimitExceededError when limited."""
        retry_after = self.try_acquire(client)
        if retry_after is not None:
            raise RateLimitExceededError(
                "Too many requests, please try again later.",
                retry_after=retry_after,
            )

    def remaining(self, client: str) -> int:
        """Number of requests *client* may still make in the current window."""
        with self._lock:
            window = self._windows.get(client)
            if window is None:
                return self.calls
            self._expire(window, self._clock())
            if not window:
                del self._windows[client]
                return self.calls
            return max(self.calls - len(window), 0)

    def reset(self) -> None:
        """Forget all recorded requests."""
        with self._lock:
            self._windows.clear()
