"""
Per-user sliding-window rate limiting.

State lives in memory in a single process: it resets on restart and is not
shared between instances.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: float = 0.0
    remaining: int = 0


class SlidingWindowRateLimiter:
    """
    Allow at most `max_requests` per key within any `window_seconds` span.

    Each key's timestamps are pruned lazily when that key is checked. Keys of
    users who stopped sending requests are removed by a whole-map sweep that
    runs at most once per `cleanup_interval_seconds`.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        cleanup_interval_seconds: float = 300.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self.cleanup_interval_seconds = float(cleanup_interval_seconds)
        self._clock = clock or time.monotonic
        self._requests: Dict[str, List[float]] = {}
        self._lock = threading.Lock()
        self._last_cleanup = self._clock()

    def check(self, key: str) -> RateLimitDecision:
        """Record a request for `key` if it fits in the window."""
        with self._lock:
            now = self._clock()
            if now - self._last_cleanup >= self.cleanup_interval_seconds:
                self._sweep(now)

            window_start = now - self.window_seconds
            timestamps = [t for t in self._requests.get(key, []) if t > window_start]

            if len(timestamps) >= self.max_requests:
                self._requests[key] = timestamps
                retry_after = timestamps[0] + self.window_seconds - now
                return RateLimitDecision(allowed=False, retry_after=max(retry_after, 0.0))

            timestamps.append(now)
            self._requests[key] = timestamps
            return RateLimitDecision(allowed=True, remaining=self.max_requests - len(timestamps))

    def _sweep(self, now: float) -> None:
        window_start = now - self.window_seconds
        for key in list(self._requests):
            live = [t for t in self._requests[key] if t > window_start]
            if live:
                self._requests[key] = live
            else:
                del self._requests[key]
        self._last_cleanup = now

    def tracked_keys(self) -> List[str]:
        with self._lock:
            return list(self._requests)

    def reset(self) -> None:
        """Forget all recorded requests."""
        with self._lock:
            self._requests.clear()
            self._last_cleanup = self._clock()


def build_rate_limiter() -> SlidingWindowRateLimiter:
    """Create the chat rate limiter from configuration."""
    from weave.config import get_setting

    return SlidingWindowRateLimiter(
        max_requests=get_setting("rate_limit_max_requests"),
        window_seconds=get_setting("rate_limit_window_seconds"),
        cleanup_interval_seconds=get_setting("rate_limit_cleanup_interval_seconds"),
    )
