"""Sliding-window rate limiting kept in process memory."""

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    current_count: int
    limit: int
    retry_after_ms: int | None = None


@dataclass
class SlidingWindowRateLimiter:
    """Counts requests per key inside a window ending at "now".

    The table is the only shared mutable state in the engine; every access
    goes through one lock so ``acquire`` can check and record atomically.
    """

    limit: int
    window_ms: int
    clock: Callable[[], float] = time.monotonic
    _requests: dict[str, list[int]] = field(
        default_factory=dict, init=False, repr=False
    )
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def check(self, key: str) -> RateLimitResult:
        """Report whether another request for the key fits in the window."""
        with self._lock:
            return self._check(key, self._now_ms())

    def record(self, key: str) -> None:
        """Record a request for the key at the current time."""
        with self._lock:
            self._requests.setdefault(key, []).append(self._now_ms())

    def acquire(self, key: str) -> RateLimitResult:
        """Check and record in one step; nothing is recorded when denied."""
        with self._lock:
            now = self._now_ms()
            result = self._check(key, now)
            if not result.allowed:
                return result
            self._requests.setdefault(key, []).append(now)
            return RateLimitResult(
                allowed=True,
                current_count=result.current_count + 1,
                limit=self.limit,
            )

    def reset(self, key: str) -> None:
        """Forget every recorded request for the key."""
        with self._lock:
            self._requests.pop(key, None)

    def sweep(self) -> int:
        """Drop expired timestamps and empty keys; return keys removed."""
        removed = 0
        with self._lock:
            window_start = self._now_ms() - self.window_ms
            for key in list(self._requests):
                recent = [ts for ts in self._requests[key] if ts > window_start]
                if recent:
                    self._requests[key] = recent
                else:
                    del self._requests[key]
                    removed += 1
        return removed

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep forever at a fixed interval until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                _logger.debug("Rate limiter sweep removed %s idle keys", removed)

    def tracked_keys(self) -> int:
        """Return how many keys currently hold timestamps."""
        with self._lock:
            return len(self._requests)

    def _check(self, key: str, now: int) -> RateLimitResult:
        window_start = now - self.window_ms
        recent = [ts for ts in self._requests.get(key, []) if ts > window_start]
        if recent:
            self._requests[key] = recent
        else:
            self._requests.pop(key, None)
        allowed = len(recent) < self.limit
        retry_after_ms = None
        if not allowed and recent:
            retry_after_ms = min(recent) + self.window_ms - now
        return RateLimitResult(
            allowed=allowed,
            current_count=len(recent),
            limit=self.limit,
            retry_after_ms=retry_after_ms,
        )

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)
