"""Fixed-window rate limiter keyed by client (IP)."""
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float   # seconds until the current window closes


class FixedWindowRateLimiter:
    """``limit`` hits per ``window`` seconds per key.

    Windows start on a key's first hit. Expired windows are dropped lazily
    so the table only holds recently active clients.
    """

    def __init__(self, limit: int = 100, window: float = 900.0, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}   # key -> (window_start, count)

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        self._prune(now)

        start, count = self._windows.get(key, (now, 0))
        count += 1
        self._windows[key] = (start, count)

        reset_after = max(0.0, start + self.window - now)
        return RateLimitDecision(
            allowed=count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_after=reset_after,
        )

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)

    def _prune(self, now: float) -> None:
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window]
        for k in expired:
            del self._windows[k]
