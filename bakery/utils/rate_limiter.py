# bakery/utils/rate_limiter.py
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window attempt counter per key.

    The owner (the application) decides its lifetime; expired windows are
    evicted whenever the limiter is touched.
    """

    def __init__(self, max_attempts: int, window_seconds: float,
                 clock: Callable[[], float] = time.monotonic):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: Dict[str, _Window] = {}

    def hit(self, key: str) -> RateLimitResult:
        now = self.clock()
        self._evict(now)

        window = self._windows.get(key)
        if window is None:
            window = self._windows[key] = _Window(count=0, reset_at=now + self.window_seconds)

        if window.count >= self.max_attempts:
            return RateLimitResult(False, 0, max(1, int(window.reset_at - now + 0.999)))

        window.count += 1
        return RateLimitResult(True, self.max_attempts - window.count, 0)

    def reset(self, key: Optional[str] = None):
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)

    def _evict(self, now: float):
        expired = [key for key, window in self._windows.items() if window.reset_at <= now]
        for key in expired:
            del self._windows[key]

    def __len__(self) -> int:
        return len(self._windows)
