"""
Rate Limiter for the CS Tutor API

Fixed-window request counter per key (user id, else client address),
applied ahead of every tutor endpoint.

The limiter is process-local. It is constructed once at startup, swept
periodically by a background task, and can be instantiated in isolation
for tests with an injected clock.
"""

from dataclasses import dataclass
from typing import Callable, Dict
import math
import threading
import time

from cs_tutor.logging_config import get_logger


logger = get_logger("rate_limiter")


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of admitting one request."""

    allowed: bool
    retry_after_seconds: int = 0


@dataclass
class _Window:
    started_at: float
    count: int


class RateLimiter:
    """
    Fixed-window limiter.

    A key's window restarts once the time since its start exceeds
    `window_seconds`. Denials report the whole seconds until that restart,
    never less than 1.
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def admit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started_at > self.window_seconds:
                self._windows[key] = _Window(started_at=now, count=1)
                return RateLimitDecision(allowed=True)

            if window.count < self.max_requests:
                window.count += 1
                return RateLimitDecision(allowed=True)

            remaining = self.window_seconds - (now - window.started_at)
            retry_after = max(1, math.ceil(remaining))

        logger.info(
            f"Rate limit exceeded for {key}",
            extra={
                "component": "rate_limiter",
                "event": "rate_limited",
                "data": {"key": key, "retry_after": retry_after},
            },
        )
        return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)

    def sweep(self) -> int:
        """Drop keys whose window has expired. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [
                key for key, window in self._windows.items()
                if now - window.started_at > self.window_seconds
            ]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug(
                f"Swept {len(expired)} rate limit windows",
                extra={"component": "rate_limiter", "event": "swept", "data": {"removed": len(expired)}},
            )
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
