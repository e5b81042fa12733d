"""
Simple in-memory sliding-window rate limiter.

Used for login attempts (keyed by client IP) and invitation creation
(keyed by profile). State is per process.
"""

import time
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock

from persona_insights.errors import RateLimited
from persona_insights.settings import settings


@dataclass
class RateLimitEntry:
    requests: list[float] = field(default_factory=list)
    lock: Lock = field(default_factory=Lock)


class RateLimiter:
    def __init__(self, requests_per_minute: int = 10, window_seconds: int = 60):
        self.requests_per_minute = requests_per_minute
        self.window_seconds = window_seconds
        self._entries: dict[str, RateLimitEntry] = defaultdict(RateLimitEntry)

    def is_allowed(self, key: str) -> bool:
        """Record a request for ``key`` if it is still under the limit."""
        entry = self._entries[key]
        now = time.time()
        window_start = now - self.window_seconds

        with entry.lock:
            entry.requests = [t for t in entry.requests if t > window_start]
            if len(entry.requests) < self.requests_per_minute:
                entry.requests.append(now)
                return True
            return False

    def check(self, key: str) -> None:
        """Like is_allowed, but raises RateLimited when over the limit."""
        if not self.is_allowed(key):
            raise RateLimited(
                f"Too many requests. Try again in {int(self.reset_time(key)) + 1} seconds."
            )

    def remaining(self, key: str) -> int:
        entry = self._entries[key]
        window_start = time.time() - self.window_seconds

        with entry.lock:
            entry.requests = [t for t in entry.requests if t > window_start]
            return max(0, self.requests_per_minute - len(entry.requests))

    def reset_time(self, key: str) -> float:
        """Seconds until the oldest request in the window expires."""
        entry = self._entries[key]

        with entry.lock:
            if not entry.requests:
                return 0
            oldest = min(entry.requests)
            return max(0, oldest + self.window_seconds - time.time())

    def reset(self) -> None:
        self._entries.clear()


# Global rate limiters
auth_rate_limiter = RateLimiter(requests_per_minute=settings.rate_limit_auth_per_minute)
invite_rate_limiter = RateLimiter(requests_per_minute=settings.rate_limit_invite_per_minute)
