"""
Simple in-memory TTL cache for per-team analytics.

An entry is served only while it is younger than the TTL and the team's
fingerprint (membership plus latest conversation activity) is unchanged.
"""

import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from persona_insights.settings import settings


@dataclass
class CacheEntry:
    """Cached payload and the fingerprint it was computed from."""

    value: Any
    fingerprint: str
    stored_at: float = field(default_factory=time.time)


class TeamCache:
    """Per-manager cache keyed by manager profile id."""

    def __init__(self, ttl_seconds: int = 1800):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[int, CacheEntry] = {}
        self._lock = Lock()

    def get(self, manager_id: int, fingerprint: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(manager_id)
            if entry is None:
                return None
            if time.time() - entry.stored_at >= self.ttl_seconds or entry.fingerprint != fingerprint:
                del self._entries[manager_id]
                return None
            return entry.value

    def set(self, manager_id: int, fingerprint: str, value: Any) -> None:
        with self._lock:
            self._entries[manager_id] = CacheEntry(value=value, fingerprint=fingerprint)

    def invalidate(self, manager_id: int) -> None:
        with self._lock:
            self._entries.pop(manager_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# Global team analytics cache
team_cache = TeamCache(ttl_seconds=settings.team_cache_ttl_seconds)
