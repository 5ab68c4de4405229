"""
Routine answer cache.

Entries live in the shared snapshot. Reads never delete: an expired entry
is still returned so callers can serve it as a stale answer when the
provider is down.
"""

from typing import Optional

from .clock import Clock, SystemClock
from ai_gateway.storage.models import CacheEntry
from ai_gateway.storage.repository import SnapshotStore

MAX_CACHE_ENTRIES = 500


class RoutineCache:
    """Key/value cache with per-entry TTL."""

    def __init__(self, store: SnapshotStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or SystemClock()

    def get(self, key: str) -> Optional[CacheEntry]:
        """Newest entry for `key`, expired or not."""
        snapshot = self.store.load()
        for entry in snapshot.routine_cache:
            if entry.key == key:
                return entry
        return None

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> CacheEntry:
        """Store `value` under `key`, replacing any earlier entry."""
        entry = CacheEntry(
            key=key,
            value=value,
            created_at=self.clock.now(),
            ttl_seconds=ttl_seconds or None,
        )
        snapshot = self.store.load()
        remaining = [item for item in snapshot.routine_cache if item.key != key]
        snapshot.routine_cache = ([entry] + remaining)[:MAX_CACHE_ENTRIES]
        self.store.save(snapshot)
        return entry

    def is_fresh(self, entry: CacheEntry) -> bool:
        return not entry.is_expired(self.clock.now())
