"""In-memory TTL cache for breach lookups.

Shared by concurrent lookups and the periodic sweep, so every read and write
happens under one lock.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from .constants import DEFAULT_BREACH_CACHE_TTL, DEFAULT_BREACH_SWEEP_INTERVAL

logger = logging.getLogger(__name__)


class BreachCacheEntry:
    """Breach count for one hash with the time it was cached."""

    __slots__ = ("hash_key", "breach_count", "cached_at")

    def __init__(self, hash_key: str, breach_count: int, cached_at: float):
        self.hash_key = hash_key
        self.breach_count = breach_count
        self.cached_at = cached_at

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.cached_at >= ttl


class BreachCache:
    """
    TTL cache keyed by password hash.

    Usage:
        cache = BreachCache(ttl_seconds=3600)
        cache.set(hash_hex, 12)
        count = cache.get(hash_hex)  # None once expired
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_BREACH_CACHE_TTL,
        now: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._now = now
        self._entries: Dict[str, BreachCacheEntry] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _key(hash_key: str) -> str:
        return hash_key.upper()

    def get(self, hash_key: str) -> Optional[int]:
        """Return the cached breach count, or None if absent or expired."""
        key = self._key(hash_key)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._now(), self.ttl_seconds):
                logger.debug("Cache entry expired for hash prefix %s", key[:5])
                del self._entries[key]
                return None
            logger.debug("Cache hit for hash prefix %s (count=%s)", key[:5], entry.breach_count)
            return entry.breach_count

    def set(self, hash_key: str, breach_count: int) -> None:
        key = self._key(hash_key)
        with self._lock:
            self._entries[key] = BreachCacheEntry(key, breach_count, self._now())
        logger.debug("Cached breach result for hash prefix %s (count=%s)", key[:5], breach_count)

    def sweep(self) -> int:
        """Remove expired entries. Returns how many were removed."""
        with self._lock:
            now = self._now()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now, self.ttl_seconds)]
            for key in expired:
                del self._entries[key]
            remaining = len(self._entries)
        if expired:
            logger.debug("Cleaned up %s expired cache entries (%s remaining)", len(expired), remaining)
        return len(expired)

    async def run_sweeper(self, interval_seconds: float = DEFAULT_BREACH_SWEEP_INTERVAL) -> None:
        """Sweep periodically until cancelled."""
        logger.info("Breach cache sweeper started")
        try:
            while True:
                await asyncio.sleep(interval_seconds)
                self.sweep()
        except asyncio.CancelledError:
            logger.info("Breach cache sweeper stopped")
            raise

    def clear(self) -> None:
        with self._lock:
            cleared = len(self._entries)
            self._entries.clear()
        logger.info("Cleared breach cache (%s entries)", cleared)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_entries": len(self._entries),
                "ttl_seconds": self.ttl_seconds,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
