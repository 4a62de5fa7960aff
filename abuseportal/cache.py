"""In-memory response cache with stale-while-revalidate.

Used by the security bulletin gateway so repeated listing/lookups within
the TTL are served locally. After the TTL an entry stays usable for the
stale window: it is returned immediately while a single background refresh
replaces it.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class CacheEntry:
    """Represents a cached value with timestamp."""

    __slots__ = ("value", "timestamp", "ttl_seconds")

    def __init__(self, value: Any, timestamp: float, ttl_seconds: Optional[int] = None):
        self.value = value
        self.timestamp = timestamp
        self.ttl_seconds = ttl_seconds

    def age(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.timestamp

    def is_expired(self, default_ttl: int, now: Optional[float] = None) -> bool:
        """Check if this entry has expired."""
        ttl = self.ttl_seconds if self.ttl_seconds is not None else default_ttl
        return self.age(now) >= ttl


class CacheManager:
    """
    Memory cache keyed by namespace + key.

    Usage:
        cache = CacheManager(ttl_seconds=3600, stale_seconds=86400, namespace="cvrf")

        # Simple get/set
        cache.set("updates", payload)
        cached = cache.get("updates")

        # Get with fallback (serves stale entries while refreshing)
        payload = await cache.get_or_fetch("updates", fetch_async_fn)
    """

    def __init__(
        self,
        ttl_seconds: int = 3600,
        stale_seconds: int = 0,
        namespace: str = "",
        clock: Callable[[], float] = time.time,
        max_entries: int = 1000,
    ):
        """
        Initialize cache manager.

        Args:
            ttl_seconds: Default TTL for cache entries
            stale_seconds: How long past the TTL an entry may still be served
            namespace: Prefix for cache keys (e.g., "cvrf")
            clock: Time source, seconds since the epoch
            max_entries: Upper bound on stored entries; oldest are evicted first
        """
        self.ttl_seconds = ttl_seconds
        self.stale_seconds = stale_seconds
        self.namespace = namespace
        self._clock = clock
        self.max_entries = max(1, int(max_entries))

        self._memory: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._refreshing: Dict[str, asyncio.Task] = {}

    def _make_key(self, key: str) -> str:
        """Generate full cache key with namespace."""
        if self.namespace:
            return f"{self.namespace}:{key}"
        return key

    def _lookup(self, key: str) -> tuple[Optional[CacheEntry], bool]:
        """Return (entry, is_fresh); drops entries past the stale window."""
        full_key = self._make_key(key)
        now = self._clock()
        with self._lock:
            entry = self._memory.get(full_key)
            if entry is None:
                return None, False
            if not entry.is_expired(self.ttl_seconds, now):
                return entry, True
            ttl = entry.ttl_seconds if entry.ttl_seconds is not None else self.ttl_seconds
            if entry.age(now) < ttl + self.stale_seconds:
                return entry, False
            del self._memory[full_key]
            return None, False

    def get(self, key: str) -> Optional[Any]:
        """Get cached value if it exists and is still fresh."""
        entry, fresh = self._lookup(key)
        return entry.value if entry is not None and fresh else None

    def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """
        Set cached value.

        Args:
            key: Cache key (will be prefixed with namespace)
            value: Value to cache
            ttl_seconds: Override default TTL for this entry
        """
        entry = CacheEntry(
            value=value,
            timestamp=self._clock(),
            ttl_seconds=ttl_seconds,
        )
        with self._lock:
            self._memory[self._make_key(key)] = entry
            self._sweep(entry.timestamp)

    def _sweep(self, now: float) -> None:
        """Drop entries past their stale window, then the oldest beyond max_entries."""
        for full_key, entry in list(self._memory.items()):
            ttl = entry.ttl_seconds if entry.ttl_seconds is not None else self.ttl_seconds
            if entry.age(now) >= ttl + self.stale_seconds:
                del self._memory[full_key]
        overflow = len(self._memory) - self.max_entries
        if overflow > 0:
            oldest = sorted(self._memory.items(), key=lambda item: item[1].timestamp)[:overflow]
            for full_key, _entry in oldest:
                del self._memory[full_key]

    def delete(self, key: str) -> None:
        """Delete cached value."""
        with self._lock:
            self._memory.pop(self._make_key(key), None)

    def clear(self) -> None:
        """Clear all cached values."""
        with self._lock:
            self._memory.clear()

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[int] = None,
    ) -> Any:
        """
        Get cached value or fetch and cache it.

        Fresh hits are returned as-is. Stale hits are returned as-is and a
        background refresh is scheduled (at most one per key). Misses await
        ``fetch_fn`` and let its exceptions propagate; nothing is cached then.
        """
        entry, fresh = self._lookup(key)
        if entry is not None:
            if not fresh:
                self._schedule_refresh(key, fetch_fn, ttl_seconds)
            return entry.value

        value = await fetch_fn()
        self.set(key, value, ttl_seconds)
        return value

    def _schedule_refresh(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[int],
    ) -> None:
        full_key = self._make_key(key)
        running = self._refreshing.get(full_key)
        if running is not None and not running.done():
            return

        async def _refresh() -> None:
            try:
                value = await fetch_fn()
            except Exception as e:
                logger.warning("Background refresh failed for %s: %s", full_key, e)
                return
            self.set(key, value, ttl_seconds)

        task = asyncio.create_task(_refresh())
        self._refreshing[full_key] = task
        task.add_done_callback(lambda _t: self._refreshing.pop(full_key, None))

    async def wait_for_refreshes(self) -> None:
        """Wait for any in-flight background refreshes (used on shutdown/tests)."""
        tasks = [t for t in self._refreshing.values() if not t.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "namespace": self.namespace,
                "ttl_seconds": self.ttl_seconds,
                "stale_seconds": self.stale_seconds,
                "max_entries": self.max_entries,
                "memory_entries": len(self._memory),
                "refreshing": sum(1 for t in self._refreshing.values() if not t.done()),
            }
