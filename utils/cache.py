"""Lightweight in-memory TTL cache.

Used by the reporting layer to memoise computed views between entity
reloads.
"""

import time
import threading
from typing import Any, Callable


class TTLCache:
    """Thread-safe in-memory cache with time-to-live (TTL) expiry.

    Entries expire after ``ttl_seconds`` seconds. A maximum of ``maxsize``
    entries are retained; when the cache is full the oldest entry is evicted.

    Usage::

        cache = TTLCache(maxsize=128, ttl_seconds=300)
        cache.set("my_key", {"data": [1, 2, 3]})
        value = cache.get("my_key")  # returns dict or None if expired/missing
    """

    def __init__(self, maxsize: int = 128, ttl_seconds: float = 300.0,
                 clock: Callable[[], float] = time.monotonic) -> None:
        """Initialise the cache.

        Args:
            maxsize: Maximum number of entries to store (default 128).
            ttl_seconds: Seconds before a cached entry expires (default 300).
            clock: Monotonic time source (injectable for tests).
        """
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        self._clock = clock
        # Maps key -> (value, expires_at)
        self._store: dict[Any, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Any) -> Any | None:
        """Return cached value for *key*, or ``None`` if absent or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            value, expires_at = entry
            if self._clock() > expires_at:
                del self._store[key]
                self._misses += 1
                return None
            self._hits += 1
            return value

    def set(self, key: Any, value: Any) -> None:
        """Store *value* under *key* with the configured TTL.

        If the cache is full, the entry with the earliest expiry is evicted
        before inserting the new one.
        """
        expires_at = self._clock() + self._ttl
        with self._lock:
            if key not in self._store and len(self._store) >= self._maxsize:
                oldest_key = min(self._store, key=lambda k: self._store[k][1])
                del self._store[oldest_key]
            self._store[key] = (value, expires_at)

    def get_or_compute(self, key: Any, compute: Callable[[], Any]) -> Any:
        """Return the cached value for *key*, computing and storing it on a miss.

        ``compute`` runs outside the lock; two concurrent misses may both
        compute, and the last one stored wins.
        """
        value = self.get(key)
        if value is None:
            value = compute()
            self.set(key, value)
        return value

    def clear(self) -> None:
        """Remove all entries from the cache."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int]:
        """Return cache statistics.

        Returns:
            Dict with keys ``hits``, ``misses``, and ``size``.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, exp) in self._store.items() if now > exp]
            for k in expired:
                del self._store[k]
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._store),
            }

    def delete(self, key: Any) -> None:
        """Remove a single entry from the cache (no-op if not present)."""
        with self._lock:
            self._store.pop(key, None)
