"""
Bounded LRU cache with optional TTL.

Used to memoize card lookups and provider responses. Expiry is checked
lazily on access; `cleanup()` sweeps expired entries on demand.

INVARIANTS:
- len(cache) <= max_entries at all times
- A successful get() or any set() makes the key most recently used
- Inserting a new key at capacity evicts exactly one entry, the least
  recently used
- All operations are serialized by an internal lock
"""

import time
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass
from threading import Lock
from typing import Any, Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class _Missing:
    """Sentinel type for "no cached value" (a cached None is a value)."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    value: V
    inserted_at: float


class LRUCache(Generic[K, V]):
    """
    Thread-safe least-recently-used cache.

    Args:
        max_entries: Capacity, at least 1
        ttl: Seconds an entry stays valid after set(); None disables expiry
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        max_entries: int,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be positive")
        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[K, CacheEntry[V]] = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def _expired(self, entry: CacheEntry[V], now: float) -> bool:
        return self.ttl is not None and now - entry.inserted_at > self.ttl

    def get(self, key: K, default: Any = None) -> V | Any:
        """
        Return the cached value, or `default` if absent or expired.

        Expired entries are evicted by the lookup.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return default

            if self._expired(entry, self._clock()):
                del self._entries[key]
                self.misses += 1
                return default

            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def set(self, key: K, value: V) -> None:
        """Insert or replace a value, evicting the LRU entry when full."""
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
            self._entries[key] = CacheEntry(value=value, inserted_at=self._clock())

    def delete(self, key: K) -> bool:
        """Remove a key. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        """Number of stored entries, expired ones included until touched."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        """Membership test that neither promotes nor evicts."""
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[call-overload]
            return entry is not None and not self._expired(entry, self._clock())

    def cleanup(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed (always 0 without a TTL)
        """
        if self.ttl is None:
            return 0

        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if self._expired(e, now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def keys(self) -> Iterator[K]:
        """Snapshot of keys, least recently used first."""
        with self._lock:
            return iter(list(self._entries.keys()))

    def values(self) -> Iterator[V]:
        """Snapshot of values, least recently used first."""
        with self._lock:
            return iter([e.value for e in self._entries.values()])

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self.hits,
                "misses": self.misses,
            }
