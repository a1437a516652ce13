"""
In-memory LRU cache for hot vectors.

A read-through accelerator in front of the durable store: the vector database
refreshes or removes entries in the same write step as the store mutation, so
a hit always equals the stored value.
"""

import logging
import threading
from collections import OrderedDict
from typing import Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """
    Fixed-capacity cache evicting the least-recently-used entry first.

    Both get() and set() promote the entry. Safe to use from worker threads.
    """

    def __init__(self, capacity: int = 1000):
        """
        Initialize the cache.

        Args:
            capacity: Maximum number of entries (must be positive)
        """
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")

        self._capacity = capacity
        self._entries: "OrderedDict[K, V]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

        logger.debug(f"LRUCache initialized (capacity={capacity})")

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: K) -> Optional[V]:
        """Return the cached value and mark it most recently used."""
        with self._lock:
            if key not in self._entries:
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return self._entries[key]

    def set(self, key: K, value: V) -> None:
        """Insert or overwrite an entry and mark it most recently used."""
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)

            while len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted {evicted} from cache")

    def remove(self, key: K) -> None:
        """Drop an entry if present."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        # Membership checks do not promote
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_metrics(self) -> dict:
        """Hit/miss counters for diagnostics."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "cache_size": len(self._entries),
                "cache_capacity": self._capacity,
                "cache_hits": self._hits,
                "cache_misses": self._misses,
                "cache_hit_rate_percent": (
                    round(self._hits / lookups * 100, 2) if lookups else 0.0
                ),
            }
