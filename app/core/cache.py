"""Bounded in-process cache with least-recently-used eviction and TTL expiry."""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

ADDRESS_KEY_PREFIX = "addr:"
COORDINATE_KEY_PREFIX = "coord:"


@dataclass
class CacheEntry(Generic[K, V]):
    """A cached value and the time it was last written."""

    key: K
    value: V
    timestamp: float


class TTLCache(Generic[K, V]):
    """Fixed-capacity cache with LRU eviction and per-entry expiry.

    Entries are kept in an ``OrderedDict`` whose last position is the most
    recently used. Expiry is enforced lazily on ``get`` and actively by
    ``clean_expired``.
    """

    def __init__(
        self,
        capacity: int = 100,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries
            ttl_seconds: Age after which an entry is considered expired
            clock: Monotonic time source, injectable for tests
        """
        if capacity <= 0:
            raise ValueError("Cache capacity must be positive")
        self.capacity = capacity
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[K, CacheEntry[K, V]] = OrderedDict()

    def _is_expired(self, entry: CacheEntry[K, V], now: float) -> bool:
        return now - entry.timestamp > self.ttl

    def get(self, key: K) -> V | None:
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            return None

        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: K, value: V) -> None:
        """Insert or refresh an entry, evicting the LRU entry on overflow."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            entry.value = value
            entry.timestamp = now
            self._entries.move_to_end(key)
            return

        self._entries[key] = CacheEntry(key=key, value=value, timestamp=now)
        if len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted least recently used cache entry: {evicted}")

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def size(self) -> int:
        """Number of entries currently held, expired or not."""
        return len(self._entries)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def clean_expired(self) -> int:
        """Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items() if self._is_expired(entry, now)
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cleaned {len(expired)} expired cache entries")
        return len(expired)

    def get_stats(self) -> dict[str, float]:
        """Size, capacity and utilization percentage."""
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "utilization": len(self._entries) / self.capacity * 100,
        }


def generate_geocache_key(
    address: str | None = None,
    lat: float | None = None,
    lng: float | None = None,
) -> str:
    """Build a cache key for a forward or reverse geocoding lookup.

    Address keys are lowercased and whitespace-collapsed; coordinate keys are
    rounded to 5 decimal places (about 1.1m). The two prefixes never collide.

    Raises:
        ValueError: If neither an address nor a coordinate pair is supplied
    """
    if address:
        return ADDRESS_KEY_PREFIX + " ".join(address.lower().split())
    if lat is not None and lng is not None:
        return f"{COORDINATE_KEY_PREFIX}{lat:.5f},{lng:.5f}"
    raise ValueError("Invalid cache key parameters")
