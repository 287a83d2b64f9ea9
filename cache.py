from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """Read-through store with a fixed time-to-live and an LRU size bound.

    Expired entries are dropped on access and swept out on every ``set``.
    Once ``maxsize`` live entries are held, the least recently used one is
    evicted. ``clock`` is injectable so expiry can be driven deterministically
    in tests.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        maxsize: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if maxsize < 1:
            raise ValueError(f"maxsize must be at least 1, got {maxsize}")
        self.ttl_seconds = ttl_seconds
        self.maxsize = maxsize
        self._clock = clock
        self._entries: OrderedDict[Hashable, CacheEntry[T]] = OrderedDict()
        self._lock = threading.Lock()

    def _live_entry(self, key: Hashable) -> Optional[CacheEntry[T]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry

    def _purge_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get(self, key: Hashable) -> Optional[T]:
        with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry is not None else None

    def has(self, key: Hashable) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def set(self, key: Hashable, value: T) -> None:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._entries[key] = CacheEntry(value=value, expires_at=now + self.ttl_seconds)
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    def invalidate(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def cleanup_expired(self) -> int:
        """Remove every expired entry and return how many were dropped."""
        with self._lock:
            return self._purge_expired(self._clock())

    def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], T],
        should_cache: Optional[Callable[[T], bool]] = None,
    ) -> T:
        """Return the cached value or call ``loader``; loader errors propagate.

        The loader runs outside the lock, so two threads missing the same key
        may both load it.
        """
        with self._lock:
            entry = self._live_entry(key)
            if entry is not None:
                return entry.value
        value = loader()
        if should_cache is None or should_cache(value):
            self.set(key, value)
        return value

    def stored(self) -> int:
        """Number of entries held, expired ones included."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for entry in self._entries.values() if entry.expires_at > now)

    def __contains__(self, key: Hashable) -> bool:
        return self.has(key)
