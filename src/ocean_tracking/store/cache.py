from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

from cachetools import TLRUCache

V = TypeVar("V")

DEFAULT_MAX_ENTRIES = 10_000


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    expires_at: float
    written_at: float = 0.0


def _entry_expiry(_key, entry: CacheEntry, _now: float) -> float:
    return entry.expires_at


class ResultCache(Generic[V]):
    """Thread-safe, size-bounded TTL map with an optional per-entry TTL.

    Backed by a cachetools TLRUCache: expired entries are purged on every
    write, and the least recently used entry goes first when full.
    """

    def __init__(
        self,
        ttl_seconds: float = 15 * 60,
        *,
        maxsize: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = float(ttl_seconds)
        self.maxsize = maxsize
        self._clock = clock
        self._lock = threading.Lock()
        self._data: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=clock)

    def _entry(self, key: Hashable) -> Optional[CacheEntry[V]]:
        try:
            return self._data[key]
        except KeyError:
            return None

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            entry = self._entry(key)
        return None if entry is None else entry.value

    def set(self, key: Hashable, value: V, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else float(ttl_seconds)
        with self._lock:
            now = self._clock()
            self._data[key] = CacheEntry(value, now + ttl, now)

    def age_seconds(self, key: Hashable) -> Optional[float]:
        """Seconds since `key` was written, or None when absent/expired."""
        with self._lock:
            entry = self._entry(key)
            if entry is None:
                return None
            return self._clock() - entry.written_at

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            self._data.expire()
            return len(self._data)
