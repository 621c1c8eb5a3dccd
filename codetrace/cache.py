"""Process-lifetime result cache with insertion-order eviction.

The cache only ever short-circuits identical requests; every component must
behave the same with :class:`NullCache` in its place.
"""

from __future__ import annotations

import hashlib
import json
import threading
from typing import Any, Dict, Generic, Optional, TypeVar

V = TypeVar("V")


def cache_key(*parts: Any) -> str:
    """Stable hash of JSON-serialisable request parts."""
    payload = json.dumps(parts, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResultCache(Generic[V]):
    """Fixed-capacity cache evicting the oldest insertion (not LRU)."""

    def __init__(self, capacity: int = 1000) -> None:
        self.capacity = max(1, capacity)
        self._data: Dict[str, V] = {}
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "evictions": 0}

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            if key in self._data:
                self._stats["hits"] += 1
                return self._data[key]
            self._stats["misses"] += 1
            return None

    def set(self, key: str, value: V) -> None:
        with self._lock:
            if key not in self._data and len(self._data) >= self.capacity:
                oldest = next(iter(self._data))
                del self._data[oldest]
                self._stats["evictions"] += 1
            self._data[key] = value
            self._stats["sets"] += 1

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._stats = {"hits": 0, "misses": 0, "sets": 0, "evictions": 0}

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def stats(self) -> Dict[str, Any]:
        lookups = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / lookups * 100) if lookups else 0.0
        return {**self._stats, "size": len(self._data), "hit_rate": f"{hit_rate:.2f}%"}


class NullCache(ResultCache[V]):
    """Disabled cache: never stores, never hits."""

    def __init__(self) -> None:
        super().__init__(capacity=1)

    def get(self, key: str) -> Optional[V]:
        return None

    def set(self, key: str, value: V) -> None:
        return None
