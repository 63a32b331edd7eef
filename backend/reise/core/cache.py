"""
Key/value cache with per-entry TTL.

Components that used to keep module-level dicts (geocode results, flight
search sessions) take a ``CacheStore`` instead, so tests can pass a fake
clock and production can swap in a shared cache.
"""

import time
import threading
from typing import Any, Callable, Dict, Optional, Protocol, Tuple


class CacheStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryTTLCache:
    """In-process ``CacheStore``. Expired entries are dropped lazily on read."""

    def __init__(
        self,
        default_ttl: float = 3600,
        max_entries: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._data: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._data[key]
                return default
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            if key not in self._data and len(self._data) >= self.max_entries:
                self._evict()
            self._data[key] = (self._clock() + ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)

    def _evict(self) -> None:
        now = self._clock()
        expired = [k for k, (exp, _) in self._data.items() if exp <= now]
        for k in expired:
            del self._data[k]
        # still full: drop the entry closest to expiry
        if len(self._data) >= self.max_entries:
            oldest = min(self._data, key=lambda k: self._data[k][0])
            del self._data[oldest]
