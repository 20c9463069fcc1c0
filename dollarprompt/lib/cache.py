"""
Bounded in-memory cache for per-caller server state.

Entries are kept in least-recently-used order. An entry is dropped once it
has not been touched for ttl_seconds, and the oldest entries go first when
more than max_entries are held. Nothing here is authoritative: a dropped
entry is rebuilt on the caller's next request.
"""

import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, List, Optional, Tuple, TypeVar

V = TypeVar("V")


class BoundedCache(Generic[V]):
    def __init__(
        self,
        max_entries: int = 10_000,
        ttl_seconds: float = 3600.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._data: "OrderedDict[Hashable, Tuple[V, float]]" = OrderedDict()

    def __contains__(self, key: Hashable) -> bool:
        item = self._data.get(key)
        return item is not None and self._clock() - item[1] < self.ttl_seconds

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: Hashable) -> Optional[V]:
        """Value for key (marking it as recently used), or None."""
        item = self._data.get(key)
        if item is None:
            return None
        value, last_used = item
        now = self._clock()
        if now - last_used >= self.ttl_seconds:
            del self._data[key]
            return None
        self._data[key] = (value, now)
        self._data.move_to_end(key)
        return value

    def set(self, key: Hashable, value: V) -> List[V]:
        """Store value. Returns the values dropped to stay within bounds."""
        now = self._clock()
        self._data[key] = (value, now)
        self._data.move_to_end(key)
        return self._trim(now)

    def setdefault(self, key: Hashable, factory: Callable[[], V]) -> V:
        value = self.get(key)
        if value is None:
            value = factory()
            self.set(key, value)
        return value

    def pop(self, key: Hashable) -> Optional[V]:
        item = self._data.pop(key, None)
        return item[0] if item else None

    def clear(self) -> List[V]:
        """Drop everything. Returns the dropped values."""
        values = [value for value, _ in self._data.values()]
        self._data.clear()
        return values

    def expire(self) -> List[V]:
        """Drop everything past its TTL. Returns the dropped values."""
        return self._trim(self._clock())

    def _trim(self, now: float) -> List[V]:
        dropped = []
        while self._data:
            key, (value, last_used) = next(iter(self._data.items()))
            if len(self._data) <= self.max_entries and now - last_used < self.ttl_seconds:
                break
            del self._data[key]
            dropped.append(value)
        return dropped
