from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

LOGGER = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_BYTE_LIMIT = 50 * 1024 * 1024
DEFAULT_COUNT_LIMIT = 100


@dataclass(slots=True)
class _MemoryEntry:
    value: object
    cost: int


class MemoryStore(Generic[V]):
    """Process-wide LRU cache bounded by total cost and entry count.

    Recency is access order: a ``get`` hit moves the entry to the most
    recently used end. All methods take the internal lock, so the store can
    be shared between the event loop and worker threads.
    """

    def __init__(
        self,
        *,
        byte_limit: int = DEFAULT_BYTE_LIMIT,
        count_limit: int = DEFAULT_COUNT_LIMIT,
    ) -> None:
        self._byte_limit = max(1, int(byte_limit))
        self._count_limit = max(1, int(count_limit))
        self._items: OrderedDict[str, _MemoryEntry] = OrderedDict()
        self._total_cost = 0
        self._lock = threading.Lock()

    @property
    def byte_limit(self) -> int:
        return self._byte_limit

    @property
    def count_limit(self) -> int:
        return self._count_limit

    @property
    def total_cost(self) -> int:
        with self._lock:
            return self._total_cost

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return None
            self._items.move_to_end(key)
            return entry.value

    def put(self, key: str, value: V, cost: int) -> bool:
        cost = max(0, int(cost))
        with self._lock:
            existing = self._items.pop(key, None)
            if existing is not None:
                self._total_cost -= existing.cost
            if cost > self._byte_limit:
                LOGGER.debug("Skipping %s: cost %d exceeds budget %d", key, cost, self._byte_limit)
                return False
            evicted = self._evict_for(cost)
            self._items[key] = _MemoryEntry(value=value, cost=cost)
            self._total_cost += cost
        if evicted:
            LOGGER.debug("Evicted %d entries from memory cache", evicted)
        return True

    def remove(self, key: str) -> bool:
        with self._lock:
            entry = self._items.pop(key, None)
            if entry is None:
                return False
            self._total_cost -= entry.cost
            return True

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._total_cost = 0

    def _evict_for(self, incoming_cost: int) -> int:
        evicted = 0
        while self._items and (
            len(self._items) + 1 > self._count_limit
            or self._total_cost + incoming_cost > self._byte_limit
        ):
            _key, entry = self._items.popitem(last=False)
            self._total_cost -= entry.cost
            evicted += 1
        return evicted
