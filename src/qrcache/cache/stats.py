"""Per-tier lookup counters for the image cache.

Each lookup in :class:`~qrcache.cache.orchestrator.ImageCache` records one
outcome per tier it consults: a memory hit stops there, a disk hit records a
memory miss first, and a download records misses on both local tiers.
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of one tier's counters."""

    hits: int = 0
    misses: int = 0

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups served by the tier; 0.0 before any lookup."""
        return self.hits / self.total if self.total else 0.0


class CacheStatsCollector:
    """Lock-guarded hit and miss tallies keyed by tier name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Counter[tuple[str, bool]] = Counter()

    def record_hit(self, tier: str) -> None:
        self._record(tier, True)

    def record_miss(self, tier: str) -> None:
        self._record(tier, False)

    def get(self, tier: str) -> CacheStats:
        with self._lock:
            return self._snapshot(tier)

    def as_dict(self) -> dict[str, dict[str, int]]:
        """JSON-ready counters for every tier seen so far, sorted by name."""
        with self._lock:
            tiers = sorted({tier for tier, _ in self._counts})
            result = {}
            for tier in tiers:
                snap = self._snapshot(tier)
                result[tier] = {"hits": snap.hits, "misses": snap.misses}
            return result

    def _record(self, tier: str, hit: bool) -> None:
        with self._lock:
            self._counts[(tier, hit)] += 1

    def _snapshot(self, tier: str) -> CacheStats:
        return CacheStats(hits=self._counts[(tier, True)], misses=self._counts[(tier, False)])
