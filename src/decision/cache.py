# src/decision/cache.py
"""
Decision cache keyed by normalized context hash.

Guarantees:
  - an entry older than `expiry` seconds is never returned (it is evicted on
    lookup instead);
  - at most `max_entries` entries; inserting past the bound evicts the
    oldest insertion first.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass
class CachedDecision:
    decision: Dict[str, Any]
    inserted_at: float


class DecisionCache:
    def __init__(
        self,
        *,
        expiry: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.expiry = float(expiry)
        self.max_entries = int(max_entries)
        self._clock = clock
        self._entries: "OrderedDict[str, CachedDecision]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key, count=False) is not None

    def get(self, key: str, *, count: bool = True) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.inserted_at >= self.expiry:
            del self._entries[key]
            entry = None
        if count:
            if entry is None:
                self.misses += 1
            else:
                self.hits += 1
        return dict(entry.decision) if entry is not None else None

    def put(self, key: str, decision: Dict[str, Any]) -> None:
        # Re-inserting refreshes both timestamp and eviction order.
        self._entries.pop(key, None)
        self._entries[key] = CachedDecision(decision=dict(decision), inserted_at=self._clock())
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def purge_expired(self) -> int:
        now = self._clock()
        stale = [k for k, e in self._entries.items() if now - e.inserted_at >= self.expiry]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._entries),
            "max_entries": self.max_entries,
            "expiry": self.expiry,
            "hits": self.hits,
            "misses": self.misses,
        }
