# src/execution/queue.py
"""
Pending-action queue.

Highest priority first; equal priorities keep arrival order. Implemented as a
heap keyed on (-priority, sequence) so pops are O(log n) and stable.
"""

from __future__ import annotations

import heapq
import itertools
from typing import Iterator, List, Optional, Tuple

from contracts.types import Action


class ActionQueue:
    def __init__(self) -> None:
        self._heap: List[Tuple[int, int, Action]] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)

    def push(self, action: Action) -> None:
        heapq.heappush(self._heap, (-int(action.priority), next(self._seq), action))

    def pop(self) -> Optional[Action]:
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[2]

    def peek(self) -> Optional[Action]:
        return self._heap[0][2] if self._heap else None

    def clear(self) -> int:
        dropped = len(self._heap)
        self._heap.clear()
        return dropped

    def in_dispatch_order(self) -> List[Action]:
        """Pending actions in the order they will be dispatched."""
        return [entry[2] for entry in sorted(self._heap)]

    def __iter__(self) -> Iterator[Action]:
        return iter(self.in_dispatch_order())
