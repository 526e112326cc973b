"""Bounded dedup window over event transaction hashes."""

from __future__ import annotations

from collections import deque
from typing import Iterable


class DedupWindow:
    """Insertion-ordered record of recently seen event ids.

    A FIFO queue fixes eviction order and a set answers membership; the two
    always hold the same ids. Eviction is size-triggered only: once more
    than ``capacity`` ids are admitted, the oldest admitted go first.
    """

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._order: deque[str] = deque()
        self._members: set[str] = set()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._members

    def is_new(self, event_id: str) -> bool:
        return event_id not in self._members

    def admit(self, event_id: str) -> None:
        """Insert ``event_id`` if absent, evicting the oldest ids over capacity."""
        if event_id in self._members:
            return
        self._order.append(event_id)
        self._members.add(event_id)
        while len(self._order) > self._capacity:
            self._members.discard(self._order.popleft())

    def filter_new(self, event_ids: Iterable[str]) -> list[str]:
        """Return the unseen ids of a batch, admitting them in batch order.

        Candidates are checked against the window as it stood before the
        batch; repeats inside the batch are reported once.
        """
        accepted: list[str] = []
        batch_seen: set[str] = set()
        for event_id in event_ids:
            if event_id in batch_seen or not self.is_new(event_id):
                continue
            batch_seen.add(event_id)
            accepted.append(event_id)
        for event_id in accepted:
            self.admit(event_id)
        return accepted

    def snapshot(self) -> list[str]:
        """Current ids, oldest first."""
        return list(self._order)

    def clear(self) -> None:
        self._order.clear()
        self._members.clear()
