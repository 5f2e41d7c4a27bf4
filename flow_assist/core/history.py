"""
Bounded undo/redo history of flow snapshots.

History is a linear list with a cursor pointing at the snapshot that
represents the current position. Adding a snapshot after an undo discards
everything past the cursor. Not thread-safe; a session is the single writer.
"""

import logging
from typing import List, Optional

from .types import FlowDocument, Snapshot

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


class HistoryManager:
    """
    Cursor-based snapshot stack with a fixed capacity.

    Args:
        capacity: Maximum number of snapshots kept; the oldest is evicted first
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._snapshots: List[Snapshot] = []
        self._cursor = -1

    def add_snapshot(self, flow: FlowDocument, label: str) -> Snapshot:
        """
        Record a deep copy of ``flow``.

        Snapshots after the cursor are dropped first; when the capacity is
        exceeded the oldest snapshot is evicted and the cursor shifted back.
        """
        if self._cursor < len(self._snapshots) - 1:
            dropped = len(self._snapshots) - 1 - self._cursor
            del self._snapshots[self._cursor + 1 :]
            logger.debug(f"Discarded {dropped} redo snapshot(s)")

        snapshot = Snapshot.from_flow(flow, label)
        self._snapshots.append(snapshot)
        self._cursor = len(self._snapshots) - 1

        if len(self._snapshots) > self.capacity:
            self._snapshots.pop(0)
            self._cursor -= 1

        return snapshot

    def undo(self) -> Optional[Snapshot]:
        """Move the cursor back and return the snapshot there, or None at the start."""
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._snapshots[self._cursor]

    def redo(self) -> Optional[Snapshot]:
        """Move the cursor forward and return the snapshot there, or None at the tail."""
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._snapshots[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._snapshots) - 1

    @property
    def size(self) -> int:
        return len(self._snapshots)

    @property
    def position(self) -> int:
        return self._cursor

    @property
    def at_tail(self) -> bool:
        return self._cursor == len(self._snapshots) - 1

    @property
    def current_snapshot(self) -> Optional[Snapshot]:
        if 0 <= self._cursor < len(self._snapshots):
            return self._snapshots[self._cursor]
        return None

    @property
    def last_label(self) -> Optional[str]:
        """Label of the newest snapshot."""
        return self._snapshots[-1].label if self._snapshots else None

    @property
    def previous_label(self) -> Optional[str]:
        """Label of the snapshot an undo would return."""
        return self._snapshots[self._cursor - 1].label if self.can_undo else None

    @property
    def next_label(self) -> Optional[str]:
        """Label of the snapshot a redo would return."""
        return self._snapshots[self._cursor + 1].label if self.can_redo else None

    def clear(self) -> None:
        self._snapshots.clear()
        self._cursor = -1
