"""
Tests for the bounded undo/redo history.
"""

import pytest

from flow_assist.core.history import HistoryManager
from flow_assist.core.types import FlowDocument


def flow_titled(title: str) -> FlowDocument:
    return FlowDocument(id="flow-1", title=title)


class TestHistoryManager:
    """Cursor movement, pruning and eviction."""

    def test_empty_history(self):
        """A new history can neither undo nor redo."""
        history = HistoryManager()
        assert history.size == 0
        assert history.position == -1
        assert not history.can_undo
        assert not history.can_redo
        assert history.undo() is None
        assert history.redo() is None
        assert history.current_snapshot is None

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            HistoryManager(capacity=0)

    def test_snapshot_is_deep_copy(self):
        """Mutating the flow after a snapshot does not change the snapshot."""
        history = HistoryManager()
        flow = flow_titled("A")
        snapshot = history.add_snapshot(flow, "first")
        flow.title = "changed"
        assert snapshot.flow.title == "A"

    def test_undo_redo_walk(self):
        history = HistoryManager()
        for title in ("A", "B", "C"):
            history.add_snapshot(flow_titled(title), title)

        assert history.position == 2
        assert history.at_tail
        assert history.previous_label == "B"
        assert history.undo().flow.title == "B"
        assert history.undo().flow.title == "A"
        assert history.undo() is None
        assert history.next_label == "B"
        assert history.redo().flow.title == "B"
        assert history.redo().flow.title == "C"
        assert history.redo() is None

    def test_new_snapshot_discards_redo_branch(self):
        """Adding after an undo drops everything past the cursor."""
        history = HistoryManager()
        for title in ("A", "B", "C"):
            history.add_snapshot(flow_titled(title), title)
        history.undo()
        history.undo()

        history.add_snapshot(flow_titled("D"), "D")

        assert history.size == 2
        assert not history.can_redo
        assert history.last_label == "D"
        assert history.undo().label == "A"

    def test_capacity_evicts_oldest(self):
        """With capacity 3, the fourth snapshot evicts the first and the cursor stays on the newest."""
        history = HistoryManager(capacity=3)
        for title in ("A", "B", "C", "D"):
            history.add_snapshot(flow_titled(title), title)

        assert history.size == 3
        assert history.position == 2
        assert history.current_snapshot.label == "D"
        labels = []
        while history.can_undo:
            labels.append(history.undo().label)
        assert labels == ["C", "B"]

    def test_clear(self):
        history = HistoryManager()
        history.add_snapshot(flow_titled("A"), "A")
        history.clear()
        assert history.size == 0
        assert history.last_label is None
