"""
Chat editing session for one flow.

Holds the conversation sent with every turn, the snapshot history and the
pending-changes flag, and applies undo/redo to the live flow.
"""

import logging
from typing import List, Optional

from .debug_log import DebugLogger
from .errors import AIServiceError
from .history import HistoryManager
from .interpreter import CommandInterpreter
from .llm_handler import LLMHandler
from .store import FlowStore
from .types import ChatMessage, FlowDocument, Snapshot, TurnResult

logger = logging.getLogger(__name__)

CURRENT_STATE_LABEL = "Current state"


def _same_content(a: FlowDocument, b: FlowDocument) -> bool:
    return a.model_dump(exclude={"id"}) == b.model_dump(exclude={"id"})


class ChatSession:
    """
    Conversation-driven editing of a single flow.

    Args:
        flow: Live flow, mutated in place by turns, undo and redo
        llm: Handler used by the command interpreter
        store: Persistence collaborator; the flow is saved after every change
        history: Snapshot history (a new one with default capacity if None)
        debug_logger: Optional JSON trace logger
    """

    def __init__(
        self,
        flow: FlowDocument,
        llm: LLMHandler,
        store: FlowStore,
        history: Optional[HistoryManager] = None,
        debug_logger: Optional[DebugLogger] = None,
    ):
        self.flow = flow
        self.store = store
        self.history = history if history is not None else HistoryManager()
        self.interpreter = CommandInterpreter(llm, store, self.history, debug_logger)
        self.conversation: List[ChatMessage] = []
        self.pending_changes = False

    def send(self, text: str) -> TurnResult:
        """
        Process one user instruction.

        The exchange is added to the conversation only when the turn completed.

        Raises:
            AIServiceError: Propagated from the interpreter; changes applied before
                            the failure still mark the session as pending
        """
        try:
            result = self.interpreter.process(text, self.flow, self.conversation)
        except AIServiceError:
            if self.interpreter.changes_applied:
                self.pending_changes = True
            raise
        if result.success:
            self.conversation.append(ChatMessage(role="user", content=text))
            self.conversation.append(ChatMessage(role="assistant", content=result.message))
        if result.changes_applied:
            self.pending_changes = True
        return result

    @property
    def can_undo(self) -> bool:
        current = self.history.current_snapshot
        if self.history.at_tail and current is not None and not _same_content(current.flow, self.flow):
            return True
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    @property
    def undo_description(self) -> Optional[str]:
        """Label of the state an undo would restore."""
        current = self.history.current_snapshot
        if self.history.at_tail and current is not None and not _same_content(current.flow, self.flow):
            return current.label
        return self.history.previous_label

    @property
    def redo_description(self) -> Optional[str]:
        return self.history.next_label

    def undo(self) -> Optional[Snapshot]:
        """
        Restore the most recent snapshot that differs from the live flow.

        When undoing from the newest snapshot, the live flow is recorded first
        as "Current state" so that redo can return to it.

        Returns:
            The restored snapshot, or None if there is nothing to undo
        """
        current = self.history.current_snapshot
        if self.history.at_tail and current is not None and not _same_content(current.flow, self.flow):
            self.history.add_snapshot(self.flow, CURRENT_STATE_LABEL)

        snapshot = self.history.undo()
        while snapshot is not None and _same_content(snapshot.flow, self.flow):
            snapshot = self.history.undo()
        if snapshot is None:
            return None

        self._restore(snapshot)
        self.pending_changes = False
        return snapshot

    def redo(self) -> Optional[Snapshot]:
        """Re-apply the next snapshot that differs from the live flow, if any."""
        snapshot = self.history.redo()
        while snapshot is not None and _same_content(snapshot.flow, self.flow):
            snapshot = self.history.redo()
        if snapshot is None:
            return None

        self._restore(snapshot)
        self.pending_changes = True
        return snapshot

    def keep_changes(self) -> None:
        """Accept the pending changes."""
        self.pending_changes = False

    def clear(self) -> None:
        """End the session: forget the conversation and the history."""
        self.conversation.clear()
        self.history.clear()
        self.pending_changes = False

    def _restore(self, snapshot: Snapshot) -> None:
        self.flow.restore_from(snapshot.flow)
        self.store.save(self.flow)
        logger.info(f"Restored snapshot: {snapshot.label}")
