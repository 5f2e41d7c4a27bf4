"""
Command interpreter: natural language to flow operations.

One user turn is a two-phase round trip with the model:

1. The model receives the system prompt (with the flow outline), the prior
   conversation, the user text and the operation catalog as tools, and
   answers with text or with tool calls.
2. Tool calls are executed in the order received; their results go back to
   the model, which narrates what was done.

The round trip is an explicit state machine so callers and tests can observe
where a turn stopped.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .debug_log import DebugLogger
from .errors import AIServiceError
from .executor import OperationExecutor
from .history import HistoryManager
from .llm_handler import LLMHandler, message_to_payload
from .operations import tool_schemas
from .outline import build_system_prompt
from .store import FlowStore, StoreError
from .types import ChatMessage, FlowDocument, OperationResult, TurnResult

logger = logging.getLogger(__name__)

NO_CHANGES_FALLBACK = "I understand. How can I help you modify this flow?"
CHANGES_FALLBACK = "Changes applied successfully."
SNAPSHOT_LABEL_PREFIX = "Before AI changes: "


class InterpreterState(str, Enum):
    """Stages of one command turn."""

    IDLE = "idle"
    AWAITING_TOOL_SELECTION = "awaiting_tool_selection"
    EXECUTING_OPERATIONS = "executing_operations"
    AWAITING_NARRATION = "awaiting_narration"
    DONE = "done"
    FAILED = "failed"


class CommandInterpreter:
    """
    Drives one command turn against a flow.

    Args:
        llm: Handler used for both provider requests of a turn
        store: Persistence collaborator; the flow is saved after a turn with
               at least one successful operation
        history: Snapshot history; a "before" snapshot is taken once per
                 turn that has tool calls
        debug_logger: Optional JSON trace logger passed to the executor
    """

    def __init__(
        self,
        llm: LLMHandler,
        store: FlowStore,
        history: Optional[HistoryManager] = None,
        debug_logger: Optional[DebugLogger] = None,
    ):
        self.llm = llm
        self.store = store
        self.history = history
        self.debug_logger = debug_logger
        self.state = InterpreterState.IDLE
        self.transitions: List[Tuple[InterpreterState, InterpreterState]] = []
        # True once an operation of the current turn succeeded, also when the turn later fails
        self.changes_applied = False

    def _transition(self, new_state: InterpreterState) -> None:
        logger.info(f"Interpreter: {self.state.value} -> {new_state.value}")
        self.transitions.append((self.state, new_state))
        self.state = new_state

    def _reset(self) -> None:
        self.state = InterpreterState.IDLE
        self.transitions = []
        self.changes_applied = False

    def process(self, text: str, flow: FlowDocument, conversation: Sequence[ChatMessage] = ()) -> TurnResult:
        """
        Interpret ``text`` and apply the resulting operations to ``flow``.

        Args:
            text: The user's instruction
            flow: Flow to mutate in place
            conversation: Prior turns, oldest first

        Returns:
            TurnResult with the model's narration and the per-operation action log

        Raises:
            AIServiceError: If either provider request fails; operations already
                            applied stay applied
            StoreError: If saving the changed flow fails
        """
        self._reset()

        if not text or not text.strip():
            return TurnResult(success=False, message="Please enter an instruction.")

        base_messages: List[Dict[str, Any]] = [
            {"role": "system", "content": build_system_prompt(flow)},
            *[message.to_payload() for message in conversation],
            {"role": "user", "content": text},
        ]

        self._transition(InterpreterState.AWAITING_TOOL_SELECTION)
        try:
            reply = self.llm.chat(base_messages, tools=tool_schemas(), request_type="command")
        except AIServiceError:
            self._transition(InterpreterState.FAILED)
            raise

        tool_calls = getattr(reply, "tool_calls", None) or []
        if not tool_calls:
            self._transition(InterpreterState.DONE)
            return TurnResult(success=True, message=(reply.content or "").strip() or NO_CHANGES_FALLBACK, changes_applied=False)

        self._transition(InterpreterState.EXECUTING_OPERATIONS)
        if self.history is not None:
            self.history.add_snapshot(flow, f"{SNAPSHOT_LABEL_PREFIX}{text}")

        executor = OperationExecutor(flow, self.store, self.debug_logger)
        results: List[OperationResult] = []
        tool_messages: List[Dict[str, Any]] = []
        for call in tool_calls:
            result = executor.execute_tool_call(call.function.name, call.function.arguments)
            results.append(result)
            tool_messages.append({"role": "tool", "tool_call_id": call.id, "content": result.result})

        applied = any(result.success for result in results)
        self.changes_applied = applied
        actions = [result.action for result in results]

        narration_messages = [
            {"role": "system", "content": build_system_prompt(flow)},
            *base_messages[1:],
            message_to_payload(reply),
            *tool_messages,
        ]

        self._transition(InterpreterState.AWAITING_NARRATION)
        try:
            narration = self.llm.chat(narration_messages, request_type="narration")
        except AIServiceError:
            self._transition(InterpreterState.FAILED)
            if applied:
                self.store.save(flow)
            raise

        if applied:
            try:
                self.store.save(flow)
            except StoreError:
                self._transition(InterpreterState.FAILED)
                raise

        self._transition(InterpreterState.DONE)
        return TurnResult(
            success=True,
            message=(narration.content or "").strip() or CHANGES_FALLBACK,
            actions=actions,
            changes_applied=True,
            operations=results,
        )
