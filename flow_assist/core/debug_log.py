"""
Debug trace logging for provider round trips and operation execution.

When enabled, every request sent to the model, every response received and
every executed tool call is written as a JSON file under
``{project_root}/.flow_assist/debug/session_<timestamp>/``.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


def is_debug_enabled() -> bool:
    """
    Check if debug logging is enabled via environment variable.

    Returns:
        True if FA_DEBUG=1 is set
    """
    return os.getenv("FA_DEBUG", "0") == "1"


class DebugLogger:
    """
    Writes JSON traces for one editing session.

    Args:
        project_root: Directory under which ``.flow_assist/debug`` is created
        enabled: Override debug enable flag, uses FA_DEBUG env var if None
    """

    def __init__(self, project_root: str = ".", enabled: Optional[bool] = None):
        self.project_root = project_root
        self.enabled = enabled if enabled is not None else is_debug_enabled()
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.session_dir: Optional[Path] = None

        if self.enabled:
            self._setup_log_directory()

    def _setup_log_directory(self) -> None:
        log_dir = Path(self.project_root) / ".flow_assist" / "debug"
        self.session_dir = log_dir / f"session_{self.session_id}"
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def is_enabled(self) -> bool:
        return self.enabled

    def _write(self, step: str, payload: Dict[str, Any]) -> None:
        if not self.enabled or self.session_dir is None:
            return

        timestamp = datetime.now().isoformat()
        log_data = {"timestamp": timestamp, "session_id": self.session_id, "step": step, **payload}

        filename = f"{step}_{timestamp.replace(':', '-').replace('.', '_')}.json"
        with open(self.session_dir / filename, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2, ensure_ascii=False, default=str)

    def log_llm_request(self, request_type: str, messages: List[Dict[str, Any]], tools_count: int = 0) -> None:
        """
        Log a chat completion request.

        Args:
            request_type: Kind of request (command, narration, translation, improvement)
            messages: Messages sent to the model
            tools_count: Number of tool definitions offered
        """
        self._write(
            "llm_request",
            {"type": request_type, "messages": messages, "messages_count": len(messages), "tools_count": tools_count},
        )

    def log_llm_response(self, request_type: str, content: Optional[str], tool_calls: Optional[List[Dict[str, Any]]] = None) -> None:
        self._write(
            "llm_response",
            {"type": request_type, "content": content, "tool_calls": tool_calls or [], "tool_calls_count": len(tool_calls or [])},
        )

    def log_tool_execution(self, name: str, arguments: Any, result: Dict[str, Any]) -> None:
        """Log one executed operation with its raw arguments and its result."""
        self._write("tool_execution", {"name": name, "arguments": arguments, "result": result})

    def log_error(self, context: str, error: Exception) -> None:
        self._write(
            f"{context}_error",
            {"error": str(error), "error_type": type(error).__name__, "details": getattr(error, "details", None)},
        )
