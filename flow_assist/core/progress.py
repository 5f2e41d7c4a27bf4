"""
Global progress reporting for Flow Assist.

A single reporter drives a rich status spinner so that long-running work
(model round trips, translation, speech batches) can report steps without
passing console objects around.
"""

from typing import List, Optional

from rich.console import Console
from rich.status import Status


class ProgressReporter:
    """
    Status spinner with completed-step checkmarks.

    Calls made before ``initialize`` (or outside the CLI) are no-ops.
    """

    def __init__(self):
        self._status: Optional[Status] = None
        self._console: Optional[Console] = None
        self._completed_steps: List[str] = []
        self._current_step: Optional[str] = None

    def initialize(self, console: Console, initial_message: str = "Starting...") -> Status:
        """
        Bind the reporter to a console and create the status object.

        Args:
            console: Rich console instance
            initial_message: Initial status message

        Returns:
            Status object that should be used in a context manager
        """
        self._console = console
        self._status = console.status(f"[dim]{initial_message}[/dim]")
        self._completed_steps = []
        self._current_step = initial_message
        return self._status

    def step(self, message: str) -> None:
        """Mark the current step completed and show ``message`` as the new one."""
        if self._status is None:
            return
        self.complete_step()
        self._current_step = message
        self._status.update(f"[dim]{message}[/dim]")

    def complete_step(self, message: Optional[str] = None) -> None:
        if self._current_step is None:
            return
        completion_msg = message or self._current_step
        self._completed_steps.append(completion_msg)
        if self._console is not None:
            self._console.print(f"[green]✓[/green] [dim]{completion_msg}[/dim]")
        self._current_step = None

    def sub_step(self, message: str, current: int = 0, total: int = 0) -> None:
        """Update the spinner text without completing the current step."""
        if self._status is None:
            return
        progress_msg = f"{message} ({current}/{total})" if current > 0 and total > 0 else message
        self._status.update(f"[dim]{progress_msg}[/dim]")

    def reset(self) -> None:
        self._status = None
        self._console = None
        self._completed_steps = []
        self._current_step = None


# Global reporter instance
reporter = ProgressReporter()
