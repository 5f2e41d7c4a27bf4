"""
Single-text rewriting (improve, formal, casual, expand, simplify).
"""

import logging
from enum import Enum

from pydantic import BaseModel

from .errors import AIServiceError, ErrorKind
from .llm_handler import LLMHandler

logger = logging.getLogger(__name__)

IMPROVEMENT_SERVICE = "Text improvement"


class ImprovementTask(str, Enum):
    IMPROVE = "improve"
    FORMAL = "formal"
    CASUAL = "casual"
    EXPAND = "expand"
    SIMPLIFY = "simplify"


class ImprovedText(BaseModel):
    original: str
    improved: str
    task: ImprovementTask
    model: str


def build_improvement_prompt(text: str, task: ImprovementTask) -> str:
    if task == ImprovementTask.FORMAL:
        return f"""Rewrite the following text in a more formal and professional tone while keeping the same meaning. Only return the rewritten text, nothing else.

Text: "{text}"

Formal version:"""
    if task == ImprovementTask.CASUAL:
        return f"""Rewrite the following text in a more casual and friendly tone while keeping the same meaning. Only return the rewritten text, nothing else.

Text: "{text}"

Casual version:"""
    if task == ImprovementTask.EXPAND:
        return f"""Expand the following short text into a more detailed and complete sentence or paragraph while keeping the same core meaning. Only return the expanded text, nothing else.

Text: "{text}"

Expanded version:"""
    if task == ImprovementTask.SIMPLIFY:
        return f"""Simplify the following text to make it clearer and easier to understand while keeping the same meaning. Only return the simplified text, nothing else.

Text: "{text}"

Simplified version:"""
    return f"""Improve the following text by making it more grammatically correct, complete, and natural while keeping the same meaning. Only return the improved text, nothing else.

Examples:
- "open door" → "open the door"
- "remove switch add cable" → "remove the switch and add a new cable"
- "check if work" → "check if it works"
- "send email client" → "send an email to the client"

Text to improve: "{text}"

Improved text:"""


def strip_quotes(text: str) -> str:
    """Remove one pair of matching surrounding quotes."""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ('"', "'"):
        return text[1:-1]
    return text


class TextImprover:
    """Rewrites short texts such as step descriptions."""

    def __init__(self, llm: LLMHandler):
        self.llm = llm

    def improve(self, text: str, task: ImprovementTask = ImprovementTask.IMPROVE) -> ImprovedText:
        """
        Rewrite ``text`` according to ``task``.

        Raises:
            AIServiceError: For empty input, an empty reply or a provider failure
        """
        if not text or not text.strip():
            raise AIServiceError(ErrorKind.INVALID_INPUT, "Text cannot be empty")

        content = self.llm.complete_text(
            None,
            build_improvement_prompt(text, task),
            request_type="improvement",
            service=IMPROVEMENT_SERVICE,
            max_tokens=100,
        )
        improved = strip_quotes(content)
        if not improved:
            raise AIServiceError(ErrorKind.UNKNOWN, "No improved text generated")

        logger.debug(f"Improved text ({task.value}): {text!r} -> {improved!r}")
        return ImprovedText(original=text, improved=improved, task=task, model=self.llm.config.llm_model)
