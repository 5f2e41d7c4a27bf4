"""
Text outline of a flow.

The outline is sent to the model as part of the system prompt and returned
verbatim by the ``query_structure`` operation.
"""

from typing import List

from .types import FlowDocument, StepType

PREVIEW_LENGTH = 50


def preview_text(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Truncate ``text`` to ``length`` characters, adding an ellipsis when cut."""
    return f"{text[:length]}..." if len(text) > length else text


def render_structure(flow: FlowDocument, preview_length: int = PREVIEW_LENGTH) -> str:
    """
    Render sections and their steps in document order.

    Args:
        flow: Flow to render
        preview_length: Maximum characters of each step description

    Returns:
        One ``Section: <title>`` line per section followed by ``  - <step>``
        lines; check steps, timers and audio are flagged in brackets.
    """
    lines: List[str] = []
    for section in flow.sorted_sections():
        lines.append(f"Section: {section.title}")
        for step in flow.steps_in_section(section.id):
            flags = []
            if step.type == StepType.CHECK:
                flags.append("check")
            if step.timer_duration_minutes:
                flags.append(f"timer {step.timer_duration_minutes} min")
            if step.has_audio_asset:
                flags.append("audio")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            lines.append(f"  - {preview_text(step.description, preview_length)}{suffix}")
    return "\n".join(lines)


def build_system_prompt(flow: FlowDocument) -> str:
    """System prompt for the command interpreter, including the current outline."""
    structure = render_structure(flow) or "(empty flow)"
    return f"""You are an AI assistant that helps users modify their flows. A flow consists of sections, and each section contains steps.

Current flow information:
- Title: {flow.title}
- Description: {flow.description}
- Language: {flow.language}
- Number of sections: {len(flow.sections)}
- Total steps: {len(flow.steps)}

Current structure:
{structure}

You can help users:
- Add new sections
- Add steps to sections
- Rename sections and update step descriptions
- Delete sections or steps
- Update flow title, description, language or category
- Set timers on steps (in minutes)
- Change step types to "check" for quality control (adds OK/NOK buttons)
- Configure branching for check steps (what happens when user clicks OK or NOK)

IMPORTANT: When updating step descriptions, ALWAYS use the update_step_description or batch_update_steps tools. NEVER delete and recreate steps just to change their descriptions.

When the user asks you to do something, use the appropriate tools to make the changes. Always confirm what you've done after making changes.

If the user's request is unclear, ask for clarification before making changes."""
