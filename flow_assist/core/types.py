"""
Type definitions for Flow Assist.

This module defines the flow document (sections and steps), its mutation API,
history snapshots, chat messages and the result records returned by the
operation executor and the command interpreter.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Marker embedded in generated audio file names; assets without it are user-supplied
SYNTHESIZED_ASSET_MARKER = "step_tts_"


def new_id() -> str:
    return str(uuid.uuid4())


class StepType(str, Enum):
    """Kind of a step: plain instruction or OK/NOK verification."""

    NORMAL = "normal"
    CHECK = "check"


class AudioAsset(BaseModel):
    """
    Audio attached to a step.

    Attributes:
        path: Path relative to the flow's storage directory (e.g. assets/x.mp3)
        display_name: Optional name shown to the user
    """

    path: str = Field(..., description="Asset path relative to the flow directory")
    display_name: Optional[str] = Field(default=None, description="Human readable file name")

    @property
    def is_synthesized(self) -> bool:
        """True if the asset was produced by speech synthesis (marker in path or display name)."""
        return SYNTHESIZED_ASSET_MARKER in self.path or SYNTHESIZED_ASSET_MARKER in (self.display_name or "")


class Section(BaseModel):
    """Named, ordered grouping of steps."""

    id: str = Field(default_factory=new_id)
    title: str = Field(..., description="Section title")
    order: int = Field(default=0, description="Position within the flow")


class Step(BaseModel):
    """
    Atomic instruction of a flow.

    ``ok_next`` and ``nok_next`` hold step ids and are only meaningful for
    check steps; ``None`` means "continue with the next step in order".
    """

    id: str = Field(default_factory=new_id)
    section_id: str = Field(..., description="Id of the owning section")
    order: int = Field(default=0, description="Position within the section")
    description: str = Field(default="", description="Instruction text")
    type: StepType = Field(default=StepType.NORMAL)
    timer_duration_minutes: int = Field(default=0, ge=0, description="Timer length, 0 for none")
    ok_next: Optional[str] = Field(default=None, description="Step id to jump to on OK")
    nok_next: Optional[str] = Field(default=None, description="Step id to jump to on NOK")
    audio_asset: Optional[AudioAsset] = Field(default=None)

    @property
    def has_audio_asset(self) -> bool:
        return self.audio_asset is not None


class FlowDocument(BaseModel):
    """
    The edited artifact: metadata plus ordered sections and a flat list of steps.

    All mutations go through the methods below so that ordering and
    referential invariants hold after every call.
    """

    id: str = Field(default_factory=new_id)
    title: str = Field(default="")
    description: str = Field(default="")
    language: str = Field(default="en")
    category: str = Field(default="")
    version: int = Field(default=1)
    sections: List[Section] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)

    # --- reads ---

    def sorted_sections(self) -> List[Section]:
        """Sections in document order (stable for equal order values)."""
        return sorted(self.sections, key=lambda s: s.order)

    def steps_in_section(self, section_id: str) -> List[Step]:
        return sorted((s for s in self.steps if s.section_id == section_id), key=lambda s: s.order)

    def ordered_steps(self) -> List[Step]:
        """All steps in document order: sections by order, then steps by order."""
        ordered: List[Step] = []
        for section in self.sorted_sections():
            ordered.extend(self.steps_in_section(section.id))
        return ordered

    def find_section(self, section_id: str) -> Optional[Section]:
        return next((s for s in self.sections if s.id == section_id), None)

    def find_step(self, step_id: str) -> Optional[Step]:
        return next((s for s in self.steps if s.id == step_id), None)

    # --- mutations ---

    def add_section(self, title: str) -> Section:
        next_order = max((s.order for s in self.sections), default=-1) + 1
        section = Section(title=title, order=next_order)
        self.sections.append(section)
        return section

    def add_step(self, section_id: str, description: str) -> Optional[Step]:
        """Append a step to the section; returns None if the section does not exist."""
        if self.find_section(section_id) is None:
            return None
        siblings = [s.order for s in self.steps if s.section_id == section_id]
        step = Step(section_id=section_id, description=description, order=max(siblings, default=-1) + 1)
        self.steps.append(step)
        return step

    def update_section(self, section_id: str, title: str) -> bool:
        section = self.find_section(section_id)
        if section is None:
            return False
        section.title = title
        return True

    def delete_section(self, section_id: str) -> Optional[int]:
        """Remove a section and every step it owns. Returns the number of removed steps."""
        section = self.find_section(section_id)
        if section is None:
            return None
        removed_ids = {s.id for s in self.steps if s.section_id == section_id}
        self.sections = [s for s in self.sections if s.id != section_id]
        self.steps = [s for s in self.steps if s.section_id != section_id]
        self._clear_branches_to(removed_ids)
        return len(removed_ids)

    def delete_step(self, step_id: str) -> bool:
        if self.find_step(step_id) is None:
            return False
        self.steps = [s for s in self.steps if s.id != step_id]
        self._clear_branches_to({step_id})
        return True

    def update_metadata(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
        language: Optional[str] = None,
        category: Optional[str] = None,
    ) -> None:
        if title is not None:
            self.title = title
        if description is not None:
            self.description = description
        if language is not None:
            self.language = language
        if category is not None:
            self.category = category

    def update_step(self, step_id: str, **changes: Any) -> bool:
        """
        Update fields of a step.

        Accepted keys: description, type, timer_duration_minutes, ok_next,
        nok_next, audio_asset. Passing ``None`` for ok_next/nok_next/audio_asset
        clears the field.
        """
        step = self.find_step(step_id)
        if step is None:
            return False
        allowed = {"description", "type", "timer_duration_minutes", "ok_next", "nok_next", "audio_asset"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Unsupported step fields: {sorted(unknown)}")
        for name, value in changes.items():
            setattr(step, name, value)
        return True

    def restore_from(self, other: "FlowDocument") -> None:
        """Replace this flow's content with a deep copy of ``other``; the id is kept."""
        copy = other.model_copy(deep=True)
        for name in ("title", "description", "language", "category", "version", "sections", "steps"):
            setattr(self, name, getattr(copy, name))

    def _clear_branches_to(self, step_ids: set) -> None:
        for step in self.steps:
            if step.ok_next in step_ids:
                step.ok_next = None
            if step.nok_next in step_ids:
                step.nok_next = None


class Snapshot(BaseModel):
    """Deep copy of a flow captured for undo/redo."""

    flow: FlowDocument
    created_at: datetime = Field(default_factory=datetime.now)
    label: str = Field(default="")

    @classmethod
    def from_flow(cls, flow: FlowDocument, label: str) -> "Snapshot":
        return cls(flow=flow.model_copy(deep=True), label=label)


class ChatMessage(BaseModel):
    """One record of the conversation sent to the inference provider."""

    role: str = Field(..., description="user, assistant, system or tool")
    content: Optional[str] = Field(default="")
    tool_calls: Optional[List[Dict[str, Any]]] = Field(default=None)
    tool_call_id: Optional[str] = Field(default=None)
    name: Optional[str] = Field(default=None)

    def to_payload(self) -> Dict[str, Any]:
        """Provider wire format; absent optional fields are omitted."""
        return self.model_dump(exclude_none=True)


class OperationResult(BaseModel):
    """Outcome of a single operation: short action label plus a human sentence."""

    name: str = Field(..., description="Operation (tool) name")
    action: str = Field(..., min_length=1)
    result: str = Field(..., min_length=1)
    success: bool = Field(default=True)
    data: Dict[str, Any] = Field(default_factory=dict, description="Structured details such as counts")


class TurnResult(BaseModel):
    """Result of one user turn processed by the command interpreter."""

    success: bool
    message: str
    actions: List[str] = Field(default_factory=list)
    changes_applied: bool = Field(default=False)
    operations: List[OperationResult] = Field(default_factory=list)
