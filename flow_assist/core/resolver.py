"""
Entity resolution for flow operations.

Sections are found by case-insensitive exact title. Steps are found either by
case-insensitive containment (update/delete targets) or by case-insensitive
equality (timer, type and branch lookups). The strategy is chosen explicitly
at every call site; the first match in document order wins and there is no
ranking. rapidfuzz is only used to suggest a likely intended name when a
lookup fails.
"""

from enum import Enum
from typing import List, Optional

from rapidfuzz import fuzz, process

from .types import FlowDocument, Section, Step

# Minimum rapidfuzz ratio (0-100) for a "did you mean" suggestion
SUGGESTION_THRESHOLD = 60.0


class MatchStrategy(str, Enum):
    """How a step description is compared with the query text."""

    CONTAINS = "contains"
    EXACT = "exact"


def _normalize(text: str) -> str:
    return text.strip().casefold()


class EntityResolver:
    """Looks up sections and steps of a single flow. Lookups never raise."""

    def __init__(self, flow: FlowDocument):
        self.flow = flow

    def resolve_section(self, name: Optional[str] = None) -> Optional[Section]:
        """
        Find a section by title.

        Args:
            name: Section title (case-insensitive). If None or blank, the first
                  section in document order is returned.

        Returns:
            The first matching section, or None when nothing matches or the
            flow has no sections.
        """
        sections = self.flow.sorted_sections()
        if not sections:
            return None
        if name is None or not name.strip():
            return sections[0]
        wanted = _normalize(name)
        return next((s for s in sections if _normalize(s.title) == wanted), None)

    def resolve_step(self, text: str, strategy: MatchStrategy, section: Optional[Section] = None) -> Optional[Step]:
        """
        Find the first step whose description matches ``text``.

        Args:
            text: Query text; blank queries never match
            strategy: CONTAINS for substring match, EXACT for equality
            section: Restrict the search to this section

        Returns:
            The first matching step in document order, or None
        """
        if not text or not text.strip():
            return None
        wanted = _normalize(text)
        candidates = self.flow.steps_in_section(section.id) if section is not None else self.flow.ordered_steps()

        for step in candidates:
            current = _normalize(step.description)
            if strategy == MatchStrategy.EXACT and current == wanted:
                return step
            if strategy == MatchStrategy.CONTAINS and wanted in current:
                return step
        return None

    def resolve_step_by_contains(self, fragment: str, section_name: Optional[str] = None) -> Optional[Step]:
        """Containment lookup, scoped to ``section_name`` when given (unknown section -> None)."""
        section = None
        if section_name is not None and section_name.strip():
            section = self.resolve_section(section_name)
            if section is None:
                return None
        return self.resolve_step(fragment, MatchStrategy.CONTAINS, section)

    def resolve_step_by_exact(self, description: str) -> Optional[Step]:
        """Equality lookup across the whole flow."""
        return self.resolve_step(description, MatchStrategy.EXACT)

    def suggest_section(self, name: str) -> Optional[str]:
        """Closest section title to ``name``, if any is similar enough."""
        return self._suggest(name, [s.title for s in self.flow.sorted_sections()])

    def suggest_step(self, text: str, section: Optional[Section] = None) -> Optional[str]:
        """Closest step description to ``text``, if any is similar enough."""
        steps = self.flow.steps_in_section(section.id) if section is not None else self.flow.ordered_steps()
        return self._suggest(text, [s.description for s in steps])

    def _suggest(self, query: str, choices: List[str]) -> Optional[str]:
        if not query or not choices:
            return None
        match = process.extractOne(
            _normalize(query),
            [_normalize(c) for c in choices],
            scorer=fuzz.ratio,
            score_cutoff=SUGGESTION_THRESHOLD,
        )
        if match is None:
            return None
        _, _, index = match
        return choices[index]
