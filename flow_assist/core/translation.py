"""
Bulk translation of flows.

All user-visible strings of a flow (title, description, section titles and
step descriptions) are sent to the model in one request as numbered
``string_N: "value"`` lines and parsed back from the same format. Results are
cached for two hours by content hash; translation previews for fifteen
minutes.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .cache import PREVIEW_TTL, TRANSLATION_TTL, TTLCache, derive_cache_key
from .errors import AIServiceError, ErrorKind
from .llm_handler import LLMHandler
from .types import FlowDocument, new_id

logger = logging.getLogger(__name__)

TRANSLATION_SERVICE = "Translation"
PREVIEW_STEP_COUNT = 3
TRANSLATED_LINE_RE = re.compile(r'^(string_\d+):\s*"(.+)"$')

SYSTEM_PROMPT = (
    "You are a professional translator. Translate the provided text while maintaining context, tone, and "
    "technical accuracy. Preserve any special formatting, placeholders, or technical terms that should not "
    "be translated."
)


class TranslationPreview(BaseModel):
    """What the user sees before confirming a translation."""

    title: Optional[str] = None
    description: Optional[str] = None
    steps: List[str] = Field(default_factory=list, description="First step descriptions")
    more_steps: int = Field(default=0, description="Number of steps not shown")


def estimate_complexity(flow: FlowDocument) -> str:
    """Rough size class of a translation: Simple (<500 chars), Medium (<2000) or Complex."""
    size = len(flow.title) + len(flow.description) + sum(len(step.description) for step in flow.steps)
    if size < 500:
        return "Simple"
    if size < 2000:
        return "Medium"
    return "Complex"


def build_preview(flow: FlowDocument) -> TranslationPreview:
    """Title, description and the first three step descriptions of ``flow``."""
    steps = flow.ordered_steps()
    return TranslationPreview(
        title=flow.title or None,
        description=flow.description or None,
        steps=[step.description for step in steps[:PREVIEW_STEP_COUNT] if step.description],
        more_steps=max(len(steps) - PREVIEW_STEP_COUNT, 0),
    )


def _translatable_fields(flow: FlowDocument) -> List[Tuple[str, Optional[str], str]]:
    """(kind, entity id, text) for every non-empty string, in document order."""
    fields: List[Tuple[str, Optional[str], str]] = []
    if flow.title.strip():
        fields.append(("title", None, flow.title))
    if flow.description.strip():
        fields.append(("description", None, flow.description))
    for section in flow.sorted_sections():
        if section.title.strip():
            fields.append(("section", section.id, section.title))
    for step in flow.ordered_steps():
        if step.description.strip():
            fields.append(("step", step.id, step.description))
    return fields


def build_translation_prompt(strings: List[str], source_language: str, target_language: str) -> str:
    strings_list = "\n".join(f'string_{i}: "{value}"' for i, value in enumerate(strings))
    return f"""Translate the following text strings from {source_language} to {target_language}.
Maintain the same format with the key followed by the translated text in quotes.
Preserve any technical terms, proper nouns, and formatting.
Context: These are strings from a workflow/process management application.

{strings_list}

Translated versions:"""


def parse_translations(content: str, count: int) -> List[Optional[str]]:
    """
    Parse ``string_N: "value"`` lines.

    Returns:
        ``count`` entries; None where the reply has no usable line
    """
    found: Dict[str, str] = {}
    for line in content.splitlines():
        match = TRANSLATED_LINE_RE.match(line.strip())
        if match:
            found[match.group(1)] = match.group(2)
    return [found.get(f"string_{i}") for i in range(count)]


class FlowTranslator:
    """
    Translates flows with caching.

    Args:
        llm: Handler used for translation requests
        translation_cache: Cache of translated strings (2h TTL if None)
        preview_cache: Cache of previews (15min TTL if None)
    """

    def __init__(
        self,
        llm: LLMHandler,
        translation_cache: Optional[TTLCache[List[Optional[str]]]] = None,
        preview_cache: Optional[TTLCache[TranslationPreview]] = None,
    ):
        self.llm = llm
        self.translation_cache = translation_cache if translation_cache is not None else TTLCache(TRANSLATION_TTL, name="translation cache")
        self.preview_cache = preview_cache if preview_cache is not None else TTLCache(PREVIEW_TTL, name="preview cache")

    def translation_key(self, flow: FlowDocument, source_language: str, target_language: str) -> str:
        payload = {
            "title": flow.title,
            "description": flow.description,
            "sections": [section.title for section in flow.sorted_sections()],
            "steps": [step.description for step in flow.ordered_steps() if step.description],
            "source_language": source_language,
            "target_language": target_language,
        }
        return derive_cache_key("translation", payload)

    def preview_key(self, flow: FlowDocument) -> str:
        payload = {
            "title": flow.title,
            "description": flow.description,
            "steps": [step.description for step in flow.ordered_steps()[:PREVIEW_STEP_COUNT] if step.description],
            "step_count": len(flow.steps),
        }
        return derive_cache_key("preview", payload)

    def translate(self, flow: FlowDocument, target_language: str, source_language: Optional[str] = None) -> FlowDocument:
        """
        Produce a translated copy of ``flow``.

        The copy gets a new flow id, the target language and no audio assets
        (synthesized speech belongs to the source language). Strings the model
        did not return keep their original text.

        Args:
            flow: Flow to translate (left unchanged)
            target_language: Target language code
            source_language: Source language code (defaults to the flow's language)

        Returns:
            Translated flow copy

        Raises:
            AIServiceError: If there is nothing to translate, the reply is empty
                            or the provider request fails
        """
        source_language = source_language or flow.language
        fields = _translatable_fields(flow)
        if not fields:
            raise AIServiceError(ErrorKind.INVALID_INPUT, "No translatable content found in flow")

        key = self.translation_key(flow, source_language, target_language)
        translations = self.translation_cache.get(key)
        if translations is not None:
            logger.info(f"Using cached translation {key}")
        else:
            strings = [text for _, _, text in fields]
            content = self.llm.complete_text(
                SYSTEM_PROMPT,
                build_translation_prompt(strings, source_language, target_language),
                request_type="translation",
                service=TRANSLATION_SERVICE,
                max_tokens=2000,
            )
            if not content:
                raise AIServiceError(ErrorKind.UNKNOWN, "No translation generated")
            translations = parse_translations(content, len(strings))
            missing = sum(1 for value in translations if value is None)
            if missing:
                logger.warning(f"{missing} of {len(strings)} strings came back untranslated")
            self.translation_cache.set(key, translations)

        return self._apply(flow, fields, translations, target_language)

    def _apply(
        self,
        flow: FlowDocument,
        fields: List[Tuple[str, Optional[str], str]],
        translations: List[Optional[str]],
        target_language: str,
    ) -> FlowDocument:
        translated = flow.model_copy(deep=True, update={"id": new_id(), "language": target_language})
        for (kind, entity_id, _), value in zip(fields, translations):
            if value is None:
                continue
            if kind == "title":
                translated.title = value
            elif kind == "description":
                translated.description = value
            elif kind == "section":
                translated.update_section(entity_id, value)
            else:
                translated.update_step(entity_id, description=value)
        for step in translated.steps:
            step.audio_asset = None
        return translated

    def preview(self, flow: FlowDocument) -> TranslationPreview:
        """Cached build_preview."""
        key = self.preview_key(flow)
        cached = self.preview_cache.get(key)
        if cached is not None:
            return cached

        preview = build_preview(flow)
        self.preview_cache.set(key, preview)
        return preview
