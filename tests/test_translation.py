"""
Tests for flow translation, its cache and the translation preview.
"""

import pytest

from flow_assist.core.config import Config
from flow_assist.core.errors import AIServiceError, ErrorKind
from flow_assist.core.translation import (
    FlowTranslator,
    build_preview,
    build_translation_prompt,
    estimate_complexity,
    parse_translations,
)
from flow_assist.core.types import AudioAsset, FlowDocument

from tests.conftest import make_llm, make_message

GERMAN_REPLY = "\n".join(
    [
        'string_0: "Küchenreinigung"',
        'string_1: "Tägliche Routine"',
        'string_2: "Vorbereitung"',
        'string_3: "Reinigung"',
        'string_4: "Hände waschen"',
        'string_5: "Handschuhe anziehen"',
        'string_6: "Arbeitsfläche abwischen"',
    ]
)


class TestPromptFormat:
    def test_numbered_strings(self):
        prompt = build_translation_prompt(["Hello", "World"], "en", "de")
        assert "from en to de" in prompt
        assert 'string_0: "Hello"\nstring_1: "World"' in prompt

    def test_parse_ignores_noise(self):
        content = 'Here you go:\nstring_1: "Welt"\n  string_0: "Hallo"  \nstring_x: "?"'
        assert parse_translations(content, 3) == ["Hallo", "Welt", None]


class TestFlowTranslator:
    """Translation produces a new flow and is cached by content."""

    def test_translate(self, sample_flow: FlowDocument, config: Config):
        sample_flow.steps[0].audio_asset = AudioAsset(path="assets/step_tts_x_1.mp3")
        llm = make_llm([make_message(GERMAN_REPLY)], config)

        translated = FlowTranslator(llm).translate(sample_flow, "de")

        assert translated.id != sample_flow.id
        assert translated.language == "de"
        assert translated.title == "Küchenreinigung"
        assert [s.title for s in translated.sorted_sections()] == ["Vorbereitung", "Reinigung"]
        # string_7 is missing from the reply and keeps its original text
        assert [s.description for s in translated.ordered_steps()] == [
            "Hände waschen",
            "Handschuhe anziehen",
            "Arbeitsfläche abwischen",
            "Check the floor",
        ]
        assert all(s.audio_asset is None for s in translated.steps)
        # Source untouched
        assert sample_flow.title == "Kitchen cleaning"
        assert sample_flow.steps[0].audio_asset is not None

    def test_system_prompt_and_source_language(self, sample_flow: FlowDocument, config: Config):
        llm = make_llm([make_message(GERMAN_REPLY)], config)
        FlowTranslator(llm).translate(sample_flow, "de", source_language="en-GB")
        messages = llm.client.requests[0]["messages"]
        assert messages[0]["role"] == "system"
        assert "from en-GB to de" in messages[1]["content"]

    def test_cache_hit(self, sample_flow: FlowDocument, config: Config):
        llm = make_llm([make_message(GERMAN_REPLY)], config)
        translator = FlowTranslator(llm)
        first = translator.translate(sample_flow, "de")
        second = translator.translate(sample_flow, "de")
        assert len(llm.client.requests) == 1
        assert second.title == first.title
        assert second.id != first.id

    def test_different_target_misses_cache(self, sample_flow: FlowDocument, config: Config):
        llm = make_llm([make_message(GERMAN_REPLY), make_message('string_0: "Nettoyage"')], config)
        translator = FlowTranslator(llm)
        translator.translate(sample_flow, "de")
        assert translator.translate(sample_flow, "fr").title == "Nettoyage"
        assert len(llm.client.requests) == 2

    def test_nothing_to_translate(self, config: Config):
        with pytest.raises(AIServiceError) as exc_info:
            FlowTranslator(make_llm([], config)).translate(FlowDocument(), "de")
        assert exc_info.value.kind == ErrorKind.INVALID_INPUT

    def test_empty_reply(self, sample_flow: FlowDocument, config: Config):
        with pytest.raises(AIServiceError) as exc_info:
            FlowTranslator(make_llm([make_message("  ")], config)).translate(sample_flow, "de")
        assert exc_info.value.kind == ErrorKind.UNKNOWN
        assert exc_info.value.message == "No translation generated"


class TestPreview:
    def test_preview_shows_first_three_steps(self, sample_flow: FlowDocument):
        preview = build_preview(sample_flow)
        assert preview.title == "Kitchen cleaning"
        assert preview.steps == ["Wash hands", "Put on gloves", "Wipe the counter"]
        assert preview.more_steps == 1

    def test_cached_preview(self, sample_flow: FlowDocument, config: Config):
        translator = FlowTranslator(make_llm([], config))
        first = translator.preview(sample_flow)
        assert translator.preview(sample_flow) is first

    def test_preview_cache_tracks_step_count(self, sample_flow: FlowDocument, config: Config):
        translator = FlowTranslator(make_llm([], config))
        assert translator.preview(sample_flow).more_steps == 1
        sample_flow.add_step(sample_flow.sorted_sections()[1].id, "Empty the bin")
        assert translator.preview(sample_flow).more_steps == 2

    def test_complexity(self, sample_flow: FlowDocument):
        assert estimate_complexity(sample_flow) == "Simple"
        sample_flow.description = "x" * 600
        assert estimate_complexity(sample_flow) == "Medium"
        sample_flow.description = "x" * 2500
        assert estimate_complexity(sample_flow) == "Complex"
