"""
Tests for the operation catalog, tool schemas and the flow outline.
"""

from flow_assist.core.operations import OPERATION_CATALOG, OperationName, get_operation, tool_schemas
from flow_assist.core.outline import build_system_prompt, preview_text, render_structure
from flow_assist.core.types import AudioAsset, FlowDocument, StepType


class TestCatalog:
    """Every operation is offered to the model as a function tool."""

    def test_catalog_is_complete(self):
        assert set(OPERATION_CATALOG) == set(OperationName)
        assert len(tool_schemas()) == 16

    def test_tool_schema_shape(self):
        schema = get_operation("set_step_timer").tool_schema()
        assert schema["type"] == "function"
        function = schema["function"]
        assert function["name"] == "set_step_timer"
        assert set(function["parameters"]["required"]) == {"step_description", "timer_minutes"}
        assert "title" not in function["parameters"]

    def test_step_type_enum(self):
        properties = get_operation("set_step_type").tool_schema()["function"]["parameters"]["properties"]
        assert properties["step_type"]["enum"] == ["check", "normal"]

    def test_section_steps_are_strings_in_schema(self):
        properties = get_operation("add_section_with_steps").tool_schema()["function"]["parameters"]["properties"]
        assert properties["steps"]["items"] == {"type": "string"}

    def test_query_structure_has_empty_properties(self):
        assert get_operation("query_structure").tool_schema()["function"]["parameters"]["properties"] == {}

    def test_unknown_name(self):
        assert get_operation("paint_flow") is None


class TestOutline:
    def test_render_structure_flags(self, sample_flow: FlowDocument):
        step = sample_flow.ordered_steps()[3]
        sample_flow.update_step(
            step.id,
            type=StepType.CHECK,
            timer_duration_minutes=5,
            audio_asset=AudioAsset(path="assets/x.mp3"),
        )
        lines = render_structure(sample_flow).splitlines()
        assert lines == [
            "Section: Preparation",
            "  - Wash hands",
            "  - Put on gloves",
            "Section: Cleaning",
            "  - Wipe the counter",
            "  - Check the floor [check, timer 5 min, audio]",
        ]

    def test_preview_text(self):
        assert preview_text("x" * 60) == "x" * 50 + "..."
        assert preview_text("short") == "short"

    def test_system_prompt(self, sample_flow: FlowDocument):
        prompt = build_system_prompt(sample_flow)
        assert "- Title: Kitchen cleaning" in prompt
        assert "- Total steps: 4" in prompt
        assert "Section: Cleaning" in prompt

    def test_system_prompt_empty_flow(self):
        assert "(empty flow)" in build_system_prompt(FlowDocument())
