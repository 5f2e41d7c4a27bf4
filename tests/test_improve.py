"""
Tests for single-text rewriting.
"""

import pytest

from flow_assist.core.config import Config
from flow_assist.core.errors import AIServiceError, ErrorKind
from flow_assist.core.improve import ImprovementTask, TextImprover, build_improvement_prompt, strip_quotes

from tests.conftest import make_llm, make_message


class TestImprovePrompt:
    @pytest.mark.parametrize(
        "task,marker",
        [
            (ImprovementTask.IMPROVE, "Improved text:"),
            (ImprovementTask.FORMAL, "Formal version:"),
            (ImprovementTask.CASUAL, "Casual version:"),
            (ImprovementTask.EXPAND, "Expanded version:"),
            (ImprovementTask.SIMPLIFY, "Simplified version:"),
        ],
    )
    def test_prompt_per_task(self, task, marker):
        prompt = build_improvement_prompt("open door", task)
        assert prompt.endswith(marker)
        assert '"open door"' in prompt

    def test_strip_quotes(self):
        assert strip_quotes('"open the door"') == "open the door"
        assert strip_quotes("'x'") == "x"
        assert strip_quotes('"mismatched\'') == '"mismatched\''


class TestTextImprover:
    def test_improve(self, config: Config):
        llm = make_llm([make_message('"Open the door."')], config)
        result = TextImprover(llm).improve("open door")
        assert result.improved == "Open the door."
        assert result.task == ImprovementTask.IMPROVE
        request = llm.client.requests[0]
        assert [m["role"] for m in request["messages"]] == ["user"]
        assert request["max_tokens"] == 100

    def test_empty_text(self, config: Config):
        with pytest.raises(AIServiceError) as exc_info:
            TextImprover(make_llm([], config)).improve("  ")
        assert exc_info.value.kind == ErrorKind.INVALID_INPUT

    def test_empty_reply(self, config: Config):
        with pytest.raises(AIServiceError) as exc_info:
            TextImprover(make_llm([make_message('""')], config)).improve("open door", ImprovementTask.FORMAL)
        assert exc_info.value.message == "No improved text generated"
