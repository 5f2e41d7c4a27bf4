"""
Shared fixtures: sample flows, a file store in tmp_path and fake OpenAI clients.

The fakes mimic only the attribute shape of the OpenAI SDK responses the code
reads (``choices[0].message``, ``message.tool_calls[i].function``,
``audio.speech.create(...).content``), so no network access is needed.
"""

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from flow_assist.core.config import Config
from flow_assist.core.llm_handler import LLMHandler
from flow_assist.core.store import FileFlowStore
from flow_assist.core.types import FlowDocument


def make_tool_call(name: str, arguments: Any, call_id: str = "call_1") -> SimpleNamespace:
    """Tool call as found on a chat completion message; dict arguments are JSON-encoded."""
    raw = json.dumps(arguments) if isinstance(arguments, dict) else arguments
    return SimpleNamespace(id=call_id, type="function", function=SimpleNamespace(name=name, arguments=raw))


def make_message(content: Optional[str] = None, tool_calls: Optional[List[SimpleNamespace]] = None) -> SimpleNamespace:
    return SimpleNamespace(role="assistant", content=content, tool_calls=tool_calls)


class FakeChatClient:
    """
    Returns queued messages from ``chat.completions.create``.

    A queued exception is raised instead of returned. Every call's keyword
    arguments are recorded in ``requests``.
    """

    def __init__(self, replies: List[Any]):
        self.replies = list(replies)
        self.requests: List[Dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **params: Any) -> SimpleNamespace:
        self.requests.append(params)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=reply)])


class FakeSpeechClient:
    """Returns fixed bytes from ``audio.speech.create``; inputs listed in ``failing_inputs`` raise."""

    def __init__(self, failing_inputs: Optional[Dict[str, Exception]] = None):
        self.failing_inputs = failing_inputs or {}
        self.inputs: List[str] = []
        self.audio = SimpleNamespace(speech=SimpleNamespace(create=self._create))

    def _create(self, model: str, voice: str, input: str, response_format: str) -> SimpleNamespace:
        self.inputs.append(input)
        if input in self.failing_inputs:
            raise self.failing_inputs[input]
        return SimpleNamespace(content=f"audio:{voice}:{input}".encode("utf-8"))


@pytest.fixture
def config() -> Config:
    return Config(openai_api_key="sk-test", llm_model="gpt-4o-mini", is_reasoning_model=False, model_temperature=0.2)


@pytest.fixture
def store(tmp_path) -> FileFlowStore:
    return FileFlowStore(tmp_path / "flows")


@pytest.fixture
def sample_flow() -> FlowDocument:
    """
    Two sections:

        Preparation: Wash hands, Put on gloves
        Cleaning:    Wipe the counter, Check the floor
    """
    flow = FlowDocument(title="Kitchen cleaning", description="Daily routine", language="en", category="hygiene")
    preparation = flow.add_section("Preparation")
    cleaning = flow.add_section("Cleaning")
    flow.add_step(preparation.id, "Wash hands")
    flow.add_step(preparation.id, "Put on gloves")
    flow.add_step(cleaning.id, "Wipe the counter")
    flow.add_step(cleaning.id, "Check the floor")
    return flow


def make_llm(replies: List[Any], config: Config) -> LLMHandler:
    """LLMHandler over a FakeChatClient; the client is reachable as ``handler.client``."""
    return LLMHandler(FakeChatClient(replies), config)
