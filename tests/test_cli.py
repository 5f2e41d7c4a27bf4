"""
Tests for the Typer CLI.

The OpenAI client factory is patched so commands run against fakes, and
every command uses a store under tmp_path.
"""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from flow_assist.core.store import FileFlowStore
from flow_assist.core.types import FlowDocument
from flow_assist.main import app

from tests.conftest import FakeChatClient, FakeSpeechClient, make_message, make_tool_call

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path: Path, monkeypatch):
    """Run from tmp_path with a fake key and no project env file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("FA_ENV_FILE", raising=False)
    monkeypatch.delenv("FA_DEBUG", raising=False)
    monkeypatch.delenv("IS_REASONING_MODEL", raising=False)


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    return tmp_path / "flows"


@pytest.fixture
def saved_flow(sample_flow: FlowDocument, store_dir: Path) -> FlowDocument:
    FileFlowStore(store_dir).save(sample_flow)
    return sample_flow


def invoke(store_dir: Path, *args: str, input: str = None):
    return runner.invoke(app, ["--store", str(store_dir), *args], input=input)


def fake_client(monkeypatch, client) -> None:
    monkeypatch.setattr("flow_assist.main.get_client", lambda config: client)


class TestFlowCommands:
    """init, list and show."""

    def test_init_and_list(self, store_dir: Path):
        result = invoke(store_dir, "init", "--title", "Oil change", "--language", "de")
        assert result.exit_code == 0
        assert "Created flow" in result.stdout

        flows = FileFlowStore(store_dir).list_flows()
        assert [(f.title, f.language) for f in flows] == [("Oil change", "de")]

        result = invoke(store_dir, "list")
        assert result.exit_code == 0
        assert "Oil change" in result.stdout

    def test_list_empty(self, store_dir: Path):
        result = invoke(store_dir, "list")
        assert result.exit_code == 0
        assert "No flows found" in result.stdout

    def test_show(self, saved_flow: FlowDocument, store_dir: Path):
        result = invoke(store_dir, "show", saved_flow.id)
        assert result.exit_code == 0
        assert "Section: Preparation" in result.stdout
        assert "Wipe the counter" in result.stdout

    def test_show_missing(self, store_dir: Path):
        result = invoke(store_dir, "show", "nope")
        assert result.exit_code == 1
        assert "Flow not found" in result.stdout


class TestChatCommand:
    def test_single_instruction(self, saved_flow: FlowDocument, store_dir: Path, monkeypatch):
        call = make_tool_call("add_section", {"title": "Finish"})
        fake_client(monkeypatch, FakeChatClient([make_message(None, [call]), make_message("Added the section.")]))

        result = invoke(store_dir, "chat", saved_flow.id, "--text", "add a finish section")

        assert result.exit_code == 0
        assert "Added the section." in result.stdout
        assert len(FileFlowStore(store_dir).load(saved_flow.id).sections) == 3

    def test_interactive_undo(self, saved_flow: FlowDocument, store_dir: Path, monkeypatch):
        call = make_tool_call("add_section", {"title": "Finish"})
        fake_client(monkeypatch, FakeChatClient([make_message(None, [call]), make_message("Added the section.")]))

        result = invoke(store_dir, "chat", saved_flow.id, input="add a finish section\n/undo\n/quit\n")

        assert result.exit_code == 0
        assert "Restored:" in result.stdout
        assert len(FileFlowStore(store_dir).load(saved_flow.id).sections) == 2

    def test_provider_error(self, saved_flow: FlowDocument, store_dir: Path, monkeypatch):
        fake_client(monkeypatch, FakeChatClient([RuntimeError("429 rate limit")]))
        result = invoke(store_dir, "chat", saved_flow.id, "--text", "add a section")
        assert result.exit_code == 1
        assert "Rate limit exceeded" in result.stdout

    def test_missing_api_key(self, saved_flow: FlowDocument, store_dir: Path, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY")
        result = invoke(store_dir, "chat", saved_flow.id, "--text", "hi")
        assert result.exit_code == 1
        assert "OPENAI_API_KEY" in result.stdout


class TestTranslateCommand:
    def test_preview_needs_no_client(self, saved_flow: FlowDocument, store_dir: Path, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY")
        result = invoke(store_dir, "translate", saved_flow.id, "--to", "de", "--preview")
        assert result.exit_code == 0
        assert "Translation preview" in result.stdout
        assert "and 1 more steps" in result.stdout

    def test_translate_saves_new_flow(self, saved_flow: FlowDocument, store_dir: Path, monkeypatch):
        fake_client(monkeypatch, FakeChatClient([make_message('string_0: "Küchenreinigung"')]))
        result = invoke(store_dir, "translate", saved_flow.id, "--to", "de")
        assert result.exit_code == 0
        titles = sorted(f.title for f in FileFlowStore(store_dir).list_flows())
        assert titles == ["Kitchen cleaning", "Küchenreinigung"]


class TestOtherCommands:
    def test_speak(self, saved_flow: FlowDocument, store_dir: Path, monkeypatch):
        fake_client(monkeypatch, FakeSpeechClient())
        result = invoke(store_dir, "speak", saved_flow.id, "--voice", "alloy")
        assert result.exit_code == 0
        assert "Successfully generated audio for 4 steps" in result.stdout
        steps = FileFlowStore(store_dir).load(saved_flow.id).steps
        assert all(step.audio_asset is not None for step in steps)

    def test_improve(self, store_dir: Path, monkeypatch):
        fake_client(monkeypatch, FakeChatClient([make_message('"Open the door."')]))
        result = invoke(store_dir, "improve", "--text", "open door", "--task", "formal")
        assert result.exit_code == 0
        assert "Open the door." in result.stdout
