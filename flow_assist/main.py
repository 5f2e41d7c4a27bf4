"""
Main CLI interface for Flow Assist.

This module provides the Typer-based command-line interface with commands for:
- Creating, listing and showing flows
- Editing a flow through natural-language chat with undo/redo
- Translating a flow into another language
- Generating step audio and rewriting single texts
"""

import sys
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core.config import Config, ConfigError, get_client, load_project_env
from .core.debug_log import DebugLogger
from .core.errors import AIServiceError
from .core.history import HistoryManager
from .core.improve import ImprovementTask, TextImprover
from .core.llm_handler import LLMHandler
from .core.outline import render_structure
from .core.progress import reporter
from .core.session import ChatSession
from .core.speech import SpeechSynthesizer
from .core.store import FileFlowStore, StoreError
from .core.translation import FlowTranslator, build_preview, estimate_complexity
from .core.types import FlowDocument, TurnResult

app = typer.Typer(
    name="flow-assist",
    help="Flow Assist CLI - Edit step-by-step flows in natural language, translate them and narrate them",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    store: Optional[str] = typer.Option(None, "--store", help="Directory holding the flows (default: .flow_assist/flows)"),
    debug: bool = typer.Option(False, "--debug", help="Write JSON traces of model requests under .flow_assist/debug"),
):
    """Options shared by every command."""
    load_project_env()
    overrides: Dict[str, Any] = {}
    if store:
        overrides["store_dir"] = store
    if debug:
        overrides["debug"] = True
    ctx.obj = Config(**overrides)


def _config(ctx: typer.Context) -> Config:
    return ctx.obj if isinstance(ctx.obj, Config) else Config()


def _store(config: Config) -> FileFlowStore:
    return FileFlowStore(config.store_dir)


def _llm(config: Config, debug_logger: Optional[DebugLogger] = None) -> LLMHandler:
    return LLMHandler(get_client(config), config, debug_logger)


def _fail(label: str, error: Exception) -> None:
    console.print(f"[bold red]{label}:[/bold red] {error}")
    sys.exit(1)


@app.command()
def init(
    ctx: typer.Context,
    title: str = typer.Option(..., "--title", "-t", help="Title of the new flow"),
    description: str = typer.Option("", "--description", "-d", help="Flow description"),
    language: str = typer.Option("en", "--language", "-l", help="Language code of the flow"),
    category: str = typer.Option("", "--category", "-c", help="Flow category"),
):
    """
    Create an empty flow.

    Examples:
        flow-assist init --title "Morning cleaning"
        flow-assist --store ./flows init --title "Oil change" --language de
    """
    try:
        flow = _store(_config(ctx)).create(title, description=description, language=language, category=category)
    except StoreError as e:
        _fail("Store Error", e)
        return
    console.print(f"[bold green]Created flow[/bold green] {flow.title}")
    console.print(f"[dim]id:[/dim] {flow.id}")


@app.command("list")
def list_flows(ctx: typer.Context):
    """List stored flows."""
    flows = _store(_config(ctx)).list_flows()
    if not flows:
        console.print("[yellow]No flows found[/yellow]")
        return

    table = Table(title="Flows")
    table.add_column("Id", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Language")
    table.add_column("Sections", justify="right")
    table.add_column("Steps", justify="right")
    for flow in flows:
        table.add_row(flow.id, flow.title, flow.language, str(len(flow.sections)), str(len(flow.steps)))
    console.print(table)


@app.command()
def show(ctx: typer.Context, flow_id: str = typer.Argument(..., help="Id of the flow")):
    """Print the outline of a flow."""
    try:
        flow = _store(_config(ctx)).load(flow_id)
    except StoreError as e:
        _fail("Store Error", e)
        return
    _display_flow(flow)


@app.command()
def chat(
    ctx: typer.Context,
    flow_id: str = typer.Argument(..., help="Id of the flow to edit"),
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Run a single instruction and exit"),
):
    """
    Edit a flow in natural language.

    Without --text an interactive session starts. Session commands:
    /undo, /redo, /show, /keep, /quit

    Examples:
        flow-assist chat 3f1c... --text "add a section Cleanup with steps wipe counter and wash hands"
        flow-assist chat 3f1c...
    """
    config = _config(ctx)
    try:
        store = _store(config)
        flow = store.load(flow_id)
        debug_logger = DebugLogger(enabled=config.debug)
        session = ChatSession(flow, _llm(config, debug_logger), store, HistoryManager(config.history_capacity), debug_logger)
    except (ConfigError, StoreError) as e:
        _fail("Error", e)
        return

    if text is not None:
        try:
            _run_turn(session, text)
        except (AIServiceError, StoreError) as e:
            _fail("Error", e)
        return

    console.print(Panel(f"Editing [bold]{flow.title}[/bold]. Commands: /undo /redo /show /keep /quit", border_style="blue"))
    while True:
        try:
            line = console.input("[bold cyan]you>[/bold cyan] ").strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not line:
            continue
        if line == "/quit":
            break
        if line.startswith("/"):
            _run_session_command(session, line)
            continue
        try:
            _run_turn(session, line)
        except (AIServiceError, StoreError) as e:
            console.print(f"[bold red]Error:[/bold red] {e}")

    if session.pending_changes:
        console.print("[dim]Unreviewed changes were kept.[/dim]")
    session.clear()


def _run_turn(session: ChatSession, text: str) -> TurnResult:
    with reporter.initialize(console, "Asking the model…"):
        result = session.send(text)
        reporter.complete_step("Model answered")
    _display_turn(result)
    return result


def _run_session_command(session: ChatSession, command: str) -> None:
    if command == "/undo":
        snapshot = session.undo()
        if snapshot is None:
            console.print("[yellow]Nothing to undo[/yellow]")
        else:
            console.print(f"[green]Restored:[/green] {snapshot.label}")
    elif command == "/redo":
        snapshot = session.redo()
        if snapshot is None:
            console.print("[yellow]Nothing to redo[/yellow]")
        else:
            console.print(f"[green]Restored:[/green] {snapshot.label}")
    elif command == "/show":
        _display_flow(session.flow)
    elif command == "/keep":
        session.keep_changes()
        console.print("[green]Changes kept[/green]")
    else:
        console.print(f"[yellow]Unknown command {command}[/yellow]")


@app.command()
def translate(
    ctx: typer.Context,
    flow_id: str = typer.Argument(..., help="Id of the flow to translate"),
    target: str = typer.Option(..., "--to", help="Target language code"),
    source: Optional[str] = typer.Option(None, "--from", help="Source language code (default: the flow's language)"),
    preview: bool = typer.Option(False, "--preview", help="Only show what would be translated"),
):
    """
    Translate a flow and save the result as a new flow.

    Examples:
        flow-assist translate 3f1c... --to de
        flow-assist translate 3f1c... --to fr --preview
    """
    config = _config(ctx)
    try:
        store = _store(config)
        flow = store.load(flow_id)

        if preview:
            # One process per command: the in-memory preview cache of FlowTranslator
            # would never hit here, and building the preview needs no API key
            _display_preview(flow)
            return

        translator = FlowTranslator(_llm(config, DebugLogger(enabled=config.debug)))
        with reporter.initialize(console, f"Translating to {target}…"):
            translated = translator.translate(flow, target, source)
            reporter.step("Saving translated flow…")
            store.save(translated)
            reporter.complete_step()
    except (ConfigError, StoreError, AIServiceError) as e:
        _fail("Error", e)
        return

    console.print(f"[bold green]Translated flow saved[/bold green] {translated.title}")
    console.print(f"[dim]id:[/dim] {translated.id}")


@app.command()
def speak(
    ctx: typer.Context,
    flow_id: str = typer.Argument(..., help="Id of the flow"),
    voice: Optional[str] = typer.Option(None, "--voice", help="Voice name (default: TTS_VOICE or nova)"),
    force: bool = typer.Option(False, "--force/--no-force", help="Regenerate existing synthesized audio"),
):
    """
    Generate audio for the steps of a flow.

    Examples:
        flow-assist speak 3f1c...
        flow-assist speak 3f1c... --voice alloy --force
    """
    config = _config(ctx)
    try:
        store = _store(config)
        flow = store.load(flow_id)
        synthesizer = SpeechSynthesizer(get_client(config), config, store)
        with reporter.initialize(console, "Synthesizing audio…"):
            result = synthesizer.synthesize_flow(flow, voice=voice, force_regenerate=force)
            reporter.complete_step()
    except (ConfigError, StoreError, AIServiceError) as e:
        _fail("Error", e)
        return

    console.print(f"[bold green]{result.message}[/bold green]")
    if result.total_steps_needing_audio:
        console.print(f"[dim]Processed {result.processed_steps} of {result.total_steps_needing_audio} steps[/dim]")
    for audio in result.audio_files:
        console.print(f"  • {audio.file_path}")


@app.command()
def improve(
    ctx: typer.Context,
    text: str = typer.Option(..., "--text", "-t", help="Text to rewrite"),
    task: ImprovementTask = typer.Option(ImprovementTask.IMPROVE, "--task", help="Kind of rewrite"),
):
    """
    Rewrite a single text.

    Examples:
        flow-assist improve --text "check if work"
        flow-assist improve --text "open door" --task formal
    """
    config = _config(ctx)
    try:
        improver = TextImprover(_llm(config, DebugLogger(enabled=config.debug)))
        with reporter.initialize(console, "Rewriting…"):
            result = improver.improve(text, task)
            reporter.complete_step()
    except (ConfigError, AIServiceError) as e:
        _fail("Error", e)
        return

    console.print(result.improved)


def _display_flow(flow: FlowDocument) -> None:
    """Metadata table followed by the outline."""
    meta = Table(show_header=False, box=None)
    meta.add_column("Key", style="cyan")
    meta.add_column("Value", style="white")
    meta.add_row("Id", flow.id)
    meta.add_row("Language", flow.language)
    if flow.category:
        meta.add_row("Category", flow.category)
    if flow.description:
        meta.add_row("Description", flow.description)
    meta.add_row("Sections", str(len(flow.sections)))
    meta.add_row("Steps", str(len(flow.steps)))

    console.print(f"\n[bold blue]{flow.title or '(untitled)'}[/bold blue]")
    console.print(meta)
    console.print(Panel(render_structure(flow) or "[dim](empty flow)[/dim]", border_style="green"))


def _display_turn(result: TurnResult) -> None:
    style = "green" if result.success else "yellow"
    console.print(Panel(result.message, border_style=style))
    for operation in result.operations:
        mark = "[green]✓[/green]" if operation.success else "[red]✗[/red]"
        console.print(f"  {mark} {operation.action}")


def _display_preview(flow: FlowDocument) -> None:
    preview = build_preview(flow)
    console.print(f"\n[bold blue]Translation preview[/bold blue] [dim]({estimate_complexity(flow)})[/dim]")
    if preview.title:
        console.print(f"[cyan]Title:[/cyan] {preview.title}")
    if preview.description:
        console.print(f"[cyan]Description:[/cyan] {preview.description}")
    for description in preview.steps:
        console.print(f"  • {description}")
    if preview.more_steps:
        console.print(f"  [dim]... and {preview.more_steps} more steps[/dim]")


if __name__ == "__main__":
    app()
