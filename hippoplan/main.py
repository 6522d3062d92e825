"""
Main CLI interface for Hippoplan.

This module provides the Typer-based command-line interface with commands for:
- Capturing tasks by dictation (Whisper audio files or typed lines)
- Editing the captured task fields
- Prioritizing tasks
- Placing tasks on the weekly schedule board
"""

import os
import sys
import time
from typing import List, Optional

import pyperclip
import typer
from rich.console import Console
from rich.table import Table

from .core.config import config, ensure_project_env, load_project_env, resolve_project_root
from .core.debug_log import DebugLogger
from .core.planner import Planner
from .core.schedule import PERIOD_LABELS, PRIORITY_SECTIONS, ScheduleBoard, ScheduleError, normalize_day, priority_section
from .core.speech import TextTranscriptSource, WhisperTranscriptSource
from .core.store import StoreError
from .core.types import DAYS, PERIODS, SLOTS, Task

app = typer.Typer(
    name="hippoplan",
    help="Hippoplan - dictate tasks, prioritize them and plan your week",
    no_args_is_help=True,
)

console = Console()

PROJECT_ROOT_OPTION = typer.Option(None, "--project-root", help="Project root holding .hippoplan state (default: nearest .hippoplan or CWD)")


def _fail(message: str, label: str = "Error") -> None:
    console.print(f"[bold red]{label}:[/bold red] {message}")
    sys.exit(1)


def _priority_label(task: Task) -> str:
    section = priority_section(task.priority)
    if section is None:
        return "[dim]Unprioritized[/dim]"
    return f"[{section.color}]{section.title}[/{section.color}]"


def _print_fields(planner: Planner) -> None:
    fields = planner.session.fields
    if not fields:
        console.print("[yellow]No captured tasks yet[/yellow]")
        return
    table = Table(title="Captured Tasks")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Text", style="white")
    for index, text in enumerate(fields):
        table.add_row(str(index), text or "[dim](empty)[/dim]")
    console.print(table)


def _resolve_task(planner: Planner, reference: str) -> Task:
    task = planner.registry.find(reference)
    if task is None:
        _fail(f"No task matches '{reference}'")
    return task


def _save(planner: Planner) -> None:
    try:
        planner.save()
    except StoreError as e:
        _fail(str(e), "Storage Error")


@app.command()
def capture(
    audio: Optional[List[str]] = typer.Option(None, "--audio", "-a", help="Audio file(s) to transcribe with Whisper"),
    seconds: Optional[int] = typer.Option(None, "--seconds", help="Countdown length (default: HP_CAPTURE_SECONDS or 120)"),
    project_root: Optional[str] = PROJECT_ROOT_OPTION,
    debug: bool = typer.Option(False, "--debug", help="Write every capture event to .hippoplan/debug"),
):
    """
    Capture tasks by dictation. Every utterance becomes its own task.

    Without --audio, type one task per line and finish with an empty line.

    Examples:
        hippoplan capture
        hippoplan capture --audio monday.m4a --audio errands.wav
    """
    if debug:
        os.environ["HP_DEBUG"] = "1"
    root = str(resolve_project_root(project_root))
    load_project_env(root)

    planner = Planner.load(root, countdown_seconds=seconds, debug_logger=DebugLogger(root))
    session = planner.session

    if audio:
        source = WhisperTranscriptSource(audio, language=config.language)
        session.attach(source)
        with console.status("[dim]Transcribing…[/dim]"):
            session.start()
            if session.error is None:
                # Results arrive on the worker thread; stop once it drained
                source.wait()
                session.stop()
    else:
        source = TextTranscriptSource()
        session.attach(source)
        session.start()
        if session.is_listening:
            console.print(f"[dim]Listening for {session.time_left}s. One task per line, empty line to stop.[/dim]")
            last_tick = time.monotonic()
            warned = False
            while session.is_listening:
                line = typer.prompt("›", default="", show_default=False)
                now = time.monotonic()
                for _ in range(int(now - last_tick)):
                    session.tick()
                last_tick += int(now - last_tick)
                if session.countdown_expired and not warned:
                    console.print("[yellow]Time is up - keep going or press enter on an empty line to finish.[/yellow]")
                    warned = True
                if not line.strip():
                    break
                source.feed(line)
            session.stop()

    if session.error is not None:
        console.print(f"[bold red]Capture Error:[/bold red] {session.error.message}")

    _save(planner)
    _print_fields(planner)
    if session.error is not None:
        sys.exit(1)


@app.command()
def init(project_root: Optional[str] = PROJECT_ROOT_OPTION):
    """Create .hippoplan/.env with the default settings, keeping an existing one."""
    path = ensure_project_env(project_root)
    console.print(f"[green]✓[/green] Settings file: {path}")


@app.command()
def fields(project_root: Optional[str] = PROJECT_ROOT_OPTION):
    """Show the captured task fields."""
    _print_fields(Planner.load(project_root))


@app.command()
def add(
    text: str = typer.Argument(..., help="Task text"),
    project_root: Optional[str] = PROJECT_ROOT_OPTION,
):
    """Type a task instead of dictating it."""
    planner = Planner.load(project_root)
    index = planner.session.add_empty_field()
    planner.session.update_field(index, text)
    _save(planner)
    console.print(f"[green]✓[/green] Added task #{index}: {text}")


@app.command()
def edit(
    index: int = typer.Argument(..., help="Field number (see 'hippoplan fields')"),
    text: str = typer.Argument(..., help="New task text"),
    project_root: Optional[str] = PROJECT_ROOT_OPTION,
):
    """Rewrite a captured task."""
    planner = Planner.load(project_root)
    if not planner.session.update_field(index, text):
        _fail(f"No field #{index}")
    _save(planner)
    console.print(f"[green]✓[/green] Updated task #{index}: {text}")


@app.command()
def remove(
    index: int = typer.Argument(..., help="Field number (see 'hippoplan fields')"),
    project_root: Optional[str] = PROJECT_ROOT_OPTION,
):
    """Remove a captured task."""
    planner = Planner.load(project_root)
    if not planner.session.remove_phrase(index):
        _fail(f"No field #{index}")
    _save(planner)
    console.print(f"[green]✓[/green] Removed task #{index}")


@app.command()
def tasks(
    by_section: bool = typer.Option(False, "--by-section", "-s", help="Group tasks under their priority sections"),
    project_root: Optional[str] = PROJECT_ROOT_OPTION,
):
    """List tasks in priority order."""
    planner = Planner.load(project_root)
    ordered = planner.board.sorted_tasks()
    if not ordered:
        console.print("[yellow]No tasks yet[/yellow]")
        return

    if by_section:
        _print_sections(planner)
        return

    table = Table(title="Tasks")
    table.add_column("ID", style="cyan")
    table.add_column("Task", style="white")
    table.add_column("Priority")
    for task in ordered:
        table.add_row(task.id, task.content, _priority_label(task))
    console.print(table)


def _print_sections(planner: Planner) -> None:
    groups = [(f"[{s.color}]{s.title}[/{s.color}]", s.description, planner.registry.by_priority(s.id)) for s in PRIORITY_SECTIONS]
    groups.append(("Unprioritized", None, planner.registry.unprioritized()))
    for title, caption, members in groups:
        table = Table(title=title, caption=caption)
        table.add_column("ID", style="cyan")
        table.add_column("Task", style="white")
        for task in members:
            table.add_row(task.id, task.content)
        if not members:
            table.add_row("", "[dim]No tasks[/dim]")
        console.print(table)


@app.command()
def prioritize(
    task: str = typer.Argument(..., help="Task id or text"),
    priority: int = typer.Argument(..., min=0, max=4, help="Priority 1-4, or 0 to clear"),
    project_root: Optional[str] = PROJECT_ROOT_OPTION,
):
    """Set the priority of a task."""
    planner = Planner.load(project_root)
    target = _resolve_task(planner, task)
    updated = planner.set_priority(target.id, priority or None)
    if updated is None:
        _fail(f"No task matches '{task}'")
    _save(planner)
    console.print(f"[green]✓[/green] {updated.content}: {_priority_label(updated)}")


@app.command()
def priorities():
    """Describe the four priority levels."""
    table = Table(title="Priorities")
    table.add_column("Level", style="cyan", justify="right")
    table.add_column("Title")
    table.add_column("Meaning", style="white")
    for section in PRIORITY_SECTIONS:
        table.add_row(str(section.id), f"[{section.color}]{section.title}[/{section.color}]", section.description)
    console.print(table)


@app.command()
def schedule(
    day: str = typer.Argument(..., help=f"Day ({', '.join(DAYS)})"),
    period: str = typer.Argument(..., help="am or pm"),
    slot: int = typer.Argument(..., help=f"Slot {SLOTS[0]}-{SLOTS[-1]}"),
    task: str = typer.Argument(..., help="Task id or text"),
    project_root: Optional[str] = PROJECT_ROOT_OPTION,
):
    """Put a task into a slot of the weekly board, replacing what was there."""
    planner = Planner.load(project_root)
    target = _resolve_task(planner, task)
    try:
        entry = planner.board.assign(day, period.lower(), slot, target.id)
    except ScheduleError as e:
        _fail(str(e), "Schedule Error")
    _save(planner)
    console.print(f"[green]✓[/green] {entry.day} {PERIOD_LABELS[entry.period].lower()} slot {entry.slot}: {target.content}")


@app.command()
def unschedule(
    day: str = typer.Argument(..., help=f"Day ({', '.join(DAYS)})"),
    period: str = typer.Argument(..., help="am or pm"),
    slot: int = typer.Argument(..., help=f"Slot {SLOTS[0]}-{SLOTS[-1]}"),
    project_root: Optional[str] = PROJECT_ROOT_OPTION,
):
    """Clear a slot of the weekly board."""
    planner = Planner.load(project_root)
    try:
        planner.board.clear(day, period.lower(), slot)
    except ScheduleError as e:
        _fail(str(e), "Schedule Error")
    _save(planner)
    console.print(f"[green]✓[/green] Cleared {normalize_day(day)} {period.lower()} slot {slot}")


@app.command()
def board(
    day: Optional[str] = typer.Option(None, "--day", "-d", help="Show a single day"),
    copy: bool = typer.Option(False, "--copy", help="Copy the board to the clipboard as markdown"),
    project_root: Optional[str] = PROJECT_ROOT_OPTION,
):
    """Show the weekly schedule board."""
    planner = Planner.load(project_root)
    try:
        days = [normalize_day(day)] if day else list(DAYS)
    except ScheduleError as e:
        _fail(str(e), "Schedule Error")

    for period in PERIODS:
        table = Table(title=PERIOD_LABELS[period])
        table.add_column("Slot", style="cyan", justify="right")
        for name in days:
            table.add_column(name)
        for slot in SLOTS:
            cells = []
            for name in days:
                task = planner.board.lookup(name, period, slot)
                cells.append(_board_cell(task))
            table.add_row(str(slot), *cells)
        console.print(table)

    if copy:
        try:
            pyperclip.copy(render_board_markdown(planner.board, days))
            console.print("[dim]Board copied to clipboard[/dim]")
        except Exception:
            # Clipboard support is optional
            pass


def _board_cell(task: Optional[Task]) -> str:
    if task is None:
        return "[dim]-[/dim]"
    section = priority_section(task.priority)
    if section is None:
        return task.content
    return f"[{section.color}]{task.content}[/{section.color}]"


def render_board_markdown(board: ScheduleBoard, days: List[str]) -> str:
    """Render the board as markdown tables, one per period."""
    lines: List[str] = []
    for period in PERIODS:
        lines.append(f"## {PERIOD_LABELS[period]}")
        lines.append("")
        lines.append("| Slot | " + " | ".join(days) + " |")
        lines.append("|---" * (len(days) + 1) + "|")
        for slot in SLOTS:
            cells = []
            for name in days:
                task = board.lookup(name, period, slot)
                cells.append(task.content if task else "")
            lines.append(f"| {slot} | " + " | ".join(cells) + " |")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


if __name__ == "__main__":
    app()
