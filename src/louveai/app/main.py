"""CLI entry point for LouveAI.

Provides the `louveai` command: set quotas and guidance, generate a
repertory, swap or adjust single songs, reorder, and schedule services.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from louveai import __version__
from louveai.app.logging_config import LOG_FILENAME, setup_logging
from louveai.app.orchestrator import Orchestrator
from louveai.app.store import BlobStore, Direction, RepertoryStore
from louveai.core.config import AppConfig, ensure_config_exists, get_config_path
from louveai.errors import (
    ExternalCallFailure,
    LouveAIError,
    MalformedCandidate,
)
from louveai.generation.client import GenerationClient
from louveai.models import Repertory, SongEntry

console = Console()

app = typer.Typer(
    name="louveai",
    help="LouveAI - worship repertory composer",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config file",
)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"louveai version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """LouveAI: compose worship repertories with an LLM.

    ## Getting Started

    1. Set how many songs you want per category:
       [dim]$ louveai quota caminho 2[/dim]

    2. Generate a draft:
       [dim]$ louveai generate --prompt "Culto de Santa Ceia"[/dim]

    3. Swap songs, then schedule the service:
       [dim]$ louveai swap 2[/dim]
       [dim]$ louveai finalize --name "Culto de Domingo" --date 2026-11-01[/dim]
    """
    pass


def _load_config(config_path: Optional[Path]) -> AppConfig:
    try:
        if config_path:
            return AppConfig.load(config_path)
        return ensure_config_exists()
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found: {e}[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1)


def _build_orchestrator(config: AppConfig) -> Orchestrator:
    setup_logging(config.log_dir, config.log_level)
    store = RepertoryStore(BlobStore(config.db_path), catalog=config.catalog)
    return Orchestrator(store, GenerationClient.from_config(config), config)


def _fail(error: LouveAIError) -> None:
    if isinstance(error, (ExternalCallFailure, MalformedCandidate)):
        console.print("[red]Generation failed. Please try again.[/red]")
        console.print(f"[dim]{error}[/dim]")
    else:
        console.print(f"[red]{error}[/red]")
    raise typer.Exit(1)


def _resolve_song(draft: Repertory, ref: str) -> SongEntry:
    if ref.isdigit():
        position = int(ref)
        if 1 <= position <= len(draft.songs):
            return draft.songs[position - 1]
        console.print(f"[red]No song at position {position} (draft has {len(draft.songs)}).[/red]")
        raise typer.Exit(1)

    song = draft.find_song(ref)
    if song is None:
        console.print(f"[red]Song not found in draft: {ref}[/red]")
        raise typer.Exit(1)
    return song


def _require_draft(orchestrator: Orchestrator) -> Repertory:
    draft = orchestrator.state.draft
    if draft is None:
        console.print("[yellow]No draft repertory. Run 'louveai generate' first.[/yellow]")
        raise typer.Exit(1)
    return draft


def _render_repertory(repertory: Repertory, title: Optional[str] = None) -> None:
    table = Table(title=title or f"Repertory {repertory.id[:8]} ({repertory.status.value})")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Artist", style="green")
    table.add_column("Category", style="yellow")
    table.add_column("Key", style="magenta")
    table.add_column("Direction")
    table.add_column("ID", style="dim")

    for i, song in enumerate(repertory.songs, 1):
        title_text = song.title
        if song.is_recent_repeat:
            title_text += " [bold red](recent)[/bold red]"
        table.add_row(
            str(i),
            title_text,
            song.artist,
            song.category.label,
            song.key or "-",
            song.ministration.direction,
            song.id[:8],
        )

    console.print(table)


def _render_ministrations(repertory: Repertory) -> None:
    for i, song in enumerate(repertory.songs, 1):
        body = song.ministration.text
        if song.ministration.verse:
            body += f"\n\n[italic]{song.ministration.verse}[/italic]"
        console.print(
            Panel(body, title=f"{i}. {song.title} - {song.ministration.direction}", border_style="dim")
        )


def _render_warnings(orchestrator: Orchestrator) -> None:
    for warning in orchestrator.state.warnings:
        console.print(f"[yellow]Quota not followed - {warning}[/yellow]")


@app.command()
def quota(
    category: str = typer.Argument(..., help="Category key"),
    count: int = typer.Argument(..., help="Number of songs (0 excludes the category)"),
    config_path: Path = ConfigOption,
) -> None:
    """Set how many songs to generate for a category."""
    config = _load_config(config_path)
    orchestrator = _build_orchestrator(config)

    try:
        value = orchestrator.set_quota(category, count)
    except LouveAIError as e:
        _fail(e)

    config.category_counts = dict(orchestrator.state.generator.category_counts)
    config.save(config_path or get_config_path())
    console.print(f"[green]{config.catalog.get(category).label}: {value}[/green]")


@app.command()
def prompt(
    text: str = typer.Argument(..., help="Free-text guidance for every generation"),
    config_path: Path = ConfigOption,
) -> None:
    """Set the service-wide guidance sent with every generation."""
    config = _load_config(config_path)
    config.global_prompt = text
    config.save(config_path or get_config_path())
    console.print("[green]Guidance saved.[/green]")


@app.command()
def categories(config_path: Path = ConfigOption) -> None:
    """List configured categories and their quotas."""
    config = _load_config(config_path)

    table = Table(title="Categories")
    table.add_column("Key", style="cyan")
    table.add_column("Label")
    table.add_column("Quota", justify="right", style="magenta")
    for category in config.catalog:
        table.add_row(category.key, category.label, str(config.category_counts.get(category.key, 0)))
    console.print(table)


@app.command()
def generate(
    count: Optional[list[str]] = typer.Option(
        None,
        "--count",
        "-n",
        help="Quota override for this run, as KEY=N (repeatable)",
    ),
    guidance: Optional[str] = typer.Option(
        None,
        "--prompt",
        "-p",
        help="Guidance override for this run",
    ),
    avoid: Optional[list[str]] = typer.Option(
        None,
        "--avoid",
        "-x",
        help="Song title to keep out of this run (repeatable)",
    ),
    config_path: Path = ConfigOption,
) -> None:
    """Generate a new draft repertory."""
    config = _load_config(config_path)
    orchestrator = _build_orchestrator(config)

    try:
        for item in count or []:
            key, sep, value = item.partition("=")
            if not sep or not value.strip().lstrip("-").isdigit():
                console.print(f"[red]Invalid --count '{item}', expected KEY=N[/red]")
                raise typer.Exit(1)
            orchestrator.set_quota(key.strip(), int(value))
        if guidance is not None:
            orchestrator.set_global_prompt(guidance)
        if avoid:
            orchestrator.set_avoided_songs(avoid)

        with console.status("[cyan]Generating repertory...[/cyan]"):
            draft = asyncio.run(orchestrator.generate_full())
    except LouveAIError as e:
        _fail(e)

    _render_repertory(draft, title="Draft repertory")
    _render_warnings(orchestrator)


@app.command()
def show(
    ministration: bool = typer.Option(
        False,
        "--ministration",
        "-m",
        help="Also show ministration notes",
    ),
    config_path: Path = ConfigOption,
) -> None:
    """Show the current draft."""
    orchestrator = _build_orchestrator(_load_config(config_path))
    draft = _require_draft(orchestrator)

    _render_repertory(draft)
    if ministration:
        _render_ministrations(draft)


@app.command()
def swap(
    song: str = typer.Argument(..., help="Song position (1-based) or id"),
    config_path: Path = ConfigOption,
) -> None:
    """Swap one song for another from the same category."""
    orchestrator = _build_orchestrator(_load_config(config_path))
    target = _resolve_song(_require_draft(orchestrator), song)

    try:
        with console.status(f"[cyan]Replacing '{target.title}'...[/cyan]"):
            draft = asyncio.run(orchestrator.regenerate_one(target.id))
    except LouveAIError as e:
        _fail(e)

    _render_repertory(draft)


@app.command()
def adjust(
    song: str = typer.Argument(..., help="Song position (1-based) or id"),
    instruction: str = typer.Argument(..., help="How the replacement should differ"),
    config_path: Path = ConfigOption,
) -> None:
    """Replace one song following a custom instruction."""
    orchestrator = _build_orchestrator(_load_config(config_path))
    target = _resolve_song(_require_draft(orchestrator), song)

    try:
        with console.status(f"[cyan]Adjusting '{target.title}'...[/cyan]"):
            draft = asyncio.run(orchestrator.adjust_one(target.id, instruction))
    except LouveAIError as e:
        _fail(e)

    _render_repertory(draft)


@app.command()
def move(
    position: int = typer.Argument(..., help="Song position (1-based)"),
    direction: Direction = typer.Argument(..., help="up or down"),
    config_path: Path = ConfigOption,
) -> None:
    """Move a draft song one position up or down."""
    orchestrator = _build_orchestrator(_load_config(config_path))
    _require_draft(orchestrator)

    draft = orchestrator.move(position - 1, direction)
    _render_repertory(draft)


@app.command()
def finalize(
    name: Optional[str] = typer.Option(
        None, "--name", help="Service name (defaults to the name of an edited repertory)"
    ),
    date: Optional[str] = typer.Option(
        None, "--date", help="Service date, e.g. 2026-11-01 (defaults to the edited date)"
    ),
    config_path: Path = ConfigOption,
) -> None:
    """Schedule the draft for a service."""
    orchestrator = _build_orchestrator(_load_config(config_path))
    draft = _require_draft(orchestrator)

    if name is None:
        name = draft.service_name or ""
    if date is None:
        date = draft.scheduled_date or ""

    try:
        approved = orchestrator.finalize(name, date)
    except LouveAIError as e:
        _fail(e)

    console.print(
        f"[green]Scheduled '{approved.service_name}' on {approved.scheduled_date}[/green] "
        f"[dim]({approved.id})[/dim]"
    )


@app.command("list")
def list_repertories(config_path: Path = ConfigOption) -> None:
    """List scheduled repertories, newest first."""
    orchestrator = _build_orchestrator(_load_config(config_path))
    repertories = orchestrator.store.repertories

    if not repertories:
        console.print("[yellow]No scheduled repertories yet.[/yellow]")
        return

    table = Table(title=f"Scheduled services ({len(repertories)})")
    table.add_column("ID", style="dim")
    table.add_column("Service", style="cyan")
    table.add_column("Date", style="green")
    table.add_column("Songs")
    for repertory in repertories:
        table.add_row(
            repertory.id,
            repertory.service_name or "-",
            repertory.scheduled_date or "-",
            ", ".join(f"{i}. {s.title}" for i, s in enumerate(repertory.songs, 1)),
        )
    console.print(table)


@app.command()
def edit(
    repertory_id: str = typer.Argument(..., help="Scheduled repertory id"),
    config_path: Path = ConfigOption,
) -> None:
    """Open a scheduled repertory as the draft for editing."""
    orchestrator = _build_orchestrator(_load_config(config_path))

    try:
        draft = orchestrator.open_for_edit(repertory_id)
    except LouveAIError as e:
        _fail(e)

    _render_repertory(draft, title=f"Editing '{draft.service_name}' ({draft.scheduled_date})")


@app.command()
def delete(
    repertory_id: str = typer.Argument(..., help="Scheduled repertory id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config_path: Path = ConfigOption,
) -> None:
    """Delete a scheduled repertory."""
    orchestrator = _build_orchestrator(_load_config(config_path))

    if not yes and not typer.confirm(f"Delete repertory {repertory_id}?"):
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit()

    if orchestrator.delete(repertory_id):
        console.print(f"[green]Deleted {repertory_id}[/green]")
    else:
        console.print(f"[yellow]Nothing to delete: {repertory_id}[/yellow]")


@app.command()
def discard(config_path: Path = ConfigOption) -> None:
    """Discard the current draft."""
    orchestrator = _build_orchestrator(_load_config(config_path))
    orchestrator.discard_draft()
    console.print("[green]Draft discarded.[/green]")


@app.command()
def recent(config_path: Path = ConfigOption) -> None:
    """Show titles used within the anti-repetition window."""
    config = _load_config(config_path)
    orchestrator = _build_orchestrator(config)
    titles = sorted(orchestrator.recent_titles())

    if not titles:
        console.print(f"[dim]No songs used in the last {config.recent_window_days} days.[/dim]")
        return

    console.print(f"[bold]Used in the last {config.recent_window_days} days:[/bold]")
    for title in titles:
        console.print(f"  - {title}")


@app.command()
def config(
    action: str = typer.Argument("show", help="Action to perform (show, path, init)"),
    config_path: Path = ConfigOption,
) -> None:
    """Manage configuration."""
    path = config_path or get_config_path()

    if action == "path":
        console.print(str(path))
    elif action == "init":
        if path.exists():
            console.print(f"[yellow]Config already exists at {path}[/yellow]")
            return
        AppConfig().save(path)
        console.print(f"[green]Created config at {path}[/green]")
    elif action == "show":
        cfg = _load_config(config_path)
        console.print(f"[bold]Config file:[/bold] {path}")
        console.print(f"[bold]Model:[/bold] {cfg.model} @ {cfg.api_base}")
        console.print(f"[bold]Language:[/bold] {cfg.language}")
        console.print(f"[bold]Recent window:[/bold] {cfg.recent_window_days} days")
        console.print(f"[bold]Database:[/bold] {cfg.db_path}")
        console.print(f"[bold]Session log:[/bold] {cfg.log_dir / LOG_FILENAME}")
    else:
        console.print(f"[red]Unknown action: {action}. Use show, path or init.[/red]")
        raise typer.Exit(1)


def cli_entry() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli_entry()
