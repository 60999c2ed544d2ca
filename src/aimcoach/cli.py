"""
AimCoach CLI - Command Line Interface for the aim coaching engine

Provides commands for:
- Chatting with the coach
- Running a task pipeline directly
- Inspecting threads, context and coaching status
- Importing aim-trainer runs from CSV exports
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from aimcoach import __version__
from aimcoach.coaching.wiring import CoachingComponents, build_components
from aimcoach.core.config import (
    configure_logging,
    generate_default_config,
    get_config,
    load_config,
    set_config,
)
from aimcoach.core.constants import ActivitySourceName, Role, TaskType
from aimcoach.core.errors import AimCoachError
from aimcoach.infra.database import get_db

app = typer.Typer(
    name="aimcoach",
    help="Aim-training coach - turns KovaaK's and Aim Lab runs into reports, playlists and advice",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]AimCoach[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose output"
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a config file (.yaml, .toml or .json)",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """AimCoach - Coaching for FPS Aim Training"""
    config = load_config(config_file)
    set_config(config)
    configure_logging(config.logging, "DEBUG" if verbose else None)


def _components() -> CoachingComponents:
    return build_components(get_config())


def _run(coro):
    """Run a coroutine, turning engine errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except AimCoachError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


# =============================================================================
# Conversation
# =============================================================================


@app.command()
def chat(
    user: str = typer.Argument(..., help="Player id"),
    message: Optional[str] = typer.Option(
        None, "--message", "-m", help="Send a single message and exit"
    ),
    thread: Optional[str] = typer.Option(
        None, "--thread", "-t", help="Conversation thread (defaults to the player id)"
    ),
) -> None:
    """
    Talk to the coach.

    Without --message an interactive session starts; an empty line or
    'exit' ends it. Each line is one turn through the chat graph.
    """
    orchestrator = _components().orchestrator

    async def send(text: str) -> str:
        state = await orchestrator.invoke(
            user, [{"role": Role.USER.value, "content": text}], thread_id=thread
        )
        return state.messages[-1].content

    if message is not None:
        console.print(_run(send(message)))
        return

    console.print(f"\n[bold blue]AimCoach[/bold blue] - chatting as [cyan]{user}[/cyan]\n")
    while True:
        text = typer.prompt("you", default="", show_default=False)
        if not text.strip() or text.strip().lower() in ("exit", "quit"):
            break
        reply = _run(send(text))
        console.print(f"[green]coach[/green] {reply}\n")


@app.command()
def history(
    user: str = typer.Argument(..., help="Player id"),
    thread: Optional[str] = typer.Option(None, "--thread", "-t", help="Conversation thread"),
) -> None:
    """Show the messages stored for a thread."""
    orchestrator = _components().orchestrator
    snapshot = _run(orchestrator.get_messages(user, thread))

    table = Table(title=f"Thread {snapshot['thread_id']} ({snapshot['user_context']})")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Role", style="cyan")
    table.add_column("Message")
    for i, turn in enumerate(snapshot["messages"], 1):
        table.add_row(str(i), turn.role.value, turn.content)

    if not snapshot["messages"]:
        console.print("[yellow]No messages in this thread yet.[/yellow]")
        return
    console.print(table)


# =============================================================================
# Tasks
# =============================================================================


@app.command()
def task(
    user: str = typer.Argument(..., help="Player id"),
    task_type: TaskType = typer.Argument(..., help="Task pipeline to run"),
    as_json: bool = typer.Option(False, "--json", help="Print the full task result as JSON"),
) -> None:
    """Run one task pipeline directly, bypassing the chat graph."""
    components = _components()

    async def run():
        context = await components.detector.detect(
            user, await components.playlists.has_active(user)
        )
        return await components.router.execute(user, task_type, context.user_context)

    with console.status(f"Running {task_type.value}..."):
        outcome = _run(run())

    if not outcome.succeeded:
        console.print(f"[red]Task failed:[/red] {outcome.metadata.error_message}")
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(outcome.to_dict()))
        return

    console.print(Panel(outcome.task_result.content, title=task_type.value, border_style="green"))


# =============================================================================
# Inspection
# =============================================================================


@app.command()
def context(user: str = typer.Argument(..., help="Player id")) -> None:
    """Show the detected user context for a player."""
    components = _components()

    async def detect():
        has_playlist = await components.playlists.has_active(user)
        return await components.detector.detect(user, has_playlist)

    result = _run(detect())

    table = Table(title="User Context", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Context", result.user_context.value)
    table.add_row("Days Inactive", str(result.days_inactive))
    table.add_row("New Scores (24h)", str(result.new_scores_count))
    table.add_row("New User", "yes" if result.is_new_user else "no")
    console.print(table)


@app.command()
def status(user: str = typer.Argument(..., help="Player id")) -> None:
    """Show the coaching dashboard for a player."""
    snapshot = _run(_components().status.get_status(user))

    table = Table(title=f"Coaching Status - {user}", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Context", snapshot.user_context.value)
    table.add_row("Days Inactive", str(snapshot.days_inactive))
    table.add_row("Trend (7d)", snapshot.recent_trend.overall_trend.value)
    table.add_row("Sessions (7d)", str(snapshot.recent_trend.sessions_count))
    table.add_row("Avg Accuracy (7d)", f"{snapshot.recent_trend.average_accuracy:.1%}")
    table.add_row("Focus Today", ", ".join(snapshot.todays_focus.focus_skills))
    table.add_row("Scenarios", ", ".join(snapshot.todays_focus.recommended_scenarios))
    table.add_row("Duration", f"{snapshot.todays_focus.recommended_duration} min")
    if snapshot.active_playlist:
        playlist = snapshot.active_playlist
        table.add_row("Active Playlist", f"{playlist.title} ({playlist.total_duration // 60} min)")
    else:
        table.add_row("Active Playlist", "[yellow]none[/yellow]")
    console.print(table)


# =============================================================================
# Data and setup
# =============================================================================


@app.command("import-runs")
def import_runs(
    user: str = typer.Argument(..., help="Player id"),
    csv_path: Path = typer.Argument(
        ..., help="CSV export with timestamp, scenario, score and accuracy columns",
        exists=True, dir_okay=False,
    ),
    source: ActivitySourceName = typer.Option(
        ActivitySourceName.KOVAAKS, "--source", "-s", help="Aim trainer the runs came from"
    ),
) -> None:
    """Import aim-trainer runs from a CSV export."""
    try:
        count = get_db().import_activity_csv(csv_path, user, source)
    except ValueError as e:
        console.print(f"[red]Error importing runs:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Imported {count} {source.value} runs for {user}[/green]")


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("aimcoach.yaml"), help="Where to write the config file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """Write a default configuration file."""
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists[/yellow] (use --force to overwrite)")
        raise typer.Exit(1)

    generate_default_config(path)
    console.print(f"[green]Wrote default config to {path}[/green]")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
