"""
taskmirror CLI - Sync command.

Loads a task-master project into the task store and shows how many tasks
sit in each status, optionally following the tasks file as it changes.
"""

import time
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from taskmirror.cli.errors import ExitCode, print_tasks_not_loaded_error
from taskmirror.core.session import ProjectSession
from taskmirror.core.tasks import TaskState, TaskStatus
from taskmirror.core.tasks.cache import load_snapshot, save_snapshot
from taskmirror.core.tasks.selectors import get_task_counts

console = Console()


def _counts_table(state: TaskState) -> Table:
    counts = get_task_counts(state)
    table = Table(title=f"Tasks in {state.current_project or 'project'}")
    table.add_column("Status", style="cyan")
    table.add_column("Tasks", justify="right")
    for status in TaskStatus:
        table.add_row(status.value, str(counts.get(status, 0)))
    table.add_row("[bold]total[/bold]", f"[bold]{len(state.tasks)}[/bold]")
    return table


def sync(
    project: Path = typer.Argument(
        Path("."),
        help="Project root containing .taskmaster/",
    ),
    watch: bool = typer.Option(
        False,
        "--watch",
        "-w",
        help="Keep following the tasks file until interrupted",
    ),
    cache: Path | None = typer.Option(
        None,
        "--cache",
        help="Snapshot file to rehydrate from and save to",
    ),
) -> None:
    """
    Load a task-master project and show task counts per status.

    With --cache, the store is first rehydrated from the snapshot and only
    re-read when the tasks file is newer.

    Examples:
        taskmirror sync                  # Current directory
        taskmirror sync ~/code/app -w    # Follow changes
        taskmirror sync --cache .taskmirror/snapshot.json
    """
    session = ProjectSession.open(project)
    store = session.store

    if cache is not None and (snapshot := load_snapshot(cache)) is not None:
        store.restore(snapshot)
    session.controller.refresh_if_stale(session.project_dir)

    if store.state.error:
        print_tasks_not_loaded_error(store.state.error)
        raise typer.Exit(ExitCode.USER_ERROR)

    console.print(_counts_table(store.state))
    if cache is not None:
        save_snapshot(cache, store.snapshot())

    if not watch:
        return

    last_seen = store.state.last_sync

    def on_change(state: TaskState) -> None:
        nonlocal last_seen
        if state.error:
            console.print(f"[yellow]⚠[/yellow]  {state.error}")
        elif state.last_sync != last_seen:
            last_seen = state.last_sync
            console.print(_counts_table(state))

    store.subscribe(on_change)
    session.controller.start_realtime_sync(session.project_dir)
    console.print("[blue]Watching for changes (Ctrl+C to stop)...[/blue]")
    try:
        while True:
            time.sleep(session.config.sync.poll_interval)
    except KeyboardInterrupt:
        console.print("[dim]Stopped watching[/dim]")
    finally:
        session.close()
