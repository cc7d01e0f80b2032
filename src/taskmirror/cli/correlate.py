"""
taskmirror CLI - Correlate command.

Matches recent git commits to task-master tasks and, with --apply,
moves the matched tasks forward and writes the new statuses back
through the task-master CLI.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from taskmirror.cli.errors import (
    ExitCode,
    print_no_commits_error,
    print_tasks_not_loaded_error,
)
from taskmirror.core.correlation import CorrelationOptions, CorrelationResult
from taskmirror.core.session import ProjectSession
from taskmirror.utils.git import get_commit_records

console = Console()


def _results_table(results: list[tuple[str, CorrelationResult]]) -> Table:
    table = Table(title="Commit correlations")
    table.add_column("Commit", style="dim")
    table.add_column("Message")
    table.add_column("Task", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Progress")
    table.add_column("Action")
    for subject, result in results:
        table.add_row(
            result.commit_hash[:8],
            subject,
            result.task_id or "-",
            f"{result.confidence:.2f}",
            result.progress_estimate.value,
            result.suggested_action.value,
        )
    return table


def correlate(
    project: Path = typer.Argument(
        Path("."),
        help="Project root (a git repository containing .taskmaster/)",
    ),
    since: str | None = typer.Option(
        None,
        "--since",
        help="Only commits more recent than this (any git date, e.g. '2 weeks ago')",
    ),
    max_count: int | None = typer.Option(
        None,
        "--max-count",
        "-n",
        min=1,
        help="Maximum number of commits to analyse",
    ),
    ai: bool = typer.Option(
        False,
        "--ai",
        help="Fall back to semantic matching against task titles",
    ),
    apply: bool = typer.Option(
        False,
        "--apply",
        help="Update matched tasks and push their status to task-master",
    ),
) -> None:
    """
    Correlate git commits with task-master tasks.

    Examples:
        taskmirror correlate                       # All commits
        taskmirror correlate --since "1 week ago"  # Recent commits only
        taskmirror correlate -n 20 --ai            # Semantic fallback
        taskmirror correlate --apply               # Update task statuses
    """
    session = ProjectSession.open(project, write_back=apply)
    if not session.sync():
        print_tasks_not_loaded_error(session.store.state.error or "Unknown error")
        raise typer.Exit(ExitCode.USER_ERROR)

    commits = get_commit_records(session.project_dir, since=since, max_count=max_count)
    if not commits:
        print_no_commits_error()
        raise typer.Exit(ExitCode.USER_ERROR)

    defaults = session.correlation.default_options
    options = CorrelationOptions(
        use_ai=ai or defaults.use_ai,
        confidence_threshold=defaults.confidence_threshold,
    )
    tasks = list(session.store.state.tasks.values())
    results = session.correlation.analyze_commits(commits, tasks, options)

    rows = [
        (commit.message.splitlines()[0] if commit.message else "", result)
        for commit, result in zip(commits, results)
    ]
    console.print(_results_table(rows))

    matched = sum(1 for result in results if result.task_id is not None)
    console.print(f"[dim]{matched} of {len(results)} commit(s) reference a task[/dim]")

    if not apply:
        return

    applied = sum(
        1 for result in results if session.correlation.update_task_progress(result, options)
    )
    writes = session.controller.flush_pending_updates(session.project_dir)
    failed = [write for write in writes if not write.success]

    console.print(
        f"[green]✓[/green] Applied {applied} correlation(s), "
        f"pushed {len(writes)} status update(s)"
    )
    if failed:
        for write in failed:
            console.print(f"[red]✗[/red] Task {write.task_id}: {write.error}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)
