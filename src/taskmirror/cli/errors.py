"""
Standardized error handling and exit codes for the taskmirror CLI.

Provides consistent error messages with actionable guidance and
standard exit codes across commands.
"""

from enum import IntEnum

from rich.console import Console

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for taskmirror CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error or user-triggered error."""

    USER_ERROR = 2
    """User configuration or input error (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Failed to load tasks",
        ...     reason="No tasks.json file found",
        ...     solution="task-master init",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_tasks_not_loaded_error(reason: str) -> None:
    """Print error when the project's tasks could not be loaded."""
    print_error(
        "Failed to load tasks",
        reason=reason,
        solution="task-master init  # or pass the project root as an argument",
    )


def print_no_commits_error() -> None:
    """Print error when no commits were found to correlate."""
    print_error(
        "No commits found",
        reason="The directory is not a git repository or no commits match the filters",
        solution="git log  # check the history, or widen --since / --max-count",
    )


__all__ = [
    "ExitCode",
    "console",
    "print_error",
    "print_no_commits_error",
    "print_tasks_not_loaded_error",
]
