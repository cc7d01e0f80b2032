"""
taskmirror CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from rich.console import Console

from taskmirror import __version__
from taskmirror.cli import correlate, sync

app = typer.Typer(
    name="taskmirror",
    help="Mirror task-master tasks and correlate them with git history",
    no_args_is_help=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for CLI commands.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    taskmirror - keep a live view of a task-master project.

    Common Workflows:
        taskmirror sync                   # Load and summarise tasks
        taskmirror sync --watch           # Follow the tasks file
        taskmirror correlate              # Match commits to tasks
        taskmirror correlate --apply      # Update statuses from commits
    """
    setup_logging(debug)
    ctx.obj = {"debug": debug}


app.command(name="sync")(sync.sync)
app.command(name="correlate")(correlate.correlate)


@app.command()
def version() -> None:
    """Show taskmirror version and exit."""
    console.print(f"taskmirror version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
