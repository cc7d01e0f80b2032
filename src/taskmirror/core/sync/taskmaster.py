"""
Writer that pushes task changes through the task-master CLI.

Runs ``task-master set-status --id=<id> --status=<status>`` in the
project directory.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from taskmirror.core.sync.models import WriteResult

logger = logging.getLogger(__name__)


class TaskMasterCliError(Exception):
    """Exception raised when a task-master command fails."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class TaskMasterCli:
    """
    TaskWriter implementation using the task-master command line tool.

    Example:
        >>> cli = TaskMasterCli()
        >>> result = cli.set_status("/path/to/project", "27.6", "done")
        >>> result.success
        True
    """

    def __init__(self, command: str = "task-master", timeout: float = 10.0) -> None:
        self.command = command
        self.timeout = timeout

    def _run(self, project_path: str | Path, args: list[str]) -> str:
        """
        Run a task-master command and return its stdout.

        Raises:
            TaskMasterCliError: If the command fails, times out or is missing
        """
        cmd = [self.command, *args]
        logger.debug("Running task-master command: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                cwd=Path(project_path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise TaskMasterCliError(f"Command timed out: {' '.join(cmd)}", command=cmd) from e
        except FileNotFoundError as e:
            raise TaskMasterCliError(f"{self.command} not found in PATH", command=cmd) from e

        stderr = result.stderr.strip() if result.stderr else ""
        if result.returncode != 0:
            raise TaskMasterCliError(
                f"Command failed: {' '.join(cmd)}", command=cmd, stderr=stderr
            )
        if stderr and "warn" not in stderr.lower():
            logger.warning("task-master stderr: %s", stderr)
        return result.stdout.strip() if result.stdout else ""

    def set_status(self, project_path: str | Path, task_id: str, status: str) -> WriteResult:
        """Set a task's status; failures are returned, not raised."""
        try:
            self._run(project_path, ["set-status", f"--id={task_id}", f"--status={status}"])
        except TaskMasterCliError as e:
            return WriteResult(
                success=False,
                task_id=task_id,
                error=f"Failed to update task status: {e.stderr or e}",
            )
        return WriteResult(
            success=True,
            task_id=task_id,
            message=f"Task {task_id} status updated to {status}",
        )
