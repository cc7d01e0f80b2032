"""
Collaborator protocols and the task-master file source.

The sync controller talks to the outside world only through the
TaskSource, TaskWatcher and TaskWriter protocols defined here, so tests
and other front-ends can substitute their own implementations.

TaskMasterFileSource reads a task-master project file:

    <project>/.taskmaster/tasks/tasks.json

which comes in two layouts, tagged and flat:

    {"master": {"tasks": [...]}, "feature-x": {"tasks": [...]}}
    {"tasks": [...]}
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from taskmirror.core.sync.models import LoadResult, TasksUpdated, WriteResult

logger = logging.getLogger(__name__)

DEFAULT_TASKS_FILE = ".taskmaster/tasks/tasks.json"
DEFAULT_TAG = "master"


class TasksFileError(Exception):
    """Raised when a tasks file is missing or malformed."""

    pass


@runtime_checkable
class TaskSource(Protocol):
    """Provides the current task list of a project."""

    def load_tasks(self, project_path: str | Path) -> LoadResult:
        """Load tasks; failures are reported in the result, never raised."""
        ...

    def last_modified(self, project_path: str | Path) -> datetime | None:
        """When the project's task data last changed (None if unknown)."""
        ...


@runtime_checkable
class TaskWatcher(Protocol):
    """Watches a project's task data and reports changes."""

    @property
    def watched_path(self) -> Path | None:
        """Project currently being watched, if any."""
        ...

    def start(self, project_path: str | Path, on_change: Callable[[TasksUpdated], None]) -> None:
        """Begin watching, replacing any previous watch."""
        ...

    def stop(self) -> None:
        """Stop watching; no callback may run after this returns."""
        ...


@runtime_checkable
class TaskWriter(Protocol):
    """Pushes local task changes back to the external task tool."""

    def set_status(self, project_path: str | Path, task_id: str, status: str) -> WriteResult:
        ...


def qualify_subtasks(task: dict[str, Any]) -> dict[str, Any]:
    """
    Give a task's subtasks globally unique ``<task>.<sub>`` ids.

    Task-master numbers subtasks per task, so subtask 1 of task 3 and
    subtask 1 of task 4 would otherwise collide in the store. Numeric
    subtask dependencies refer to siblings and are qualified the same way.

    Args:
        task: Raw task record (not modified)

    Returns:
        Copy of the record with qualified subtask ids
    """
    subtasks = task.get("subtasks")
    if not isinstance(subtasks, list):
        return task

    task_id = str(task.get("id"))

    def qualify(value: Any) -> Any:
        text = str(value)
        return text if "." in text else f"{task_id}.{text}"

    qualified = []
    for subtask in subtasks:
        if not isinstance(subtask, dict):
            qualified.append(subtask)
            continue
        entry = dict(subtask)
        if "id" in entry:
            entry["id"] = qualify(entry["id"])
        deps = entry.get("dependencies")
        if isinstance(deps, list):
            entry["dependencies"] = [qualify(dep) if isinstance(dep, int) else dep for dep in deps]
        qualified.append(entry)

    return {**task, "subtasks": qualified}


class TaskMasterFileSource:
    """
    Task source backed by a task-master ``tasks.json`` file.

    Example:
        >>> source = TaskMasterFileSource()
        >>> result = source.load_tasks("/path/to/project")
        >>> if result.success:
        ...     store.set_tasks(result.tasks)
    """

    def __init__(self, tasks_file: str = DEFAULT_TASKS_FILE, tag: str = DEFAULT_TAG) -> None:
        """
        Initialize the source.

        Args:
            tasks_file: Tasks file path relative to the project root
            tag: Tag to read in the tagged layout
        """
        self.tasks_file = tasks_file
        self.tag = tag

    def tasks_path(self, project_path: str | Path) -> Path:
        """Full path of the tasks file for a project."""
        return Path(project_path) / self.tasks_file

    def read_tasks(self, path: Path) -> list[dict[str, Any]]:
        """
        Read and unpack a tasks file.

        Args:
            path: Full path to tasks.json

        Returns:
            Raw task records with qualified subtask ids

        Raises:
            TasksFileError: If the file is missing, unreadable or malformed
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise TasksFileError(
                "No tasks.json file found. Please ensure this is a valid task-master project."
            ) from e
        except json.JSONDecodeError as e:
            raise TasksFileError(f"Failed to parse {path}: {e}") from e
        except OSError as e:
            raise TasksFileError(f"Failed to read {path}: {e}") from e

        tasks = self._unpack(data)
        if not all(isinstance(task, dict) for task in tasks):
            raise TasksFileError(f"Malformed task records in {path}")
        return [qualify_subtasks(task) for task in tasks]

    def _unpack(self, data: Any) -> list[Any]:
        if isinstance(data, list):
            return data
        if not isinstance(data, dict):
            raise TasksFileError("tasks.json must contain a JSON object or array")

        tagged = data.get(self.tag)
        if isinstance(tagged, dict) and isinstance(tagged.get("tasks"), list):
            return tagged["tasks"]
        tasks = data.get("tasks", [])
        if not isinstance(tasks, list):
            raise TasksFileError("'tasks' must be a JSON array")
        return tasks

    def load_tasks(self, project_path: str | Path) -> LoadResult:
        path = self.tasks_path(project_path)
        try:
            tasks = self.read_tasks(path)
        except TasksFileError as e:
            logger.warning("Could not load tasks from %s: %s", path, e)
            return LoadResult.failure(str(e))
        logger.debug("Read %d tasks from %s", len(tasks), path)
        return LoadResult(success=True, tasks=tasks, source="file")

    def last_modified(self, project_path: str | Path) -> datetime | None:
        try:
            mtime = self.tasks_path(project_path).stat().st_mtime
        except OSError:
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)
