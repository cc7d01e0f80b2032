"""
Pytest configuration and shared fixtures.

Provides fixtures for temp directories, a task-master project on disk,
sample task data, and fake sync collaborators used across the test suite.
"""

import copy
import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from taskmirror.core.config import clear_cache
from taskmirror.core.sync.models import LoadResult, TasksUpdated, WriteResult

# ==============================================================================
# Sample Data
# ==============================================================================

SAMPLE_TASKS: list[dict[str, Any]] = [
    {
        "id": 1,
        "title": "Set up project",
        "description": "Scaffold the repository",
        "status": "done",
        "priority": "high",
        "dependencies": [],
        "subtasks": [],
    },
    {
        "id": 2,
        "title": "Git integration",
        "description": "Read commits and correlate them with tasks",
        "status": "in-progress",
        "priority": "medium",
        "dependencies": [1],
        "testStrategy": "Unit tests against a temporary repository",
        "subtasks": [
            {"id": 1, "title": "Read commit log", "status": "done"},
            {"id": 2, "title": "Commit correlation", "status": "pending", "dependencies": [1]},
        ],
    },
    {
        "id": 3,
        "title": "Kanban board view",
        "description": "Show tasks grouped by status",
        "status": "pending",
        "priority": "low",
        "dependencies": [2],
    },
]


@pytest.fixture
def sample_tasks() -> list[dict[str, Any]]:
    """Raw task records as task-master writes them (fresh copy per test)."""
    return copy.deepcopy(SAMPLE_TASKS)


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def write_tasks() -> Callable[..., Path]:
    """Return a helper that writes a tasks.json in the tagged layout."""

    def _write(project: Path, tasks: list[dict[str, Any]], tag: str = "master") -> Path:
        tasks_file = project / ".taskmaster" / "tasks" / "tasks.json"
        tasks_file.parent.mkdir(parents=True, exist_ok=True)
        tasks_file.write_text(json.dumps({tag: {"tasks": tasks}}, indent=2))
        return tasks_file

    return _write


@pytest.fixture
def project_dir(tmp_path, sample_tasks, write_tasks):
    """
    Provide a temporary task-master project.

    Creates:
    - .taskmaster/tasks/tasks.json (tagged layout, "master" tag)
    """
    project = tmp_path / "project"
    project.mkdir()
    write_tasks(project, sample_tasks)
    return project


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config and TASKMIRROR_* env vars from leaking into tests."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    for name in (
        "TASKMIRROR_DEFAULT_STATUS",
        "TASKMIRROR_POLL_INTERVAL",
        "TASKMIRROR_USE_AI",
        "TASKMIRROR_CONFIDENCE_THRESHOLD",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Fake Collaborators
# ==============================================================================


class FakeSource:
    """TaskSource returning a canned result."""

    def __init__(
        self,
        result: LoadResult | None = None,
        modified: datetime | None = None,
    ) -> None:
        self.result = result or LoadResult(success=True, tasks=[])
        self.modified = modified
        self.load_calls: list[str] = []
        self.error: Exception | None = None

    def load_tasks(self, project_path):
        self.load_calls.append(str(project_path))
        if self.error is not None:
            raise self.error
        return self.result

    def last_modified(self, project_path):
        return self.modified


class FakeWatcher:
    """TaskWatcher that records calls and lets tests fire notifications."""

    def __init__(self, fail_on_start: Exception | None = None) -> None:
        self.fail_on_start = fail_on_start
        self.start_calls: list[Path] = []
        self.stop_calls = 0
        self._callback = None
        self._path: Path | None = None

    @property
    def watched_path(self):
        return self._path

    def start(self, project_path, on_change):
        if self.fail_on_start is not None:
            raise self.fail_on_start
        self.start_calls.append(Path(project_path))
        self._path = Path(project_path)
        self._callback = on_change

    def stop(self):
        self.stop_calls += 1
        self._path = None

    def fire(self, update: TasksUpdated) -> None:
        """Deliver a notification through the last registered callback."""
        assert self._callback is not None
        self._callback(update)


class FakeWriter:
    """TaskWriter that records pushes and fails for chosen ids."""

    def __init__(self, fail_ids: set[str] | None = None) -> None:
        self.fail_ids = fail_ids or set()
        self.calls: list[tuple[str, str, str]] = []

    def set_status(self, project_path, task_id, status):
        self.calls.append((str(project_path), task_id, status))
        if task_id in self.fail_ids:
            return WriteResult(success=False, task_id=task_id, error=f"cannot update {task_id}")
        return WriteResult(success=True, task_id=task_id, message=f"{task_id} -> {status}")


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def fake_watcher():
    return FakeWatcher()


@pytest.fixture
def fake_writer():
    return FakeWriter()


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock():
    return StepClock()
