"""
Polling watcher for task-master project files.

Watches a project's tasks.json for changes and notifies a callback with
the freshly read task list.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from taskmirror.core.sync.models import TasksUpdated
from taskmirror.core.sync.source import TaskMasterFileSource, TasksFileError

logger = logging.getLogger(__name__)


class PollingTaskWatcher:
    """
    Poll tasks.json and report changes.

    Detects changes by modification time and re-reads the file only when
    it changed. A change whose content is identical to the last delivered
    list is not reported. The state present when watching starts is not
    reported either; callers load it themselves.

    Polling runs on a daemon thread. poll() can also be driven directly,
    which is what the tests do.

    Example:
        >>> watcher = PollingTaskWatcher(poll_interval=0.5)
        >>> watcher.start("/path/to/project", on_change=print)
        >>> watcher.stop()
    """

    def __init__(
        self,
        source: TaskMasterFileSource | None = None,
        poll_interval: float = 1.0,
    ) -> None:
        """
        Initialize the watcher.

        Args:
            source: Used to locate and parse the tasks file
            poll_interval: Polling interval in seconds (default: 1.0)
        """
        self.source = source or TaskMasterFileSource()
        self.poll_interval = poll_interval

        self._project_path: Path | None = None
        self._on_change: Callable[[TasksUpdated], None] | None = None
        self._last_mtime: float | None = None
        self._last_tasks: list[dict[str, Any]] | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def watched_path(self) -> Path | None:
        return self._project_path

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(
        self,
        project_path: str | Path,
        on_change: Callable[[TasksUpdated], None],
        background: bool = True,
    ) -> None:
        """
        Start watching a project, replacing any previous watch.

        Args:
            project_path: Project root containing the tasks file
            on_change: Callback for change notifications
            background: Start the polling thread (False for manual poll())
        """
        self.stop()

        self._project_path = Path(project_path)
        self._on_change = on_change
        self._last_mtime = self._current_mtime()
        self._last_tasks = None
        self._stop_event = threading.Event()

        if background:
            self._thread = threading.Thread(
                target=self._run,
                name=f"taskmirror-watch-{self._project_path.name}",
                daemon=True,
            )
            self._thread.start()
        logger.debug("Watching %s", self.source.tasks_path(self._project_path))

    def stop(self) -> None:
        """Stop watching. Safe to call when nothing is being watched."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None
        self._project_path = None
        self._on_change = None

    def _run(self) -> None:
        stop_event = self._stop_event
        while not stop_event.wait(self.poll_interval):
            self.poll()

    def _current_mtime(self) -> float | None:
        if self._project_path is None:
            return None
        try:
            return self.source.tasks_path(self._project_path).stat().st_mtime
        except OSError:
            return None

    def poll(self) -> TasksUpdated | None:
        """
        Check the tasks file once.

        Returns:
            The notification delivered to the callback, or None if there
            was no change to report
        """
        if self._project_path is None or self._stop_event.is_set():
            return None

        current_mtime = self._current_mtime()
        if current_mtime is None:
            # File missing; report again once it reappears
            self._last_mtime = None
            return None
        if current_mtime == self._last_mtime:
            return None
        self._last_mtime = current_mtime

        path = self.source.tasks_path(self._project_path)
        try:
            tasks = self.source.read_tasks(path)
        except TasksFileError as e:
            logger.warning("Error processing change to %s: %s", path, e)
            update = TasksUpdated(success=False, error=str(e))
        else:
            if tasks == self._last_tasks:
                return None
            self._last_tasks = tasks
            logger.debug("Tasks file changed: %s", path)
            update = TasksUpdated(success=True, tasks=tasks)

        callback = self._on_change
        if callback is None or self._stop_event.is_set():
            return None
        callback(update)
        return update
