"""
Per-project wiring of store, sync controller and correlation service.

A ProjectSession owns one TaskStore for one open project. Front-ends
create a session when a project is opened and close it when the project
changes; nothing here is a process-wide singleton.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from taskmirror.core.config import TaskMirrorConfig, load_config
from taskmirror.core.correlation import TaskCorrelationService
from taskmirror.core.sync import (
    PollingTaskWatcher,
    SyncController,
    TaskMasterCli,
    TaskMasterFileSource,
)
from taskmirror.core.tasks import TaskStore


@dataclass
class ProjectSession:
    """Everything needed to mirror one project."""

    project_dir: Path
    config: TaskMirrorConfig
    store: TaskStore
    controller: SyncController
    correlation: TaskCorrelationService

    @classmethod
    def open(
        cls,
        project_dir: Path | str,
        config: TaskMirrorConfig | None = None,
        write_back: bool = False,
    ) -> ProjectSession:
        """
        Build a session for a project directory.

        Args:
            project_dir: Project root
            config: Configuration (loaded from the project when omitted)
            write_back: Attach the task-master CLI writer and route
                correlation progress into the store

        Returns:
            A session whose store is still empty; call sync() to load it
        """
        project_dir = Path(project_dir).resolve()
        config = config or load_config(project_dir)

        store = TaskStore(default_status=config.store.default_status)
        source = TaskMasterFileSource(tasks_file=config.sync.tasks_file, tag=config.sync.tag)
        controller = SyncController(
            store,
            source=source,
            watcher=PollingTaskWatcher(source, poll_interval=config.sync.poll_interval),
            writer=(
                TaskMasterCli(config.sync.cli_command, timeout=config.sync.cli_timeout)
                if write_back
                else None
            ),
        )
        correlation = TaskCorrelationService.from_config(
            config.correlation,
            progress_sink=controller.apply_correlation if write_back else None,
        )
        return cls(project_dir, config, store, controller, correlation)

    def sync(self) -> bool:
        """Load the project's tasks; returns False (error on the store) on failure."""
        self.controller.sync_with_file_system(self.project_dir)
        return self.store.state.error is None

    def close(self) -> None:
        """Stop real-time sync and drop the loaded tasks."""
        self.controller.stop_realtime_sync()
        self.store.reset()
