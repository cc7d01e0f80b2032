"""
Synchronization between the task store and a task-master project.

Example:
    >>> from taskmirror.core.sync import PollingTaskWatcher, SyncController
    >>> from taskmirror.core.tasks import TaskStore
    >>> store = TaskStore()
    >>> controller = SyncController(store, watcher=PollingTaskWatcher())
    >>> controller.sync_with_file_system(".")
    >>> store.state.error is None
    True
"""

from taskmirror.core.sync.models import LoadResult, TasksUpdated, WriteResult
from taskmirror.core.sync.service import SyncController
from taskmirror.core.sync.source import (
    TaskMasterFileSource,
    TasksFileError,
    TaskSource,
    TaskWatcher,
    TaskWriter,
)
from taskmirror.core.sync.taskmaster import TaskMasterCli, TaskMasterCliError
from taskmirror.core.sync.watcher import PollingTaskWatcher

__all__ = [
    "LoadResult",
    "PollingTaskWatcher",
    "SyncController",
    "TaskMasterCli",
    "TaskMasterCliError",
    "TaskMasterFileSource",
    "TaskSource",
    "TaskWatcher",
    "TaskWriter",
    "TasksFileError",
    "TasksUpdated",
    "WriteResult",
]
