"""
taskmirror - a live, indexed mirror of task-master projects.

Keeps an in-memory task store in step with a project's tasks file and
correlates git commits with the tasks they advance.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from taskmirror.core.config.models import TaskMirrorConfig
from taskmirror.core.tasks.models import Subtask, Task, TaskPriority, TaskStatus
from taskmirror.core.tasks.store import TaskStore

__all__ = [
    "Subtask",
    "Task",
    "TaskMirrorConfig",
    "TaskPriority",
    "TaskStatus",
    "TaskStore",
    "__version__",
]
