"""
Task models and the normalized task store.

This module provides the Task/Subtask models, the TaskStore that keeps
them normalized with a per-status index, and read-only selectors.
"""

from .models import Subtask, Task, TaskPriority, TaskRecord, TaskStatus, TaskWithSubtasks
from .state import EPOCH, StoreSnapshot, TaskState
from .store import TaskStore

__all__ = [
    # Models
    "Subtask",
    "Task",
    "TaskPriority",
    "TaskRecord",
    "TaskStatus",
    "TaskWithSubtasks",
    # Store
    "EPOCH",
    "StoreSnapshot",
    "TaskState",
    "TaskStore",
]
