"""
Read-only views over a TaskState.

Selectors never mutate state. The status index may briefly reference an
id that is no longer in the task map, so every lookup skips gaps.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from taskmirror.core.tasks.models import TaskRecord, TaskStatus, TaskWithSubtasks
from taskmirror.core.tasks.state import TaskState


def get_tasks_by_status(state: TaskState, status: TaskStatus | str) -> list[TaskRecord]:
    """
    Get the task records currently holding a status, in bucket order.

    Args:
        state: Store state to read
        status: Status to look up

    Returns:
        Task records for the bucket (unknown status yields an empty list)
    """
    try:
        key = TaskStatus(status)
    except ValueError:
        return []
    ids = state.tasks_by_status.get(key, ())
    return [state.tasks[task_id] for task_id in ids if task_id in state.tasks]


def get_task_with_subtasks(state: TaskState, task_id: str) -> TaskWithSubtasks | None:
    """
    Join a task with its resolved subtask records.

    Args:
        state: Store state to read
        task_id: Task to resolve

    Returns:
        TaskWithSubtasks, or None if the task is not in the store
    """
    record = state.tasks.get(task_id)
    if record is None:
        return None
    subtasks = [
        state.subtasks[subtask_id]
        for subtask_id in record.subtask_ids
        if subtask_id in state.subtasks
    ]
    return TaskWithSubtasks.model_validate({**record.model_dump(), "subtasks": subtasks})


def get_task_counts(state: TaskState) -> dict[TaskStatus, int]:
    """Get the number of tasks in each status bucket."""
    return {status: len(ids) for status, ids in state.tasks_by_status.items()}


def get_filtered_tasks(
    state: TaskState, predicate: Callable[[TaskRecord], bool]
) -> list[TaskRecord]:
    """Get all task records matching a predicate, in insertion order."""
    return [record for record in state.tasks.values() if predicate(record)]


def get_selected_task(state: TaskState) -> TaskRecord | None:
    """Get the selected task record, if it still exists."""
    if state.selected_task_id is None:
        return None
    return state.tasks.get(state.selected_task_id)


def get_task_meta(state: TaskState) -> dict[str, Any]:
    """Loading/error/last-sync triple used by status displays."""
    return {"loading": state.loading, "error": state.error, "last_sync": state.last_sync}
