"""
Immutable store state.

A TaskState is never modified after construction. The store builds a new
state for every mutation and swaps it in whole, so any reader holding a
reference always sees tasks, subtasks and the status index agree.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType

from pydantic import BaseModel, Field

from taskmirror.core.tasks.models import Subtask, TaskRecord, TaskStatus

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def empty_status_index() -> Mapping[TaskStatus, tuple[str, ...]]:
    """Return a status index with an empty bucket for every known status."""
    return MappingProxyType({status: () for status in TaskStatus})


def freeze_index(
    buckets: Mapping[TaskStatus, list[str] | tuple[str, ...]],
) -> Mapping[TaskStatus, tuple[str, ...]]:
    """Freeze a working index, keeping a bucket for every known status."""
    frozen = {status: tuple(buckets.get(status, ())) for status in TaskStatus}
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class TaskState:
    """
    One consistent version of the store.

    Attributes:
        tasks: Normalized task records keyed by task id
        subtasks: Subtask records keyed by subtask id
        tasks_by_status: Ordered task ids per status (inverse of task.status)
        selected_task_id: Task currently selected in the UI
        loading: True while a sync fetch is outstanding
        error: Last sync error message, if any
        current_project: Path/identifier of the loaded project
        last_sync: Time of the last full snapshot load (EPOCH when invalidated)
        batch_updates: True between start_batch_update and end_batch_update
        pending_updates: Task ids with an outstanding external-sync obligation
    """

    tasks: Mapping[str, TaskRecord] = field(default_factory=lambda: MappingProxyType({}))
    subtasks: Mapping[str, Subtask] = field(default_factory=lambda: MappingProxyType({}))
    tasks_by_status: Mapping[TaskStatus, tuple[str, ...]] = field(
        default_factory=empty_status_index
    )
    selected_task_id: str | None = None
    loading: bool = False
    error: str | None = None
    current_project: str = ""
    last_sync: datetime = EPOCH
    batch_updates: bool = False
    pending_updates: frozenset[str] = frozenset()


class StoreSnapshot(BaseModel):
    """
    Persisted subset of the store.

    Enough to rehydrate the store without a fresh fetch; the status index
    is rebuilt from the task records on restore.
    """

    tasks: dict[str, TaskRecord] = Field(default_factory=dict)
    subtasks: dict[str, Subtask] = Field(default_factory=dict)
    current_project: str = ""
    last_sync: datetime = EPOCH
