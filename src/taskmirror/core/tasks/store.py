"""
Normalized in-memory task store.

Holds the tasks and subtasks of the currently open project in separate
keyed maps, a per-status index of task ids, and the UI state (selection,
loading, error) that goes with them.

Every mutation works on copies of the maps it touches and then swaps a
new TaskState in under a lock. Mutations are therefore atomic with
respect to each other, and readers holding ``store.state`` never observe
an index that disagrees with the records.

Example:
    >>> store = TaskStore()
    >>> store.set_tasks([{"id": "1", "title": "Setup", "status": "pending"}])
    >>> store.move_task("1", TaskStatus.IN_PROGRESS)
    >>> [t.id for t in store.tasks_by_status(TaskStatus.IN_PROGRESS)]
    ['1']
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from taskmirror.core.tasks import selectors
from taskmirror.core.tasks.models import (
    Subtask,
    Task,
    TaskRecord,
    TaskStatus,
    TaskWithSubtasks,
)
from taskmirror.core.tasks.state import (
    EPOCH,
    StoreSnapshot,
    TaskState,
    freeze_index,
)

logger = logging.getLogger(__name__)

StoreListener = Callable[[TaskState], None]

# Keys that would break identity or ownership if merged into a record
_PROTECTED_TASK_KEYS = frozenset({"id", "subtask_ids", "subtasks"})
_PROTECTED_SUBTASK_KEYS = frozenset({"id"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_keys(model: type[BaseModel], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Translate alias keys (e.g. ``testStrategy``) to field names."""
    aliases = {
        info.alias: name for name, info in model.model_fields.items() if info.alias is not None
    }
    return {aliases.get(key, key): value for key, value in updates.items()}


class _Draft:
    """
    Working copy of the record maps and status index for one mutation.

    Only the store creates drafts, and only inside its lock.
    """

    def __init__(self, state: TaskState) -> None:
        self.tasks: dict[str, TaskRecord] = dict(state.tasks)
        self.subtasks: dict[str, Subtask] = dict(state.subtasks)
        self.buckets: dict[TaskStatus, list[str]] = {
            status: list(ids) for status, ids in state.tasks_by_status.items()
        }

    @classmethod
    def empty(cls) -> _Draft:
        return cls(TaskState())

    def bucket_remove(self, status: TaskStatus, task_id: str) -> None:
        self.buckets[status] = [tid for tid in self.buckets.get(status, []) if tid != task_id]

    def bucket_append(self, status: TaskStatus, task_id: str) -> None:
        bucket = self.buckets.setdefault(status, [])
        if task_id not in bucket:
            bucket.append(task_id)

    def owner_of(self, subtask_id: str) -> str | None:
        for task_id, record in self.tasks.items():
            if subtask_id in record.subtask_ids:
                return task_id
        return None

    def release_subtask(self, subtask_id: str, keep_owner: str | None = None) -> None:
        """Detach a subtask id from whichever task (other than keep_owner) lists it."""
        owner = self.owner_of(subtask_id)
        if owner is None or owner == keep_owner:
            return
        record = self.tasks[owner]
        remaining = [sid for sid in record.subtask_ids if sid != subtask_id]
        self.tasks[owner] = record.model_copy(update={"subtask_ids": remaining})

    def remove_task(self, task_id: str) -> TaskRecord | None:
        record = self.tasks.pop(task_id, None)
        if record is None:
            return None
        self.bucket_remove(record.status, task_id)
        for subtask_id in record.subtask_ids:
            self.subtasks.pop(subtask_id, None)
        return record

    def insert_task(self, task: Task) -> None:
        """Insert (or replace) a task and its subtasks."""
        if task.id in self.tasks:
            self.remove_task(task.id)

        subtask_ids: list[str] = []
        for subtask in task.subtasks:
            if subtask.id in self.subtasks:
                self.release_subtask(subtask.id)
            self.subtasks[subtask.id] = subtask
            if subtask.id not in subtask_ids:
                subtask_ids.append(subtask.id)

        record = TaskRecord.from_task(task).model_copy(update={"subtask_ids": subtask_ids})
        self.tasks[task.id] = record
        self.bucket_append(record.status, task.id)

    def frozen(self) -> dict[str, Any]:
        return {
            "tasks": MappingProxyType(self.tasks),
            "subtasks": MappingProxyType(self.subtasks),
            "tasks_by_status": freeze_index(self.buckets),
        }


class TaskStore:
    """
    Store for the tasks and subtasks of one open project.

    Create one instance per opened project and pass it to whatever needs
    it; call reset() (or create a new store) when the project changes.

    Operations addressed to unknown task or subtask ids are no-ops, so
    stale UI events cannot corrupt state.
    """

    def __init__(
        self,
        default_status: TaskStatus | str = TaskStatus.PENDING,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize an empty store.

        Args:
            default_status: Status given to incoming records whose status
                value is not recognised.
            clock: Source of the last-sync timestamp (overridable in tests).
        """
        self.default_status = TaskStatus(default_status)
        self._clock = clock
        self._lock = threading.RLock()
        self._state = TaskState()
        self._listeners: list[StoreListener] = []

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> TaskState:
        """Current consistent state."""
        return self._state

    @property
    def pending_updates(self) -> frozenset[str]:
        return self._state.pending_updates

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register a listener called with the new state after each mutation.

        Returns:
            Function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, state: TaskState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Store listener failed")

    def _validation_context(self) -> dict[str, Any]:
        return {"default_status": self.default_status}

    def _coerce_task(self, task: Task | Mapping[str, Any]) -> Task:
        if isinstance(task, Task):
            return task
        return Task.model_validate(task, context=self._validation_context())

    def _coerce_subtask(self, subtask: Subtask | Mapping[str, Any]) -> Subtask:
        if isinstance(subtask, Subtask):
            return subtask
        return Subtask.model_validate(subtask, context=self._validation_context())

    # ------------------------------------------------------------------
    # Task operations
    # ------------------------------------------------------------------

    def set_tasks(
        self,
        tasks: Iterable[Task | Mapping[str, Any]],
        project: str | None = None,
    ) -> None:
        """
        Replace the entire store with a fresh snapshot.

        Each task is split into a normalized record and its subtasks, and
        the status index is rebuilt from scratch. Duplicate ids resolve
        last-write-wins. Pending updates and the error flag are cleared,
        loading is cleared and the sync timestamp refreshed. A selection
        pointing at a task that is no longer present is cleared.

        Args:
            tasks: Task models or raw task records
            project: If given, recorded as the current project in the
                same atomic update

        Raises:
            pydantic.ValidationError: If a raw task record is invalid. The
                store is left untouched in that case.
        """
        parsed = [self._coerce_task(task) for task in tasks]

        with self._lock:
            draft = _Draft.empty()
            for task in parsed:
                draft.insert_task(task)

            selected = self._state.selected_task_id
            if selected is not None and selected not in draft.tasks:
                selected = None

            self._commit(
                replace(
                    self._state,
                    **draft.frozen(),
                    selected_task_id=selected,
                    pending_updates=frozenset(),
                    error=None,
                    loading=False,
                    last_sync=self._clock(),
                    current_project=(
                        project if project is not None else self._state.current_project
                    ),
                )
            )
        logger.debug("Loaded %d tasks into store", len(parsed))

    def add_task(self, task: Task | Mapping[str, Any]) -> None:
        """
        Insert one task (and its subtasks) without touching other entries.

        Does nothing if a task with the same id already exists; use
        update_task() to modify it.
        """
        parsed = self._coerce_task(task)
        with self._lock:
            if parsed.id in self._state.tasks:
                logger.debug("add_task ignored, task %s already exists", parsed.id)
                return
            draft = _Draft(self._state)
            draft.insert_task(parsed)
            self._commit(replace(self._state, **draft.frozen()))

    def update_task(self, task_id: str, updates: Mapping[str, Any]) -> None:
        """
        Shallow-merge updates into a task.

        A status change moves the id from its old bucket to the end of the
        new one. Outside batch mode the id is marked as pending external
        sync. ``id``, ``subtask_ids`` and ``subtasks`` are ignored.
        """
        with self._lock:
            state = self._state
            record = state.tasks.get(task_id)
            if record is None:
                return

            changes = {
                key: value
                for key, value in _normalize_keys(TaskRecord, updates).items()
                if key not in _PROTECTED_TASK_KEYS
            }
            updated = TaskRecord.model_validate(
                {**record.model_dump(), **changes}, context=self._validation_context()
            )

            tasks = dict(state.tasks)
            tasks[task_id] = updated
            fields: dict[str, Any] = {"tasks": MappingProxyType(tasks)}

            if updated.status != record.status:
                buckets = {status: list(ids) for status, ids in state.tasks_by_status.items()}
                buckets[record.status] = [tid for tid in buckets[record.status] if tid != task_id]
                buckets[updated.status].append(task_id)
                fields["tasks_by_status"] = freeze_index(buckets)

            if not state.batch_updates:
                fields["pending_updates"] = state.pending_updates | {task_id}

            self._commit(replace(state, **fields))

    def move_task(self, task_id: str, new_status: TaskStatus | str) -> None:
        """
        Move a task to another status column.

        Same guarantees as ``update_task(task_id, {"status": new_status})``,
        including status normalisation and the no-op on unknown ids.
        """
        self.update_task(task_id, {"status": new_status})

    def delete_task(self, task_id: str) -> None:
        """
        Delete a task, cascading to the subtasks it owns.

        Clears the selection if the deleted task was selected.
        """
        with self._lock:
            state = self._state
            if task_id not in state.tasks:
                return
            draft = _Draft(state)
            draft.remove_task(task_id)
            self._commit(
                replace(
                    state,
                    **draft.frozen(),
                    selected_task_id=(
                        None if state.selected_task_id == task_id else state.selected_task_id
                    ),
                    pending_updates=state.pending_updates - {task_id},
                )
            )

    # ------------------------------------------------------------------
    # Subtask operations
    # ------------------------------------------------------------------

    def add_subtask(self, parent_id: str, subtask: Subtask | Mapping[str, Any]) -> None:
        """
        Attach a subtask to a task.

        Does nothing if the parent is unknown. A subtask id already owned
        by another task is transferred to this parent.
        """
        parsed = self._coerce_subtask(subtask)
        with self._lock:
            if parent_id not in self._state.tasks:
                return
            draft = _Draft(self._state)
            draft.release_subtask(parsed.id, keep_owner=parent_id)
            draft.subtasks[parsed.id] = parsed

            parent = draft.tasks[parent_id]
            if parsed.id not in parent.subtask_ids:
                draft.tasks[parent_id] = parent.model_copy(
                    update={"subtask_ids": [*parent.subtask_ids, parsed.id]}
                )
            self._commit(replace(self._state, **draft.frozen()))

    def update_subtask(self, subtask_id: str, updates: Mapping[str, Any]) -> None:
        """
        Shallow-merge updates into a subtask; unknown ids are ignored.

        Like update_task, marks the subtask id as pending external sync
        outside batch mode.
        """
        with self._lock:
            state = self._state
            current = state.subtasks.get(subtask_id)
            if current is None:
                return
            changes = {
                key: value
                for key, value in _normalize_keys(Subtask, updates).items()
                if key not in _PROTECTED_SUBTASK_KEYS
            }
            updated = Subtask.model_validate(
                {**current.model_dump(), **changes}, context=self._validation_context()
            )
            subtasks = dict(state.subtasks)
            subtasks[subtask_id] = updated
            pending = state.pending_updates
            if not state.batch_updates:
                pending = pending | {subtask_id}
            self._commit(
                replace(state, subtasks=MappingProxyType(subtasks), pending_updates=pending)
            )

    def delete_subtask(self, subtask_id: str) -> None:
        """Remove a subtask and drop its id from whichever task references it."""
        with self._lock:
            state = self._state
            referenced = any(subtask_id in record.subtask_ids for record in state.tasks.values())
            if subtask_id not in state.subtasks and not referenced:
                return

            subtasks = dict(state.subtasks)
            subtasks.pop(subtask_id, None)
            tasks = {
                task_id: (
                    record.model_copy(
                        update={
                            "subtask_ids": [
                                sid for sid in record.subtask_ids if sid != subtask_id
                            ]
                        }
                    )
                    if subtask_id in record.subtask_ids
                    else record
                )
                for task_id, record in state.tasks.items()
            }
            self._commit(
                replace(
                    state,
                    tasks=MappingProxyType(tasks),
                    subtasks=MappingProxyType(subtasks),
                    pending_updates=state.pending_updates - {subtask_id},
                )
            )

    # ------------------------------------------------------------------
    # UI state
    # ------------------------------------------------------------------

    def select_task(self, task_id: str | None) -> None:
        with self._lock:
            self._commit(replace(self._state, selected_task_id=task_id))

    def set_loading(self, loading: bool) -> None:
        with self._lock:
            self._commit(replace(self._state, loading=loading))

    def set_error(self, error: str | None) -> None:
        with self._lock:
            self._commit(replace(self._state, error=error))

    def set_current_project(self, project: str) -> None:
        with self._lock:
            self._commit(replace(self._state, current_project=project))

    # ------------------------------------------------------------------
    # Batching and sync bookkeeping
    # ------------------------------------------------------------------

    def start_batch_update(self) -> None:
        """Stop recording pending-sync obligations until end_batch_update()."""
        with self._lock:
            self._commit(replace(self._state, batch_updates=True))

    def end_batch_update(self) -> frozenset[str]:
        """
        Leave batch mode and clear the pending-update set.

        Returns:
            The pending ids as they were before clearing, so the caller
            can flush them.
        """
        with self._lock:
            pending = self._state.pending_updates
            self._commit(replace(self._state, batch_updates=False, pending_updates=frozenset()))
        return pending

    def drain_pending_updates(self) -> frozenset[str]:
        """Return and clear the pending-update set."""
        with self._lock:
            pending = self._state.pending_updates
            if pending:
                self._commit(replace(self._state, pending_updates=frozenset()))
        return pending

    def invalidate_cache(self) -> None:
        """Force the next staleness check to treat the source as newer."""
        with self._lock:
            self._commit(replace(self._state, last_sync=EPOCH))

    def reset(self) -> None:
        """Return the store to its initial empty state."""
        with self._lock:
            self._commit(TaskState())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> StoreSnapshot:
        """Capture the persisted subset of the current state."""
        state = self._state
        return StoreSnapshot(
            tasks=dict(state.tasks),
            subtasks=dict(state.subtasks),
            current_project=state.current_project,
            last_sync=state.last_sync,
        )

    def restore(self, snapshot: StoreSnapshot) -> None:
        """
        Rehydrate from a snapshot, rebuilding the status index.

        UI state (selection, loading, error) and pending updates are reset.
        """
        buckets: dict[TaskStatus, list[str]] = {status: [] for status in TaskStatus}
        for task_id, record in snapshot.tasks.items():
            buckets[record.status].append(task_id)

        with self._lock:
            self._commit(
                TaskState(
                    tasks=MappingProxyType(dict(snapshot.tasks)),
                    subtasks=MappingProxyType(dict(snapshot.subtasks)),
                    tasks_by_status=freeze_index(buckets),
                    current_project=snapshot.current_project,
                    last_sync=snapshot.last_sync,
                )
            )

    # ------------------------------------------------------------------
    # Selector shortcuts
    # ------------------------------------------------------------------

    def tasks_by_status(self, status: TaskStatus | str) -> list[TaskRecord]:
        return selectors.get_tasks_by_status(self._state, status)

    def task_with_subtasks(self, task_id: str) -> TaskWithSubtasks | None:
        return selectors.get_task_with_subtasks(self._state, task_id)

    def task_counts(self) -> dict[TaskStatus, int]:
        return selectors.get_task_counts(self._state)

    def filtered_tasks(self, predicate: Callable[[TaskRecord], bool]) -> list[TaskRecord]:
        return selectors.get_filtered_tasks(self._state, predicate)
