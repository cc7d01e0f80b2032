"""
Sync controller: keeps a TaskStore in step with an external task file.

Pull-based refresh (sync_with_file_system, refresh_if_stale), push-based
live updates (start/stop_realtime_sync), and the write-back path for
local changes (flush_pending_updates, batch_update). Every failure from
the collaborators ends up in the store's ``error`` field; none of the
entry points raise.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from taskmirror.core.correlation.models import CorrelationResult, SuggestedAction
from taskmirror.core.sync.models import TasksUpdated, WriteResult
from taskmirror.core.sync.source import TaskMasterFileSource, TaskSource, TaskWatcher, TaskWriter
from taskmirror.core.tasks.models import TaskStatus
from taskmirror.core.tasks.state import TaskState
from taskmirror.core.tasks.store import TaskStore

logger = logging.getLogger(__name__)


class SyncController:
    """
    Reconcile a TaskStore with a project's external task list.

    Example:
        >>> store = TaskStore()
        >>> controller = SyncController(store, watcher=PollingTaskWatcher())
        >>> controller.sync_with_file_system("/path/to/project")
        >>> controller.start_realtime_sync("/path/to/project")
        >>> ...
        >>> controller.stop_realtime_sync()
    """

    def __init__(
        self,
        store: TaskStore,
        source: TaskSource | None = None,
        watcher: TaskWatcher | None = None,
        writer: TaskWriter | None = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            store: Store to keep in sync
            source: Where task lists come from (defaults to the task-master file)
            watcher: Change notifier for real-time sync (optional)
            writer: Write-back path for local changes (optional)
        """
        self.store = store
        self.source = source or TaskMasterFileSource()
        self.watcher = watcher
        self.writer = writer

        self._lock = threading.Lock()
        self._watch_path: Path | None = None
        self._watch_generation = 0

    @property
    def watched_path(self) -> Path | None:
        return self._watch_path

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def sync_with_file_system(self, project_path: str | Path) -> None:
        """
        Load the project's current task list into the store.

        On failure the error is recorded on the store and the previously
        loaded tasks are kept. Loading is cleared either way.
        """
        project = str(project_path)
        self.store.set_loading(True)
        self.store.set_error(None)

        try:
            result = self.source.load_tasks(project)
            if result.success:
                self.store.set_tasks(result.tasks, project=project)
                logger.info("Synced %d tasks from %s", len(result.tasks), project)
            else:
                self.store.set_error(result.error or "Failed to load tasks")
        except ValidationError as e:
            logger.warning("Malformed task data in %s: %s", project, e)
            self.store.set_error(f"Malformed task data: {e.error_count()} invalid field(s)")
        except Exception as e:
            logger.exception("Sync with %s failed", project)
            self.store.set_error(f"Failed to sync with file system: {e}")
        finally:
            self.store.set_loading(False)

    def refresh_if_stale(self, project_path: str | Path) -> bool:
        """
        Sync only if the source changed since the last load.

        Always syncs after ``store.invalidate_cache()``, for a different
        project, or when the source cannot tell when it last changed.

        Returns:
            True if a sync was performed
        """
        project = str(project_path)
        state = self.store.state
        try:
            modified = self.source.last_modified(project)
        except Exception as e:
            logger.debug("Could not read modification time for %s: %s", project, e)
            modified = None

        if (
            state.current_project == project
            and modified is not None
            and modified <= state.last_sync
        ):
            return False
        self.sync_with_file_system(project)
        return True

    # ------------------------------------------------------------------
    # Real-time
    # ------------------------------------------------------------------

    def start_realtime_sync(self, project_path: str | Path) -> None:
        """
        Apply every successful change notification for a project.

        Calling again for the project already being watched does nothing;
        calling with a different project replaces the watch.
        """
        if self.watcher is None:
            logger.warning("Real-time sync requested but no watcher is configured")
            return

        path = Path(project_path)
        with self._lock:
            if self._watch_path == path:
                return
            self._watch_generation += 1
            generation = self._watch_generation
            self._watch_path = path

        try:
            self.watcher.start(path, functools.partial(self._on_tasks_updated, generation))
        except Exception as e:
            logger.warning("Failed to start watching %s: %s", path, e)
            with self._lock:
                if self._watch_generation == generation:
                    self._watch_path = None
            self.store.set_error(f"Failed to start file watching: {e}")
            return
        logger.debug("Real-time sync started for %s", path)

    def stop_realtime_sync(self) -> None:
        """Stop watching. Safe to call when no watch is active."""
        with self._lock:
            self._watch_generation += 1
            self._watch_path = None

        if self.watcher is None:
            return
        try:
            self.watcher.stop()
        except Exception as e:
            logger.warning("Failed to stop file watching: %s", e)

    def _on_tasks_updated(self, generation: int, update: TasksUpdated) -> None:
        # Runs on the watcher's thread; the generation check under the lock
        # keeps a stopped or replaced watch from reaching the store
        with self._lock:
            if generation != self._watch_generation:
                return
            project = str(self._watch_path) if self._watch_path else None
            if not update.success:
                self.store.set_error(update.error or "Failed to read updated tasks")
                return
            try:
                self.store.set_tasks(update.tasks, project=project)
            except ValidationError as e:
                logger.warning("Ignoring malformed task update: %s", e)
                self.store.set_error(f"Malformed task data: {e.error_count()} invalid field(s)")

    # ------------------------------------------------------------------
    # Write-back
    # ------------------------------------------------------------------

    def flush_pending_updates(self, project_path: str | Path | None = None) -> list[WriteResult]:
        """
        Push the status of every task with a pending sync obligation.

        Args:
            project_path: Project to write to (defaults to the store's
                current project)

        Returns:
            One WriteResult per pushed task (empty without a writer)
        """
        if self.writer is None:
            return []
        return self._push_statuses(self.writer, project_path, self.store.drain_pending_updates())

    @contextmanager
    def batch_update(self, project_path: str | Path | None = None) -> Iterator[None]:
        """
        Group store mutations and push them once at the end.

        The store records no pending obligations while the batch is open;
        on exit every task or subtask whose status differs from before the
        batch is pushed once, together with anything already pending.

        Example:
            >>> with controller.batch_update():
            ...     store.move_task("1", "done")
            ...     store.move_task("2", "done")
        """
        before = self.store.state
        self.store.start_batch_update()
        try:
            yield
        finally:
            pending = self.store.end_batch_update()
            if self.writer is not None:
                changed = _status_changes(before, self.store.state)
                self._push_statuses(self.writer, project_path, pending | changed)

    def _push_statuses(
        self,
        writer: TaskWriter,
        project_path: str | Path | None,
        task_ids: Iterable[str],
    ) -> list[WriteResult]:
        state = self.store.state
        project = str(project_path) if project_path else state.current_project

        results: list[WriteResult] = []
        for task_id in sorted(task_ids):
            record = state.tasks.get(task_id) or state.subtasks.get(task_id)
            if record is None:
                continue
            try:
                result = writer.set_status(project, task_id, record.status.value)
            except Exception as e:
                result = WriteResult(success=False, task_id=task_id, error=str(e))
            results.append(result)

        failures = [result for result in results if not result.success]
        if failures:
            self.store.set_error("; ".join(f.error or f"Task {f.task_id} failed" for f in failures))
        elif results:
            logger.info("Pushed %d task update(s) to %s", len(results), project)
        return results

    # ------------------------------------------------------------------
    # Correlation seam
    # ------------------------------------------------------------------

    def apply_correlation(self, correlation: CorrelationResult) -> bool:
        """
        Reflect an actionable correlation in the store.

        ``update-status`` marks the task (or dotted subtask) done;
        ``add-progress`` moves a still-pending one to in-progress.
        Usable as the progress sink of TaskCorrelationService.

        Returns:
            True if the correlation targeted a known task or subtask
        """
        if correlation.task_id is None:
            return False
        if correlation.suggested_action == SuggestedAction.UPDATE_STATUS:
            target = TaskStatus.DONE
        elif correlation.suggested_action == SuggestedAction.ADD_PROGRESS:
            target = TaskStatus.IN_PROGRESS
        else:
            return False

        state = self.store.state
        task_id = correlation.task_id
        if task_id in state.tasks:
            current = state.tasks[task_id].status
            if self._should_move(current, target):
                self.store.move_task(task_id, target)
            return True
        if task_id in state.subtasks:
            current = state.subtasks[task_id].status
            if self._should_move(current, target):
                self.store.update_subtask(task_id, {"status": target})
            return True
        logger.debug("Correlated task %s is not in the store", task_id)
        return False

    @staticmethod
    def _should_move(current: TaskStatus, target: TaskStatus) -> bool:
        if target == TaskStatus.IN_PROGRESS:
            return current == TaskStatus.PENDING
        return current != target


def _status_changes(before: TaskState, after: TaskState) -> frozenset[str]:
    """Ids of tasks and subtasks whose status differs between two states."""
    changed = {
        task_id
        for task_id, record in after.tasks.items()
        if task_id in before.tasks and before.tasks[task_id].status != record.status
    }
    changed.update(
        subtask_id
        for subtask_id, subtask in after.subtasks.items()
        if subtask_id in before.subtasks and before.subtasks[subtask_id].status != subtask.status
    )
    return frozenset(changed)
