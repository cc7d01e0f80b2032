"""
Tests for the read-only store selectors.
"""

from types import MappingProxyType

from taskmirror.core.tasks import Subtask, TaskRecord, TaskState, TaskStatus, TaskStore
from taskmirror.core.tasks.selectors import (
    get_filtered_tasks,
    get_selected_task,
    get_task_counts,
    get_task_meta,
    get_task_with_subtasks,
    get_tasks_by_status,
)
from taskmirror.core.tasks.state import freeze_index


def _state_with_gap() -> TaskState:
    """State whose index still lists a task that was removed."""
    return TaskState(
        tasks=MappingProxyType(
            {"1": TaskRecord(id="1", title="Kept", subtask_ids=["1.1", "1.9"])}
        ),
        subtasks=MappingProxyType({"1.1": Subtask(id="1.1", title="Child")}),
        tasks_by_status=freeze_index({TaskStatus.PENDING: ["ghost", "1"]}),
    )


class TestGetTasksByStatus:
    def test_returns_records_in_bucket_order(self, sample_tasks):
        store = TaskStore()
        store.set_tasks(sample_tasks)
        store.move_task("1", "pending")
        assert [t.id for t in get_tasks_by_status(store.state, "pending")] == ["3", "1"]

    def test_skips_missing_ids(self):
        records = get_tasks_by_status(_state_with_gap(), TaskStatus.PENDING)
        assert [t.id for t in records] == ["1"]

    def test_unknown_status_is_empty(self):
        assert get_tasks_by_status(_state_with_gap(), "someday") == []

    def test_empty_store(self):
        assert get_tasks_by_status(TaskState(), TaskStatus.DONE) == []


class TestGetTaskWithSubtasks:
    def test_joins_subtasks_in_order(self, sample_tasks):
        store = TaskStore()
        store.set_tasks(sample_tasks)
        joined = get_task_with_subtasks(store.state, "2")
        assert joined is not None
        assert joined.title == "Git integration"
        assert [s.title for s in joined.subtasks] == ["Read commit log", "Commit correlation"]
        assert joined.test_strategy == "Unit tests against a temporary repository"

    def test_skips_missing_subtasks(self):
        joined = get_task_with_subtasks(_state_with_gap(), "1")
        assert joined is not None
        assert [s.id for s in joined.subtasks] == ["1.1"]

    def test_unknown_task(self):
        assert get_task_with_subtasks(TaskState(), "1") is None


class TestOtherSelectors:
    def test_task_counts(self, sample_tasks):
        store = TaskStore()
        store.set_tasks(sample_tasks)
        counts = get_task_counts(store.state)
        assert counts[TaskStatus.DONE] == 1
        assert counts[TaskStatus.IN_PROGRESS] == 1
        assert counts[TaskStatus.PENDING] == 1
        assert counts[TaskStatus.BLOCKED] == 0
        assert sum(counts.values()) == 3

    def test_filtered_tasks(self, sample_tasks):
        store = TaskStore()
        store.set_tasks(sample_tasks)
        high = get_filtered_tasks(store.state, lambda t: t.priority.value == "high")
        assert [t.id for t in high] == ["1"]
        assert store.filtered_tasks(lambda t: "2" in t.dependencies)[0].id == "3"

    def test_selected_task(self, sample_tasks):
        store = TaskStore()
        store.set_tasks(sample_tasks)
        assert get_selected_task(store.state) is None
        store.select_task("3")
        assert get_selected_task(store.state).title == "Kanban board view"

    def test_selected_task_that_no_longer_exists(self):
        state = TaskState(selected_task_id="gone")
        assert get_selected_task(state) is None

    def test_task_meta(self):
        meta = get_task_meta(TaskState(loading=True, error="oops"))
        assert meta["loading"] is True
        assert meta["error"] == "oops"

    def test_selectors_do_not_mutate(self, sample_tasks):
        store = TaskStore()
        store.set_tasks(sample_tasks)
        before = store.state
        get_tasks_by_status(before, "done")
        get_task_with_subtasks(before, "2")
        get_task_counts(before)
        assert store.state is before
