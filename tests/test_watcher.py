"""
Tests for PollingTaskWatcher.

Most tests start the watcher without its thread and drive poll()
directly; modification times are set explicitly with os.utime so
changes are detected regardless of filesystem timestamp resolution.
"""

import os
import time

import pytest

from taskmirror.core.sync import PollingTaskWatcher, TaskWatcher


def _touch(path, offset):
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + offset))


@pytest.fixture
def tasks_file(project_dir):
    return project_dir / ".taskmaster" / "tasks" / "tasks.json"


@pytest.fixture
def events():
    return []


@pytest.fixture
def watcher(project_dir, events):
    watcher = PollingTaskWatcher(poll_interval=0.05)
    watcher.start(project_dir, events.append, background=False)
    yield watcher
    watcher.stop()


class TestPollingTaskWatcher:
    def test_implements_protocol(self):
        assert isinstance(PollingTaskWatcher(), TaskWatcher)

    def test_initial_state_is_not_reported(self, watcher, events):
        assert watcher.poll() is None
        assert events == []

    def test_reports_change(self, watcher, events, tasks_file, write_tasks, project_dir):
        write_tasks(project_dir, [{"id": 1, "title": "Only task", "subtasks": [{"id": 1}]}])
        _touch(tasks_file, 10)

        update = watcher.poll()

        assert update is not None
        assert update.success is True
        assert update.tasks[0]["title"] == "Only task"
        assert update.tasks[0]["subtasks"][0]["id"] == "1.1"
        assert events == [update]

    def test_touch_without_content_change_after_report(
        self, watcher, events, tasks_file, write_tasks, project_dir
    ):
        write_tasks(project_dir, [{"id": 1}])
        _touch(tasks_file, 10)
        watcher.poll()

        _touch(tasks_file, 20)
        assert watcher.poll() is None
        assert len(events) == 1

    def test_unchanged_mtime_is_not_reread(self, watcher, events, tasks_file, write_tasks, project_dir):
        write_tasks(project_dir, [{"id": 1}])
        _touch(tasks_file, 10)
        watcher.poll()
        assert watcher.poll() is None
        assert len(events) == 1

    def test_invalid_file_reports_failure(self, watcher, events, tasks_file):
        tasks_file.write_text("{broken")
        _touch(tasks_file, 10)

        update = watcher.poll()

        assert update is not None
        assert update.success is False
        assert "Failed to parse" in update.error

    def test_missing_file_is_quiet(self, watcher, events, tasks_file):
        tasks_file.unlink()
        assert watcher.poll() is None
        assert events == []

    def test_stop_prevents_delivery(self, watcher, events, tasks_file, write_tasks, project_dir):
        watcher.stop()
        write_tasks(project_dir, [{"id": 1}])
        _touch(tasks_file, 10)
        assert watcher.poll() is None
        assert events == []
        assert watcher.watched_path is None

    def test_restart_replaces_watch(self, watcher, project_dir, temp_dir, events):
        other = temp_dir / "other"
        other.mkdir()
        watcher.start(other, events.append, background=False)
        assert watcher.watched_path == other

    def test_background_thread(self, project_dir, tasks_file, write_tasks):
        received = []
        watcher = PollingTaskWatcher(poll_interval=0.02)
        watcher.start(project_dir, received.append)
        try:
            assert watcher.is_running
            write_tasks(project_dir, [{"id": 42}])
            _touch(tasks_file, 10)

            deadline = time.monotonic() + 5
            while not any(u.success for u in received) and time.monotonic() < deadline:
                time.sleep(0.02)
        finally:
            watcher.stop()

        delivered = [u for u in received if u.success]
        assert delivered and delivered[0].tasks[0]["id"] == 42
        assert not watcher.is_running
