"""Tests for ProjectSession wiring."""

import json

from taskmirror.core.config import TaskMirrorConfig
from taskmirror.core.correlation import CommitRecord
from taskmirror.core.session import ProjectSession
from taskmirror.core.sync import TaskMasterCli
from taskmirror.core.tasks import TaskStatus


class TestProjectSession:
    def test_open_and_sync(self, project_dir):
        session = ProjectSession.open(project_dir)

        assert session.store.state.tasks == {}
        assert session.sync() is True
        assert set(session.store.state.tasks) == {"1", "2", "3"}
        assert set(session.store.state.subtasks) == {"2.1", "2.2"}
        assert session.store.state.current_project == str(project_dir.resolve())
        assert session.controller.writer is None

    def test_sync_failure(self, temp_dir):
        session = ProjectSession.open(temp_dir)
        assert session.sync() is False
        assert session.store.state.error is not None

    def test_project_config_is_used(self, project_dir, write_tasks):
        (project_dir / ".taskmirror.json").write_text(
            json.dumps({"sync": {"tag": "release"}, "store": {"default_status": "deferred"}})
        )
        write_tasks(project_dir, [{"id": 1, "status": "later"}], tag="release")

        session = ProjectSession.open(project_dir)
        session.sync()

        assert session.store.state.tasks["1"].status == TaskStatus.DEFERRED

    def test_write_back_routes_correlations_into_store(self, project_dir):
        session = ProjectSession.open(project_dir, config=TaskMirrorConfig(), write_back=True)
        session.sync()
        assert isinstance(session.controller.writer, TaskMasterCli)

        commit = CommitRecord(hash="f" * 40, message="fix task #2.2 edge case")
        result = session.correlation.analyze_commit_task_correlation(commit)

        assert session.correlation.update_task_progress(result) is True
        assert session.store.state.subtasks["2.2"].status == TaskStatus.DONE
        assert session.store.pending_updates == frozenset({"2.2"})

    def test_close_resets_store(self, project_dir):
        session = ProjectSession.open(project_dir)
        session.sync()
        session.controller.start_realtime_sync(session.project_dir)

        session.close()

        assert session.store.state.tasks == {}
        assert session.controller.watched_path is None

    def test_each_project_gets_its_own_config(self, temp_dir, write_tasks):
        project_a = temp_dir / "a"
        project_b = temp_dir / "b"
        for project in (project_a, project_b):
            project.mkdir()
            write_tasks(project, [{"id": 1, "status": "pending"}], tag="master")
        (project_b / ".taskmirror.json").write_text(json.dumps({"sync": {"tag": "feature-b"}}))
        write_tasks(project_b, [{"id": 7, "status": "done"}], tag="feature-b")

        session_a = ProjectSession.open(project_a)
        session_b = ProjectSession.open(project_b)

        assert session_a.config.sync.tag == "master"
        assert session_b.config.sync.tag == "feature-b"
        assert session_b.sync() is True
        assert set(session_b.store.state.tasks) == {"7"}
