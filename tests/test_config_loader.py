"""
Unit tests for configuration models and loader.

Tests multi-layer config merging, environment variable overrides,
caching, and XDG directory handling.
"""

import json

import pytest
from pydantic import ValidationError

from taskmirror.core.config import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    load_config,
)
from taskmirror.core.config.loader import (
    apply_env_overrides,
    deep_merge,
    get_xdg_config_home,
    load_json_file,
)
from taskmirror.core.config.models import CorrelationConfig, SyncConfig, TaskMirrorConfig
from taskmirror.core.correlation import ReferencePolicy
from taskmirror.core.tasks import TaskStatus

# ==============================================================================
# Model Tests
# ==============================================================================


class TestModels:
    def test_defaults(self):
        config = TaskMirrorConfig()
        assert config.store.default_status == TaskStatus.PENDING
        assert config.sync.tasks_file == ".taskmaster/tasks/tasks.json"
        assert config.sync.tag == "master"
        assert config.sync.poll_interval == 1.0
        assert config.correlation.use_ai is False
        assert config.correlation.confidence_threshold == 0.5
        assert config.correlation.reference_policy == ReferencePolicy.FIRST

    def test_poll_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            SyncConfig(poll_interval=0)

    def test_threshold_range(self):
        with pytest.raises(ValidationError):
            CorrelationConfig(confidence_threshold=1.5)

    def test_reference_policy_spelling(self):
        assert CorrelationConfig(reference_policy="Most-Frequent").reference_policy == (
            ReferencePolicy.MOST_FREQUENT
        )

    def test_unknown_default_status_rejected(self):
        with pytest.raises(ValidationError):
            TaskMirrorConfig(store={"default_status": "someday"})


# ==============================================================================
# Helper Functions Tests
# ==============================================================================


class TestDeepMerge:
    def test_nested_merge(self):
        base = {"a": 1, "b": {"x": 10, "y": 20}}
        override = {"b": {"y": 30, "z": 40}, "c": 3}
        assert deep_merge(base, override) == {"a": 1, "b": {"x": 10, "y": 30, "z": 40}, "c": 3}

    def test_does_not_modify_base(self):
        base = {"a": {"x": 1}}
        deep_merge(base, {"a": {"x": 2}})
        assert base == {"a": {"x": 1}}


class TestLoadJsonFile:
    def test_missing_file(self, tmp_path):
        assert load_json_file(tmp_path / "nope.json") is None

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        assert load_json_file(path) is None

    def test_non_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        assert load_json_file(path) is None


class TestPaths:
    def test_xdg_config_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert get_xdg_config_home() == tmp_path
        assert get_user_config_path() == tmp_path / "taskmirror" / "config.json"

    def test_project_config_path(self, tmp_path):
        assert get_project_config_path(tmp_path) == tmp_path / ".taskmirror.json"


# ==============================================================================
# Environment Overrides
# ==============================================================================


class TestEnvOverrides:
    def test_all_overrides(self, monkeypatch):
        monkeypatch.setenv("TASKMIRROR_DEFAULT_STATUS", "Deferred")
        monkeypatch.setenv("TASKMIRROR_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("TASKMIRROR_USE_AI", "true")
        monkeypatch.setenv("TASKMIRROR_CONFIDENCE_THRESHOLD", "0.8")

        result = apply_env_overrides({})

        assert result == {
            "store": {"default_status": "deferred"},
            "sync": {"poll_interval": 2.5},
            "correlation": {"use_ai": True, "confidence_threshold": 0.8},
        }

    def test_use_ai_false(self, monkeypatch):
        monkeypatch.setenv("TASKMIRROR_USE_AI", "0")
        assert apply_env_overrides({})["correlation"]["use_ai"] is False

    def test_invalid_values_are_ignored(self, monkeypatch):
        monkeypatch.setenv("TASKMIRROR_POLL_INTERVAL", "soon")
        monkeypatch.setenv("TASKMIRROR_CONFIDENCE_THRESHOLD", "2")
        assert apply_env_overrides({"sync": {"tag": "x"}}) == {"sync": {"tag": "x"}}

    def test_does_not_modify_input(self, monkeypatch):
        monkeypatch.setenv("TASKMIRROR_USE_AI", "1")
        original = {"correlation": {"word_boundary": True}}
        apply_env_overrides(original)
        assert original == {"correlation": {"word_boundary": True}}


# ==============================================================================
# load_config
# ==============================================================================


class TestLoadConfig:
    def test_defaults_without_files(self, tmp_path):
        config = load_config(tmp_path, use_cache=False)
        assert config == TaskMirrorConfig()

    def test_layering(self, tmp_path, monkeypatch):
        user_file = get_user_config_path()
        user_file.parent.mkdir(parents=True)
        user_file.write_text(
            json.dumps({"sync": {"tag": "user-tag", "poll_interval": 3}, "correlation": {"use_ai": True}})
        )
        project = tmp_path / "project"
        project.mkdir()
        (project / ".taskmirror.json").write_text(json.dumps({"sync": {"tag": "project-tag"}}))
        monkeypatch.setenv("TASKMIRROR_POLL_INTERVAL", "0.25")

        config = load_config(project, use_cache=False)

        assert config.sync.tag == "project-tag"
        assert config.sync.poll_interval == 0.25
        assert config.correlation.use_ai is True

    def test_invalid_project_value_raises(self, tmp_path):
        (tmp_path / ".taskmirror.json").write_text(json.dumps({"sync": {"poll_interval": -1}}))
        with pytest.raises(ValidationError):
            load_config(tmp_path, use_cache=False)

    def test_cache(self, tmp_path):
        first = load_config(tmp_path)
        (tmp_path / ".taskmirror.json").write_text(json.dumps({"sync": {"tag": "changed"}}))
        assert load_config(tmp_path) is first

        clear_cache()
        assert load_config(tmp_path).sync.tag == "changed"

    def test_cache_is_per_project(self, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        first.mkdir()
        second.mkdir()
        (second / ".taskmirror.json").write_text(json.dumps({"sync": {"tag": "feature-b"}}))

        assert load_config(first).sync.tag == "master"
        assert load_config(second).sync.tag == "feature-b"
        assert load_config(first).sync.tag == "master"
