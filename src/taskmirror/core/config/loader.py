"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import TaskMirrorConfig

logger = logging.getLogger(__name__)

# Loaded configs keyed by resolved project directory
_config_cache: dict[Path, TaskMirrorConfig] = {}


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/taskmirror/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "taskmirror" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Project directory (defaults to current directory)

    Returns:
        Path to .taskmirror.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return Path(cwd) / ".taskmirror.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested
    dicts are merged, not replaced.

    Example:
        >>> base = {"a": 1, "b": {"x": 10, "y": 20}}
        >>> override = {"b": {"y": 30, "z": 40}, "c": 3}
        >>> deep_merge(base, override)
        {'a': 1, 'b': {'x': 10, 'y': 30, 'z': 40}, 'c': 3}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring config at %s: top level must be an object", path)
            return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set(config_dict: dict[str, Any], section: str, key: str, value: Any) -> None:
    config_dict.setdefault(section, {})[key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        TASKMIRROR_DEFAULT_STATUS - overrides store.default_status
        TASKMIRROR_POLL_INTERVAL - overrides sync.poll_interval
        TASKMIRROR_USE_AI - overrides correlation.use_ai
        TASKMIRROR_CONFIDENCE_THRESHOLD - overrides correlation.confidence_threshold

    Invalid numeric values are logged and ignored.
    """
    result = copy.deepcopy(config_dict)

    if status := os.environ.get("TASKMIRROR_DEFAULT_STATUS"):
        _set(result, "store", "default_status", status.strip().lower())

    if interval_str := os.environ.get("TASKMIRROR_POLL_INTERVAL"):
        try:
            interval = float(interval_str)
            if interval <= 0:
                logger.warning("TASKMIRROR_POLL_INTERVAL must be > 0, got %s, ignoring", interval)
            else:
                _set(result, "sync", "poll_interval", interval)
        except ValueError:
            logger.warning("Invalid TASKMIRROR_POLL_INTERVAL value '%s', ignoring", interval_str)

    if use_ai_str := os.environ.get("TASKMIRROR_USE_AI"):
        _set(result, "correlation", "use_ai", use_ai_str.lower() not in ("false", "0", ""))

    if threshold_str := os.environ.get("TASKMIRROR_CONFIDENCE_THRESHOLD"):
        try:
            threshold = float(threshold_str)
            if not 0.0 <= threshold <= 1.0:
                logger.warning(
                    "TASKMIRROR_CONFIDENCE_THRESHOLD must be within 0-1, got %s, ignoring",
                    threshold,
                )
            else:
                _set(result, "correlation", "confidence_threshold", threshold)
        except ValueError:
            logger.warning(
                "Invalid TASKMIRROR_CONFIDENCE_THRESHOLD value '%s', ignoring", threshold_str
            )

    return result


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> TaskMirrorConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (TASKMIRROR_*)
        2. Project config (.taskmirror.json)
        3. User config (~/.config/taskmirror/config.json)
        4. Model defaults

    Args:
        project_dir: Project directory to load .taskmirror.json from (defaults to cwd)
        use_cache: If True, return the config cached for this project directory

    Returns:
        Validated TaskMirrorConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    cache_key = Path(project_dir or Path.cwd()).resolve()
    if use_cache and cache_key in _config_cache:
        return _config_cache[cache_key]

    merged: dict[str, Any] = {}

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = TaskMirrorConfig(**merged)
    _config_cache[cache_key] = config
    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    _config_cache.clear()
