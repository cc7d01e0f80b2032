"""
Configuration models and loading.

This module provides Pydantic models for taskmirror configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import CorrelationConfig, StoreConfig, SyncConfig, TaskMirrorConfig

__all__ = [
    # Models
    "CorrelationConfig",
    "StoreConfig",
    "SyncConfig",
    "TaskMirrorConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
]
