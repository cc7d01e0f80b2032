"""
Configuration data models for taskmirror.

These models define the structure of .taskmirror.json and
~/.config/taskmirror/config.json files, with validation via Pydantic.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskmirror.core.correlation.patterns import ReferencePolicy
from taskmirror.core.sync.source import DEFAULT_TAG, DEFAULT_TASKS_FILE
from taskmirror.core.tasks.models import TaskStatus


class StoreConfig(BaseModel):
    """
    Task store behavior.
    """
    default_status: TaskStatus = Field(
        default=TaskStatus.PENDING,
        description="Status given to records whose status value is not recognised"
    )


class SyncConfig(BaseModel):
    """
    Where tasks are read from and how changes are watched and written back.
    """
    tasks_file: str = Field(
        default=DEFAULT_TASKS_FILE,
        description="Tasks file path relative to the project root"
    )
    tag: str = Field(
        default=DEFAULT_TAG,
        description="Tag to read from a tagged tasks.json"
    )
    poll_interval: float = Field(
        default=1.0,
        gt=0.0,
        description="Seconds between checks of the tasks file during real-time sync"
    )
    cli_command: str = Field(
        default="task-master",
        description="task-master executable used to write changes back"
    )
    cli_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Timeout in seconds for task-master commands"
    )


class CorrelationConfig(BaseModel):
    """
    Commit-to-task correlation settings.
    """
    use_ai: bool = Field(
        default=False,
        description="Fall back to semantic correlation when a commit names no task"
    )
    confidence_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Minimum confidence before a correlation is acted on"
    )
    update_status_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Confidence above which a completed task gets a status update"
    )
    word_boundary: bool = Field(
        default=False,
        description="Match progress keywords at word starts instead of anywhere"
    )
    reference_policy: ReferencePolicy = Field(
        default=ReferencePolicy.FIRST,
        description="How to choose between several referenced tasks"
    )

    @field_validator("reference_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v: object) -> object:
        """Accept dashed spellings such as 'most-specific'."""
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v


class TaskMirrorConfig(BaseModel):
    """
    Top-level taskmirror configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = TaskMirrorConfig(correlation=CorrelationConfig(use_ai=True))
        >>> config.correlation.use_ai
        True
        >>> config.sync.tasks_file
        '.taskmaster/tasks/tasks.json'
    """
    store: StoreConfig = Field(
        default_factory=StoreConfig,
        description="Task store behavior"
    )
    sync: SyncConfig = Field(
        default_factory=SyncConfig,
        description="Task file sync settings"
    )
    correlation: CorrelationConfig = Field(
        default_factory=CorrelationConfig,
        description="Commit correlation settings"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )
