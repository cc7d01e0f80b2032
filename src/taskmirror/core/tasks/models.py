"""
Task data models for taskmirror.

Defines the Pydantic models for tasks and subtasks as they arrive from a
task-master project file, and the normalized record the store keeps for
each task (subtasks are held separately and referenced by id).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    """Workflow status shared by tasks and subtasks."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    DEFERRED = "deferred"


class TaskPriority(str, Enum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def coerce_status(value: Any, info: ValidationInfo) -> Any:
    """
    Map an incoming status value onto a known TaskStatus.

    Unknown values are replaced by the default status found in the
    validation context (``{"default_status": ...}``), falling back to
    PENDING. A warning is logged so bad data is visible.
    """
    if isinstance(value, TaskStatus):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower().replace("_", "-")
        try:
            return TaskStatus(normalized)
        except ValueError:
            pass

    default = TaskStatus.PENDING
    if info.context and info.context.get("default_status") is not None:
        default = TaskStatus(info.context["default_status"])
    logger.warning("Unknown task status %r, using %s", value, default.value)
    return default


def _stringify_ids(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return value


class Subtask(BaseModel):
    """
    A child unit of work owned by exactly one task.

    Task-master numbers subtasks per task (1, 2, 3...), so ids may arrive
    as integers; they are always kept as strings because they are used
    as map keys.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    dependencies: list[str] = Field(default_factory=list)
    details: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any, info: ValidationInfo) -> Any:
        return coerce_status(value, info)

    @field_validator("dependencies", mode="before")
    @classmethod
    def _dependencies_to_str(cls, value: Any) -> Any:
        return _stringify_ids(value)


class TaskFields(BaseModel):
    """Fields shared by the incoming Task and the normalized TaskRecord."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    dependencies: list[str] = Field(default_factory=list)
    details: str | None = None
    test_strategy: str | None = Field(default=None, alias="testStrategy")
    complexity_score: float | None = Field(default=None, alias="complexityScore")
    estimated_hours: float | None = None
    actual_hours: float | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any, info: ValidationInfo) -> Any:
        return coerce_status(value, info)

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> Any:
        if value is None:
            return TaskPriority.MEDIUM
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("dependencies", mode="before")
    @classmethod
    def _dependencies_to_str(cls, value: Any) -> Any:
        return _stringify_ids(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, value: Any) -> Any:
        return [] if value is None else value


class Task(TaskFields):
    """
    A top-level unit of work as delivered by a project snapshot.

    Subtasks are embedded here; the store splits them out on ingest.

    Example:
        >>> task = Task.model_validate({
        ...     "id": 27,
        ...     "title": "Git integration",
        ...     "status": "in-progress",
        ...     "subtasks": [{"id": 6, "title": "Commit correlation"}],
        ... })
        >>> task.id, task.subtasks[0].id
        ('27', '6')
    """

    subtasks: list[Subtask] = Field(default_factory=list)

    @field_validator("subtasks", mode="before")
    @classmethod
    def _subtasks_default(cls, value: Any) -> Any:
        return [] if value is None else value


class TaskRecord(TaskFields):
    """
    Normalized task held by the store.

    Identical to Task minus the embedded subtasks, which are replaced by
    an ordered list of subtask ids.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    subtask_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_task(cls, task: Task) -> TaskRecord:
        """Build the normalized record for a task."""
        data = task.model_dump(exclude={"subtasks"})
        data["subtask_ids"] = [subtask.id for subtask in task.subtasks]
        return cls.model_validate(data)


class TaskWithSubtasks(TaskRecord):
    """A task record joined with its resolved subtask records."""

    subtasks: list[Subtask] = Field(default_factory=list)
