"""
Data models for the sync layer.

These are the payloads exchanged with the task source, watcher and
writer collaborators. Failures travel as data (``success=False`` plus an
error message) rather than exceptions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class LoadResult(BaseModel):
    """
    Result of asking a task source for a project's task list.

    ``tasks`` holds raw task records; the store validates them.
    """

    success: bool = Field(description="Whether the task list was obtained")
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = Field(default=None, description="Why loading failed")
    source: str = Field(default="file", description="Where the tasks came from")

    @classmethod
    def failure(cls, error: str, source: str = "file") -> LoadResult:
        return cls(success=False, error=error, source=source)


class TasksUpdated(BaseModel):
    """Change notification delivered by a task watcher."""

    success: bool
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None


class WriteResult(BaseModel):
    """Result of pushing one change to the external task tool."""

    success: bool
    task_id: str
    message: str = ""
    error: str | None = None
