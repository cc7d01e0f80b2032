"""
Data models for commit-to-task correlation.

Defines the commit record consumed by the correlation engine and the
CorrelationResult it produces.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CorrelationMethod(str, Enum):
    """How a correlation was determined."""

    REGEX = "regex"
    SEMANTIC = "semantic"
    MANUAL = "manual"
    AI = "ai"


class ProgressEstimate(str, Enum):
    """How far a commit appears to move its task."""

    STARTED = "started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


class SuggestedAction(str, Enum):
    """What a consumer should do with a correlation."""

    UPDATE_STATUS = "update-status"
    ADD_PROGRESS = "add-progress"
    CREATE_TASK = "create-task"
    NONE = "none"


class CommitAuthor(BaseModel):
    """Commit author identity."""

    name: str = ""
    email: str = ""


class CommitRecord(BaseModel):
    """
    A version-control commit as seen by the correlation engine.

    Example:
        >>> commit = CommitRecord(
        ...     hash="a" * 40,
        ...     message="fix task #27.6 validation bug",
        ...     files_changed=["src/lib/gitService.ts"],
        ... )
    """

    model_config = ConfigDict(populate_by_name=True)

    hash: str
    message: str
    author: CommitAuthor = Field(default_factory=CommitAuthor)
    date: datetime | None = None
    files_changed: list[str] = Field(default_factory=list, alias="filesChanged")
    insertions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)

    @property
    def short_hash(self) -> str:
        return self.hash[:8]


class CorrelationResult(BaseModel):
    """
    Best-guess link between one commit and one task.

    This is a transient value; the caller decides whether to persist it.
    """

    commit_hash: str = Field(description="Hash of the analysed commit")
    task_id: str | None = Field(default=None, description="Correlated task id, if any")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    method: CorrelationMethod = CorrelationMethod.REGEX
    reasoning: str = ""
    progress_estimate: ProgressEstimate = ProgressEstimate.UNKNOWN
    suggested_action: SuggestedAction = SuggestedAction.NONE
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_subtask(self) -> bool:
        """True when the correlated id is a dotted ``task.sub`` reference."""
        return self.task_id is not None and "." in self.task_id

    @property
    def parent_task_id(self) -> str | None:
        """Top-level task id (the part before the dot for subtasks)."""
        if self.task_id is None:
            return None
        return self.task_id.split(".", 1)[0]


class CorrelationOptions(BaseModel):
    """
    Per-call correlation options.

    Attributes:
        use_ai: Fall back to the semantic strategy when no explicit
            reference is found
        confidence_threshold: Minimum confidence for a suggested action and
            for update_task_progress
        include_file_analysis: Count changed files toward confidence
        project_context: Project description; the semantic strategy ignores
            its words when comparing commits with task titles
    """

    use_ai: bool = False
    confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    include_file_analysis: bool = True
    project_context: str | None = None
