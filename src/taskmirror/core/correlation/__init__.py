"""
Commit-to-task correlation.

Estimates which task a commit advances, how confidently, and what a
consumer should do about it.

Example:
    >>> from taskmirror.core.correlation import CommitRecord, TaskCorrelationService
    >>> service = TaskCorrelationService()
    >>> service.get_task_references("wip: start working on 12")
    ['12']
"""

from taskmirror.core.correlation.models import (
    CommitAuthor,
    CommitRecord,
    CorrelationMethod,
    CorrelationOptions,
    CorrelationResult,
    ProgressEstimate,
    SuggestedAction,
)
from taskmirror.core.correlation.patterns import ReferencePolicy, get_task_references
from taskmirror.core.correlation.service import TaskCorrelationService, group_by_task
from taskmirror.core.correlation.strategies import (
    CorrelationStrategy,
    KeywordOverlapStrategy,
    PatternStrategy,
)

__all__ = [
    "CommitAuthor",
    "CommitRecord",
    "CorrelationMethod",
    "CorrelationOptions",
    "CorrelationResult",
    "CorrelationStrategy",
    "KeywordOverlapStrategy",
    "PatternStrategy",
    "ProgressEstimate",
    "ReferencePolicy",
    "SuggestedAction",
    "TaskCorrelationService",
    "get_task_references",
    "group_by_task",
]
