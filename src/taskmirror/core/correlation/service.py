"""
Commit-to-task correlation service.

Runs the pattern strategy over each commit and, when nothing is
referenced and the caller asks for it, falls back to a semantic strategy.
Acting on a correlation is delegated to a progress sink so the engine
itself never touches the task store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from taskmirror.core.correlation.models import (
    CommitRecord,
    CorrelationOptions,
    CorrelationResult,
)
from taskmirror.core.correlation.patterns import ReferencePolicy, get_task_references
from taskmirror.core.correlation.strategies import (
    CorrelationStrategy,
    KeywordOverlapStrategy,
    PatternStrategy,
)

logger = logging.getLogger(__name__)

ProgressSink = Callable[[CorrelationResult], bool]


class TaskCorrelationService:
    """
    Correlate commits with project tasks.

    Example:
        >>> service = TaskCorrelationService()
        >>> commit = CommitRecord(hash="abc123", message="fix task #27.6 validation bug")
        >>> result = service.analyze_commit_task_correlation(commit)
        >>> result.task_id, result.suggested_action.value
        ('27.6', 'update-status')
    """

    def __init__(
        self,
        pattern_strategy: CorrelationStrategy | None = None,
        semantic_strategy: CorrelationStrategy | None = None,
        progress_sink: ProgressSink | None = None,
        default_options: CorrelationOptions | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            pattern_strategy: Strategy for explicit references
                (defaults to PatternStrategy)
            semantic_strategy: Fallback used when ``use_ai`` is set and no
                reference is found (defaults to KeywordOverlapStrategy)
            progress_sink: Callable that applies an actionable correlation,
                e.g. SyncController.apply_correlation
            default_options: Options used when a call passes none
        """
        self.pattern_strategy = pattern_strategy or PatternStrategy()
        self.semantic_strategy = semantic_strategy or KeywordOverlapStrategy()
        self.progress_sink = progress_sink
        self.default_options = default_options or CorrelationOptions()

    @classmethod
    def from_config(
        cls, config: Any, progress_sink: ProgressSink | None = None
    ) -> TaskCorrelationService:
        """
        Build a service from a CorrelationConfig section.

        Args:
            config: ``TaskMirrorConfig.correlation``
            progress_sink: Optional sink for update_task_progress
        """
        return cls(
            pattern_strategy=PatternStrategy(
                reference_policy=ReferencePolicy(config.reference_policy),
                word_boundary=config.word_boundary,
                update_status_threshold=config.update_status_threshold,
            ),
            semantic_strategy=KeywordOverlapStrategy(word_boundary=config.word_boundary),
            progress_sink=progress_sink,
            default_options=CorrelationOptions(
                use_ai=config.use_ai,
                confidence_threshold=config.confidence_threshold,
            ),
        )

    def get_task_references(self, commit_message: str) -> list[str]:
        """Extract unique task ids referenced by a commit message."""
        return get_task_references(commit_message)

    def analyze_commit_task_correlation(
        self,
        commit: CommitRecord,
        available_tasks: Sequence[Any] = (),
        options: CorrelationOptions | None = None,
    ) -> CorrelationResult:
        """
        Correlate one commit with the task it most likely advances.

        Args:
            commit: Commit to analyse
            available_tasks: Candidate tasks (records, models or dicts with
                ``id`` and ``title``); only the semantic fallback uses them
            options: Per-call options (defaults to the service defaults)

        Returns:
            CorrelationResult; task_id is None when nothing matched
        """
        options = options or self.default_options
        result = self.pattern_strategy.correlate(commit, available_tasks, options)

        if result.task_id is None and options.use_ai:
            logger.debug("No reference in %s, trying semantic correlation", commit.short_hash)
            result = self.semantic_strategy.correlate(commit, available_tasks, options)

        logger.debug(
            "Commit %s -> task %s (%.2f, %s)",
            commit.short_hash,
            result.task_id,
            result.confidence,
            result.method.value,
        )
        return result

    def analyze_commits(
        self,
        commits: Iterable[CommitRecord],
        available_tasks: Sequence[Any] = (),
        options: CorrelationOptions | None = None,
    ) -> list[CorrelationResult]:
        """Correlate a sequence of commits, preserving order."""
        return [
            self.analyze_commit_task_correlation(commit, available_tasks, options)
            for commit in commits
        ]

    def update_task_progress(
        self,
        correlation: CorrelationResult,
        options: CorrelationOptions | None = None,
    ) -> bool:
        """
        Hand an actionable correlation to the progress sink.

        Returns:
            False when the correlation has no task or is below the
            confidence threshold (a normal outcome, not an error);
            otherwise the sink's answer, or True when no sink is set.
        """
        threshold = (options or self.default_options).confidence_threshold
        if correlation.task_id is None or correlation.confidence < threshold:
            return False

        logger.info(
            "Correlation suggests %s for task %s (%s, confidence %.2f, commit %s)",
            correlation.suggested_action.value,
            correlation.task_id,
            correlation.progress_estimate.value,
            correlation.confidence,
            correlation.commit_hash[:8],
        )
        if self.progress_sink is None:
            return True
        return self.progress_sink(correlation)


def group_by_task(results: Iterable[CorrelationResult]) -> dict[str, list[CorrelationResult]]:
    """Group correlated results by task id, dropping uncorrelated commits."""
    grouped: dict[str, list[CorrelationResult]] = {}
    for result in results:
        if result.task_id is not None:
            grouped.setdefault(result.task_id, []).append(result)
    return grouped
