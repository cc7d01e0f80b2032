"""
Pluggable correlation strategies.

PatternStrategy finds explicit task references in the commit message.
KeywordOverlapStrategy is the seam for semantic correlation: when a
commit names no task, it compares the words of the message and changed
file names with candidate task titles. It is a deterministic heuristic,
not a trained classifier, and can be replaced by a model-backed strategy
implementing the same protocol.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from taskmirror.core.correlation.models import (
    CommitRecord,
    CorrelationMethod,
    CorrelationOptions,
    CorrelationResult,
    ProgressEstimate,
    SuggestedAction,
)
from taskmirror.core.correlation.patterns import (
    ReferencePolicy,
    calculate_confidence,
    determine_suggested_action,
    estimate_progress,
    get_task_references,
    select_primary_reference,
)

_WORD_RE = re.compile(r"[a-z][a-z0-9]+")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_STOPWORDS = frozenset(
    {
        "the", "and", "for", "with", "from", "into", "that", "this", "when",
        "add", "fix", "update", "src", "lib", "test", "tests", "index", "main",
    }
)


@runtime_checkable
class CorrelationStrategy(Protocol):
    """A way of linking a commit to a task."""

    method: CorrelationMethod

    def correlate(
        self,
        commit: CommitRecord,
        available_tasks: Sequence[Any],
        options: CorrelationOptions,
    ) -> CorrelationResult:
        """Return the best correlation this strategy can find (task_id may be None)."""
        ...


def no_match(commit: CommitRecord, method: CorrelationMethod, reasoning: str) -> CorrelationResult:
    """Zero-confidence result for a commit that could not be linked."""
    return CorrelationResult(
        commit_hash=commit.hash,
        task_id=None,
        confidence=0.0,
        method=method,
        reasoning=reasoning,
        progress_estimate=ProgressEstimate.UNKNOWN,
        suggested_action=SuggestedAction.NONE,
    )


class PatternStrategy:
    """Correlate through explicit references such as ``task 12`` or ``#27.6``."""

    method = CorrelationMethod.REGEX

    def __init__(
        self,
        reference_policy: ReferencePolicy = ReferencePolicy.FIRST,
        word_boundary: bool = False,
        update_status_threshold: float = 0.7,
    ) -> None:
        self.reference_policy = ReferencePolicy(reference_policy)
        self.word_boundary = word_boundary
        self.update_status_threshold = update_status_threshold

    def correlate(
        self,
        commit: CommitRecord,
        available_tasks: Sequence[Any],
        options: CorrelationOptions,
    ) -> CorrelationResult:
        references = get_task_references(commit.message)
        task_id = select_primary_reference(commit.message, references, self.reference_policy)
        if task_id is None:
            return no_match(commit, self.method, "No task references found in commit message")

        confidence = calculate_confidence(
            commit,
            task_id,
            len(references),
            include_file_analysis=options.include_file_analysis,
            word_boundary=self.word_boundary,
        )
        progress = estimate_progress(commit.message, self.word_boundary)
        return CorrelationResult(
            commit_hash=commit.hash,
            task_id=task_id,
            confidence=confidence,
            method=self.method,
            reasoning=(
                f'Found task reference "{task_id}" in commit message '
                "using regex pattern matching"
            ),
            progress_estimate=progress,
            suggested_action=determine_suggested_action(
                progress,
                confidence,
                min_confidence=options.confidence_threshold,
                update_status_threshold=self.update_status_threshold,
            ),
        )


def _tokens(text: str) -> set[str]:
    spaced = _CAMEL_RE.sub(" ", text).lower()
    return {word for word in _WORD_RE.findall(spaced) if word not in _STOPWORDS}


def _task_field(task: Any, name: str) -> Any:
    if isinstance(task, Mapping):
        return task.get(name)
    return getattr(task, name, None)


class KeywordOverlapStrategy:
    """
    Heuristic semantic correlation by shared vocabulary.

    Scores each candidate task by the fraction of its title words that
    appear in the commit message or changed file paths. Words of
    ``options.project_context`` describe the whole project, so they are
    left out of every title. The best task wins; confidence never exceeds
    ``max_confidence`` since no explicit reference backs it.
    """

    method = CorrelationMethod.AI

    def __init__(
        self,
        min_overlap: float = 0.5,
        max_confidence: float = 0.8,
        word_boundary: bool = False,
    ) -> None:
        self.min_overlap = min_overlap
        self.max_confidence = max_confidence
        self.word_boundary = word_boundary

    def correlate(
        self,
        commit: CommitRecord,
        available_tasks: Sequence[Any],
        options: CorrelationOptions,
    ) -> CorrelationResult:
        commit_words = _tokens(commit.message)
        if options.include_file_analysis:
            for path in commit.files_changed:
                commit_words |= _tokens(path)
        context_words = _tokens(options.project_context or "")

        best_id: str | None = None
        best_score = 0.0
        best_shared: set[str] = set()
        for task in available_tasks:
            title_words = _tokens(str(_task_field(task, "title") or "")) - context_words
            if not title_words:
                continue
            shared = title_words & commit_words
            score = len(shared) / len(title_words)
            if score > best_score:
                best_id, best_score, best_shared = str(_task_field(task, "id")), score, shared

        if best_id is None or best_score < self.min_overlap:
            return no_match(
                commit, self.method, "No semantic correlation found with available tasks"
            )

        confidence = round(min(self.max_confidence, 0.3 + 0.5 * best_score), 2)
        progress = estimate_progress(commit.message, self.word_boundary)
        return CorrelationResult(
            commit_hash=commit.hash,
            task_id=best_id,
            confidence=confidence,
            method=self.method,
            reasoning=(
                f"Commit shares {', '.join(sorted(best_shared))} with the title of task {best_id}"
            ),
            progress_estimate=progress,
            suggested_action=determine_suggested_action(
                progress, confidence, min_confidence=options.confidence_threshold
            ),
        )
