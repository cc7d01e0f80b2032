"""
Pattern rules and scoring for commit-to-task correlation.

Task ids are numeric strings, optionally dotted as ``parent.sub`` for
subtasks. All rules run over a commit message and their matches merge
into one de-duplicated list in rule order, then position order.
"""

from __future__ import annotations

import re
from collections import Counter
from enum import Enum

from taskmirror.core.correlation.models import CommitRecord, ProgressEstimate, SuggestedAction

TASK_REFERENCE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Work-verb references: "task 27", "implement: 12", "working on 4.2"
    re.compile(
        r"(?:task|fix|close|resolve|complete|implement|work(?:ing)?\s+on)s?\s*[:#]?\s*"
        r"(\d+(?:\.\d+)?)",
        re.IGNORECASE,
    ),
    # Hash references: "#27", "#27.6"
    re.compile(r"#(\d+(?:\.\d+)?)"),
    # Subtask references: "subtask 27.6", "sub: 3.1"
    re.compile(r"(?:subtask|sub)s?\s*[:#]?\s*(\d+\.\d+)", re.IGNORECASE),
    # Bare dotted ids: "27.6"
    re.compile(r"\b(\d+\.\d+)\b"),
    # Closing verbs: "fixes #27", "addresses 4"
    re.compile(r"(?:fixes|closes|resolves|addresses)s?\s*[:#]?\s*(\d+(?:\.\d+)?)", re.IGNORECASE),
)

# Checked in this order; completion wins over start, start over progress
PROGRESS_KEYWORDS: tuple[tuple[ProgressEstimate, tuple[str, ...]], ...] = (
    (
        ProgressEstimate.COMPLETED,
        ("fix", "complete", "finish", "done", "resolve", "close", "final"),
    ),
    (
        ProgressEstimate.STARTED,
        ("start", "begin", "initial", "setup", "create", "add", "implement"),
    ),
    (
        ProgressEstimate.IN_PROGRESS,
        ("update", "modify", "change", "improve", "refactor", "enhance", "work"),
    ),
)

BASE_CONFIDENCE = 0.5
CONFIDENCE_BONUSES: tuple[tuple[str, float], ...] = (
    ("task", 0.2),
    ("fix", 0.1),
    ("complete", 0.2),
)
MULTIPLE_REFERENCE_BONUS = 0.1
SUBTASK_REFERENCE_BONUS = 0.1
FILES_CHANGED_BONUS = 0.05


class ReferencePolicy(str, Enum):
    """How the primary task is chosen when a message references several."""

    FIRST = "first"
    MOST_SPECIFIC = "most_specific"
    MOST_FREQUENT = "most_frequent"


def contains_keyword(message: str, keyword: str, word_boundary: bool = False) -> bool:
    """
    Case-insensitive keyword test.

    With ``word_boundary`` the keyword must start a word, so "fix" matches
    "fixes" but not "prefix". Otherwise it is a plain substring test.
    """
    if word_boundary:
        return re.search(rf"\b{re.escape(keyword)}", message, re.IGNORECASE) is not None
    return keyword.lower() in message.lower()


def find_reference_matches(message: str) -> list[tuple[int, str]]:
    """
    Run every rule over a message.

    Returns:
        (position, id) pairs in rule order then position order. A span
        matched by more than one rule appears once per rule.
    """
    matches: list[tuple[int, str]] = []
    for pattern in TASK_REFERENCE_PATTERNS:
        for match in pattern.finditer(message):
            if match.group(1):
                matches.append((match.start(1), match.group(1)))
    return matches


def get_task_references(message: str) -> list[str]:
    """
    Extract task ids referenced by a commit message.

    Returns:
        Unique ids in first-seen order

    Example:
        >>> get_task_references("fix task #27.6, see also #12")
        ['27.6', '12']
    """
    return list(dict.fromkeys(task_id for _, task_id in find_reference_matches(message)))


def select_primary_reference(
    message: str,
    references: list[str],
    policy: ReferencePolicy = ReferencePolicy.FIRST,
) -> str | None:
    """
    Pick the task a commit most likely advances.

    ``first`` follows rule order, ``most_specific`` prefers the first
    dotted (subtask) id, ``most_frequent`` counts distinct mentions and
    breaks ties by first-seen order.
    """
    if not references:
        return None
    if policy == ReferencePolicy.MOST_SPECIFIC:
        return next((ref for ref in references if "." in ref), references[0])
    if policy == ReferencePolicy.MOST_FREQUENT:
        counts = Counter(task_id for _, task_id in set(find_reference_matches(message)))
        return max(references, key=lambda ref: counts[ref])
    return references[0]


def calculate_confidence(
    commit: CommitRecord,
    task_id: str,
    reference_count: int,
    include_file_analysis: bool = True,
    word_boundary: bool = False,
) -> float:
    """
    Score how strongly a commit should be trusted to advance a task.

    Starts at 0.5 and adds fixed bonuses for explicit wording, multiple
    references, subtask-level ids and touched files. Capped at 1.0.
    """
    confidence = BASE_CONFIDENCE
    for keyword, bonus in CONFIDENCE_BONUSES:
        if contains_keyword(commit.message, keyword, word_boundary):
            confidence += bonus

    if reference_count > 1:
        confidence += MULTIPLE_REFERENCE_BONUS
    if "." in task_id:
        confidence += SUBTASK_REFERENCE_BONUS
    if include_file_analysis and commit.files_changed:
        confidence += FILES_CHANGED_BONUS

    return round(min(confidence, 1.0), 2)


def estimate_progress(message: str, word_boundary: bool = False) -> ProgressEstimate:
    """Estimate task progress from commit message keywords."""
    for estimate, keywords in PROGRESS_KEYWORDS:
        if any(contains_keyword(message, keyword, word_boundary) for keyword in keywords):
            return estimate
    return ProgressEstimate.UNKNOWN


def determine_suggested_action(
    progress: ProgressEstimate,
    confidence: float,
    min_confidence: float = 0.5,
    update_status_threshold: float = 0.7,
) -> SuggestedAction:
    """
    Map progress and confidence to an action.

    Below ``min_confidence`` nothing is suggested. A completed task gets a
    status update only above ``update_status_threshold``.
    """
    if confidence < min_confidence:
        return SuggestedAction.NONE
    if progress == ProgressEstimate.COMPLETED:
        if confidence > update_status_threshold:
            return SuggestedAction.UPDATE_STATUS
        return SuggestedAction.ADD_PROGRESS
    if progress in (ProgressEstimate.STARTED, ProgressEstimate.IN_PROGRESS):
        return SuggestedAction.ADD_PROGRESS
    return SuggestedAction.NONE
