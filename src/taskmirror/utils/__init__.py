"""Utility modules for taskmirror."""

from .git import get_commit_records, get_current_commit, parse_commit_log

__all__ = [
    "get_commit_records",
    "get_current_commit",
    "parse_commit_log",
]
