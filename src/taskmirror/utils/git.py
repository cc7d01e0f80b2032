"""
Git utilities for taskmirror.

Reads commit history into CommitRecord objects for the correlation
engine.
"""

from __future__ import annotations

import logging
import subprocess
from datetime import datetime
from pathlib import Path

from taskmirror.core.correlation.models import CommitAuthor, CommitRecord

logger = logging.getLogger(__name__)

_RECORD_SEP = "\x1e"
_FIELD_SEP = "\x1f"
LOG_FORMAT = "%x1e%H%x1f%an%x1f%ae%x1f%aI%x1f%B%x1f"


def parse_commit_log(output: str) -> list[CommitRecord]:
    """
    Parse ``git log --numstat`` output produced with LOG_FORMAT.

    Args:
        output: Raw stdout of git log

    Returns:
        Commit records in log order (newest first)
    """
    commits = []
    for chunk in output.split(_RECORD_SEP):
        if not chunk.strip():
            continue
        parts = chunk.split(_FIELD_SEP, 5)
        if len(parts) < 6:
            logger.debug("Skipping malformed log entry: %r", chunk[:80])
            continue
        commit_hash, name, email, date_str, message, numstat = parts

        files: list[str] = []
        insertions = deletions = 0
        for line in numstat.strip().splitlines():
            fields = line.split("\t", 2)
            if len(fields) != 3:
                continue
            added, removed, path = fields
            files.append(path)
            # Binary files report "-" for both counts
            if added.isdigit():
                insertions += int(added)
            if removed.isdigit():
                deletions += int(removed)

        try:
            date = datetime.fromisoformat(date_str.strip())
        except ValueError:
            date = None

        commits.append(
            CommitRecord(
                hash=commit_hash.strip(),
                message=message.strip(),
                author=CommitAuthor(name=name, email=email),
                date=date,
                files_changed=files,
                insertions=insertions,
                deletions=deletions,
            )
        )
    return commits


def get_commit_records(
    repo_dir: Path | str | None = None,
    since: datetime | str | None = None,
    max_count: int | None = None,
) -> list[CommitRecord]:
    """Get commits with their changed files and line counts.

    Args:
        repo_dir: Repository directory (defaults to cwd)
        since: Only commits after this time (datetime or git date string)
        max_count: Limit the number of commits

    Returns:
        Commit records, newest first; empty if git is unavailable or the
        directory is not a repository

    Example:
        >>> for commit in get_commit_records(max_count=5):
        ...     print(commit.short_hash, commit.message)
    """
    cmd = ["git", "log", f"--format={LOG_FORMAT}", "--numstat", "--no-merges"]
    if since is not None:
        since_str = since.strftime("%Y-%m-%dT%H:%M:%S") if isinstance(since, datetime) else since
        cmd.append(f"--since={since_str}")
    if max_count is not None:
        cmd.append(f"--max-count={max_count}")

    try:
        result = subprocess.run(
            cmd,
            cwd=Path(repo_dir) if repo_dir is not None else None,
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        logger.debug("git log failed: %s", e.stderr)
        return []
    except FileNotFoundError:
        # Git not installed
        return []

    return parse_commit_log(result.stdout)


def get_current_commit(repo_dir: Path | str | None = None) -> str | None:
    """Get the current HEAD commit hash.

    Returns:
        Full commit hash or None if not in a git repo
    """
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=Path(repo_dir) if repo_dir is not None else None,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
