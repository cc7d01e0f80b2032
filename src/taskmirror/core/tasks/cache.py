"""
On-disk cache of the store snapshot.

Lets an application rehydrate the last loaded project on startup without
waiting for a fresh fetch. Writes are atomic (temp file + rename).
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from taskmirror.core.tasks.state import StoreSnapshot

logger = logging.getLogger(__name__)


def save_snapshot(path: Path, snapshot: StoreSnapshot) -> None:
    """
    Save a snapshot atomically.

    Args:
        path: Destination file (parent directories are created)
        snapshot: Snapshot to persist
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".snapshot_", suffix=".json.tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(snapshot.model_dump_json(indent=2))
            f.write("\n")
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def load_snapshot(path: Path) -> StoreSnapshot | None:
    """
    Load a snapshot, returning None if it is missing or unreadable.

    A corrupt cache is not an error: the caller simply falls back to a
    fresh sync.
    """
    path = Path(path)
    if not path.exists():
        return None
    try:
        return StoreSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.warning("Ignoring unreadable snapshot cache %s: %s", path, e)
        return None
