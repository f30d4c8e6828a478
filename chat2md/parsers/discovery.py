"""Find Claude Code transcript files under a projects root."""
from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from chat2md.date_utils import file_modified_datetime
from chat2md.models import SessionFile

logger = logging.getLogger("chat2md.discovery")

TRANSCRIPT_SUFFIX = ".jsonl"
# Sub-agent transcripts are threads of a parent session, not sessions of their own.
EXCLUDED_DIR_NAMES = frozenset({"subagents"})


def _walk_transcripts(directory: Path, is_root: bool) -> list[Path]:
    found: list[Path] = []
    try:
        entries = list(os.scandir(directory))
    except OSError as e:
        if is_root:
            raise
        logger.warning(f"Skipping unreadable directory {directory}: {e}")
        return found

    for entry in entries:
        try:
            if entry.is_dir():
                if entry.name in EXCLUDED_DIR_NAMES:
                    continue
                found.extend(_walk_transcripts(Path(entry.path), is_root=False))
            elif entry.is_file() and entry.name.endswith(TRANSCRIPT_SUFFIX):
                found.append(Path(entry.path))
        except OSError as e:
            logger.debug("Skipping %s: %s", entry.path, e)
    return found


def find_session_files(
    base_path: Path | str,
    max_age: timedelta,
    now: datetime | None = None,
) -> list[SessionFile]:
    """Return transcripts under ``base_path`` modified within ``max_age``.

    Raises OSError when ``base_path`` itself cannot be listed. The result is
    unordered.
    """
    cutoff = (now or datetime.now(timezone.utc)) - max_age
    sessions: list[SessionFile] = []
    for path in _walk_transcripts(Path(base_path), is_root=True):
        try:
            stats = path.stat()
        except OSError as e:
            logger.debug("Transcript vanished during discovery %s: %s", path, e)
            continue
        modified = file_modified_datetime(stats.st_mtime)
        if modified < cutoff:
            continue
        sessions.append(SessionFile(path=str(path), modificationTime=modified, sizeBytes=stats.st_size))
    return sessions
