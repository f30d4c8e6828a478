"""Resolve a human-readable project label for a transcript file.

Claude Code stores transcripts in folders named after the encoded working
directory (``/Users/alice/dev/blog`` becomes ``-Users-alice-dev-blog``).
Resolution tries, in order: the folder's ``sessions-index.json``, the ``cwd``
recorded inside the transcript, and finally decoding the folder name against
the real filesystem.
"""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path, PurePath

from pydantic import ValidationError

from chat2md.models import ProjectIndex

logger = logging.getLogger("chat2md.projects")

SESSION_INDEX_FILENAME = "sessions-index.json"
CWD_SCAN_LINE_LIMIT = 200
_ENCODED_SEPARATOR = "-"


def _last_path_segment(value: str) -> str:
    return PurePath(value.strip().rstrip("/\\")).name


class ProjectIndexCache:
    """Parsed ``sessions-index.json`` documents keyed by absolute path.

    Unreadable or invalid documents are not cached so a later fix to the file
    is picked up without a reset.
    """

    def __init__(self):
        self._indexes: dict[str, ProjectIndex] = {}
        self._lock = threading.Lock()

    def get(self, index_path: Path) -> ProjectIndex | None:
        key = str(index_path.resolve(strict=False))
        with self._lock:
            cached = self._indexes.get(key)
        if cached is not None:
            return cached

        if not index_path.is_file():
            return None
        try:
            index = ProjectIndex.model_validate_json(index_path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.debug("Ignoring session index %s: %s", index_path, e)
            return None

        with self._lock:
            self._indexes[key] = index
        return index

    def clear(self) -> None:
        with self._lock:
            self._indexes.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._indexes)


class ProjectNameResolver:
    def __init__(self, cache: ProjectIndexCache | None = None, filesystem_root: Path | str = "/"):
        self.cache = cache if cache is not None else ProjectIndexCache()
        self.filesystem_root = Path(filesystem_root)

    def clear_cache(self) -> None:
        self.cache.clear()

    def resolve_project_name(self, session_path: Path | str) -> str:
        path = Path(session_path)
        folder = path.parent

        name = self._from_session_index(path)
        if name:
            return name

        name = self._from_transcript_cwd(path)
        if name:
            return name

        return self.resolve_from_folder_name(folder.name)

    def _from_session_index(self, session_path: Path) -> str:
        index = self.cache.get(session_path.parent / SESSION_INDEX_FILENAME)
        if index is None:
            return ""
        session_id = session_path.stem
        for entry in index.entries:
            if entry.sessionId == session_id and entry.projectPath and entry.projectPath.strip():
                return _last_path_segment(entry.projectPath)
        return ""

    def _from_transcript_cwd(self, session_path: Path) -> str:
        try:
            with session_path.open("r", encoding="utf-8") as f:
                scanned = 0
                for line in f:
                    if not line.strip():
                        continue
                    scanned += 1
                    if scanned > CWD_SCAN_LINE_LIMIT:
                        break
                    try:
                        entry = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    cwd = entry.get("cwd") if isinstance(entry, dict) else None
                    if isinstance(cwd, str) and cwd.strip():
                        return _last_path_segment(cwd)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Could not scan %s for cwd: %s", session_path, e)
        return ""

    def resolve_from_folder_name(self, folder_name: str) -> str:
        """Decode a ``-``-joined absolute path back into its project name.

        Candidate split points are tried from the longest trailing project name
        to the shortest; the first whose decoded path is an existing directory
        wins. Hyphenated project names (``my-app``) therefore survive when the
        directory really exists.
        """
        if not folder_name.startswith(_ENCODED_SEPARATOR):
            return folder_name

        components = folder_name.split(_ENCODED_SEPARATOR)
        for split_point in range(1, len(components)):
            dir_segments = components[1 : split_point + 1]
            if any(not segment for segment in dir_segments):
                continue
            project_name = _ENCODED_SEPARATOR.join(components[split_point + 1 :])
            candidate = self.filesystem_root.joinpath(*dir_segments)
            if project_name:
                candidate = candidate / project_name
            if candidate.is_dir():
                return project_name or components[split_point]

        return components[-1]
