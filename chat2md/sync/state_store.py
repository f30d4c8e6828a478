"""Persisted per-transcript sync watermarks."""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from chat2md.models import SessionState, SyncState

logger = logging.getLogger("chat2md.state")


def write_json_atomic(path: Path, payload: str) -> None:
    """Write ``payload`` next to ``path`` then swap it in, so readers never see half a document."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class SyncStateStore:
    """Map of transcript path -> last synced line count and time.

    The line watermark for a path only moves forward; ``reset()`` is the one
    way to send it back to zero.
    """

    def __init__(self, state_file: Path):
        self.state_file = Path(state_file)
        self._state = SyncState()
        self._lock = threading.RLock()

    def load(self) -> None:
        state = SyncState()
        if self.state_file.exists():
            try:
                state = SyncState.model_validate_json(self.state_file.read_bytes())
            except (OSError, ValidationError) as e:
                logger.warning(f"Discarding unreadable sync state {self.state_file}: {e}")
                state = SyncState()
        with self._lock:
            self._state = state
        logger.info(f"Loaded sync state for {len(state.sessionStates)} transcripts")

    def save(self) -> None:
        with self._lock:
            payload = self._state.model_dump_json(indent=2)
        try:
            write_json_atomic(self.state_file, payload)
        except OSError as e:
            logger.error(f"Failed to save sync state to {self.state_file}: {e}")
            raise

    def get_last_line(self, path: str) -> int:
        with self._lock:
            entry = self._state.sessionStates.get(path)
            return entry.lastSyncedLine if entry else 0

    def get_last_synced_timestamp(self, path: str) -> datetime | None:
        with self._lock:
            entry = self._state.sessionStates.get(path)
            return entry.lastSyncedTimestamp if entry else None

    def update_session(self, path: str, last_line: int) -> None:
        with self._lock:
            previous = self._state.sessionStates.get(path)
            watermark = max(int(last_line), 0)
            if previous and previous.lastSyncedLine > watermark:
                logger.warning(
                    "Refusing to move watermark backwards for %s (%d -> %d)",
                    path, previous.lastSyncedLine, watermark,
                )
                watermark = previous.lastSyncedLine
            self._state.sessionStates[path] = SessionState(
                sessionPath=path,
                lastSyncedLine=watermark,
                lastSyncedTimestamp=datetime.now(timezone.utc),
            )

    def cleanup_orphans(self) -> int:
        """Drop entries whose transcript no longer exists. Returns how many were removed."""
        with self._lock:
            orphans = [path for path in self._state.sessionStates if not os.path.exists(path)]
            for path in orphans:
                del self._state.sessionStates[path]
        if orphans:
            logger.info(f"Removed {len(orphans)} orphaned sync state entries")
        return len(orphans)

    def reset(self) -> None:
        with self._lock:
            self._state = SyncState()

    def snapshot(self) -> SyncState:
        with self._lock:
            return self._state.model_copy(deep=True)

    @property
    def tracked_count(self) -> int:
        with self._lock:
            return len(self._state.sessionStates)
