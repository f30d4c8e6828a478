"""Bounded record of recent sync outcomes for the status timeline."""
from __future__ import annotations

import logging
import threading
from collections import deque
from pathlib import Path

from pydantic import ValidationError

from chat2md.models import SyncHistory, SyncHistoryEntry
from chat2md.sync.state_store import write_json_atomic

logger = logging.getLogger("chat2md.history")

MAX_HISTORY_ENTRIES = 48


class SyncHistoryStore:
    def __init__(self, history_file: Path | None = None, max_entries: int = MAX_HISTORY_ENTRIES):
        self.history_file = Path(history_file) if history_file else None
        self.max_entries = max_entries
        self._entries: deque[SyncHistoryEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def load(self) -> None:
        if not self.history_file or not self.history_file.exists():
            return
        try:
            history = SyncHistory.model_validate_json(self.history_file.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning(f"Discarding unreadable sync history {self.history_file}: {e}")
            return
        with self._lock:
            self._entries = deque(history.entries, maxlen=self.max_entries)

    def _persist(self) -> None:
        if not self.history_file:
            return
        with self._lock:
            payload = SyncHistory(entries=list(self._entries)).model_dump_json(indent=2)
        try:
            write_json_atomic(self.history_file, payload)
        except OSError as e:
            # History is observability only; a failed write must not fail the pass.
            logger.warning(f"Failed to save sync history to {self.history_file}: {e}")

    def add(self, entry: SyncHistoryEntry) -> SyncHistoryEntry:
        with self._lock:
            self._entries.append(entry)
        self._persist()
        return entry

    def add_success(self, files_processed: int) -> SyncHistoryEntry:
        return self.add(SyncHistoryEntry(status="success", filesProcessed=files_processed))

    def add_failure(self, error: str) -> SyncHistoryEntry:
        return self.add(SyncHistoryEntry(status="failure", errorMessage=error))

    def add_skipped(self) -> SyncHistoryEntry:
        return self.add(SyncHistoryEntry(status="skipped"))

    def recent_entries(self, limit: int | None = None) -> list[SyncHistoryEntry]:
        """Oldest first, newest last."""
        with self._lock:
            entries = list(self._entries)
        if limit is not None:
            entries = entries[-max(1, limit):]
        return entries

    @property
    def last_entry(self) -> SyncHistoryEntry | None:
        with self._lock:
            return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        self._persist()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
