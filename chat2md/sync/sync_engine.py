"""Incremental transcript-to-Markdown sync engine.

Scans the Claude projects tree for recently changed transcripts, parses only
the lines appended since the last pass and appends them to one Markdown file
per project and day.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from chat2md.config import expand_path, is_path_safe
from chat2md.date_utils import start_of_local_day
from chat2md.errors import InvalidPathError, SourceRootNotFoundError, SyncError
from chat2md.markdown import MarkdownConverter
from chat2md.models import (
    ConversationMessage,
    EngineState,
    SessionFile,
    SyncHistoryEntry,
    SyncSettings,
    SyncStatusSnapshot,
)
from chat2md.parsers.discovery import find_session_files
from chat2md.parsers.transcripts import parse_new_lines
from chat2md.project_names import ProjectNameResolver
from chat2md.sync.history import SyncHistoryStore
from chat2md.sync.state_store import SyncStateStore

logger = logging.getLogger("chat2md.sync")


@dataclass
class PassResult:
    synced_count: int = 0
    watching_count: int = 0
    stats: dict[str, Any] = field(default_factory=dict)


class SyncEngine:
    """Runs sync passes and owns the periodic timer.

    At most one pass runs at a time: a trigger that arrives while a pass is in
    flight is skipped. The blocking file work of a pass runs in a worker
    thread so the event loop keeps serving status requests.
    """

    def __init__(
        self,
        settings: SyncSettings,
        state_store: SyncStateStore,
        history_store: SyncHistoryStore,
        resolver: ProjectNameResolver | None = None,
        converter: MarkdownConverter | None = None,
    ):
        self.settings = settings
        self.state_store = state_store
        self.history_store = history_store
        self.resolver = resolver or ProjectNameResolver()
        self.converter = converter or MarkdownConverter()

        self._state: EngineState = "idle"
        self._last_sync_time: datetime | None = None
        self._last_error: str | None = None
        self._last_pass_stats: dict[str, Any] = {}
        self._current_pass: asyncio.Task | None = None
        self._periodic_task: asyncio.Task | None = None
        self._periodic_interval: int = settings.syncIntervalSeconds

    # ── Trigger surface ─────────────────────────────────────────────

    @property
    def is_syncing(self) -> bool:
        return self._current_pass is not None and not self._current_pass.done()

    @property
    def is_periodic_running(self) -> bool:
        return self._periodic_task is not None and not self._periodic_task.done()

    async def sync_now(self, trigger: str = "manual") -> SyncHistoryEntry | None:
        """Run one pass. Returns the recorded history entry, or None if a pass was already running."""
        if self.is_syncing:
            logger.info("Sync already in progress; skipping %s trigger", trigger)
            return None
        return await asyncio.shield(self._start_pass(trigger))

    async def reset_state(self) -> SyncHistoryEntry | None:
        """Forget every offset and the history, then run one full pass."""
        # Another reset or trigger may claim the gate while this one waits.
        while self._current_pass is not None and not self._current_pass.done():
            await asyncio.wait({self._current_pass})
        return await asyncio.shield(self._start_pass("reset", reset=True))

    async def start_periodic_sync(self, interval_seconds: int | None = None) -> None:
        await self.stop_periodic_sync()
        interval = max(1, int(interval_seconds or self.settings.syncIntervalSeconds))
        self._periodic_interval = interval
        self._periodic_task = asyncio.create_task(self._periodic_loop(interval))
        logger.info(f"Periodic sync started (every {interval}s)")

    async def stop_periodic_sync(self) -> None:
        """Stop the timer. A pass already running is left to finish."""
        task = self._periodic_task
        self._periodic_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Periodic sync stopped")

    async def wait_idle(self) -> None:
        if self._current_pass is not None and not self._current_pass.done():
            await asyncio.wait({self._current_pass})

    async def update_settings(self, settings: SyncSettings) -> None:
        """Swap in new settings; a running timer is restarted with the new interval."""
        self.settings = settings
        if self.is_periodic_running:
            await self.start_periodic_sync(settings.syncIntervalSeconds)

    # ── Status surface ──────────────────────────────────────────────

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def last_sync_time(self) -> datetime | None:
        return self._last_sync_time

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def recent_history(self) -> list[SyncHistoryEntry]:
        return self.history_store.recent_entries()

    def get_status(self) -> SyncStatusSnapshot:
        return SyncStatusSnapshot(
            state=self._state,
            lastSyncTime=self._last_sync_time,
            lastError=self._last_error,
            trackedFileCount=self.state_store.tracked_count,
            periodicSyncRunning=self.is_periodic_running,
            lastPassStats=dict(self._last_pass_stats),
            history=self.history_store.recent_entries(),
        )

    # ── Pass lifecycle ──────────────────────────────────────────────

    def _start_pass(self, trigger: str, reset: bool = False) -> asyncio.Task:
        task = asyncio.create_task(self._run_pass(trigger, reset=reset))
        self._current_pass = task
        return task

    async def _periodic_loop(self, interval: int) -> None:
        while True:
            try:
                await self.sync_now(trigger="timer")
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Periodic sync pass crashed")
            await asyncio.sleep(interval)

    def _reset_stores(self) -> None:
        logger.info("Resetting sync state and history")
        self.resolver.clear_cache()
        self.state_store.reset()
        self.state_store.save()
        self.history_store.clear()

    async def _run_pass(self, trigger: str, reset: bool = False) -> SyncHistoryEntry:
        t0 = time.monotonic()
        try:
            if reset:
                await asyncio.to_thread(self._reset_stores)
            if not self.settings.syncEnabled:
                logger.debug("Sync disabled; recording skipped pass (%s)", trigger)
                return self.history_store.add_skipped()
            self._state = "syncing"
            result = await asyncio.to_thread(self._sync_all_sessions)
        except (SyncError, OSError) as exc:
            self._state = "error"
            self._last_error = str(exc)
            logger.error(f"Sync failed ({trigger}): {exc}")
            return self.history_store.add_failure(str(exc))
        except Exception as exc:
            self._state = "error"
            self._last_error = str(exc)
            self.history_store.add_failure(str(exc))
            raise

        elapsed = int((time.monotonic() - t0) * 1000)
        result.stats["duration_ms"] = elapsed
        result.stats["trigger"] = trigger
        self._last_pass_stats = result.stats
        self._state = "idle"
        self._last_sync_time = datetime.now(timezone.utc)
        self._last_error = None

        logger.info(
            f"Sync complete ({trigger}): "
            f"{result.stats['sessions_synced']} synced, "
            f"{result.stats['sessions_skipped']} skipped, "
            f"{result.stats['sessions_failed']} failed, "
            f"{result.watching_count} tracked "
            f"in {elapsed}ms"
        )
        if result.synced_count > 0:
            return self.history_store.add_success(result.synced_count)
        return self.history_store.add_skipped()

    # ── One pass (runs in a worker thread) ──────────────────────────

    def _validated_roots(self) -> tuple[Path, Path]:
        if not is_path_safe(self.settings.claudeProjectsPath):
            raise InvalidPathError("Claude projects path", self.settings.claudeProjectsPath)
        if not is_path_safe(self.settings.destinationPath):
            raise InvalidPathError("Destination path", self.settings.destinationPath)
        source_root = expand_path(self.settings.claudeProjectsPath)
        if not source_root.is_dir():
            raise SourceRootNotFoundError(str(source_root))
        return source_root, expand_path(self.settings.destinationPath)

    def _sync_all_sessions(self) -> PassResult:
        source_root, destination_root = self._validated_roots()
        now = datetime.now(timezone.utc)
        max_age = timedelta(minutes=self.settings.sessionMaxAgeMinutes)
        cutoff = now - max_age
        today_start = start_of_local_day()

        stats = {
            "sessions_found": 0,
            "sessions_synced": 0,
            "sessions_skipped": 0,
            "sessions_failed": 0,
            "messages_written": 0,
            "orphans_removed": 0,
        }
        candidates = find_session_files(source_root, max_age, now=now)
        stats["sessions_found"] = len(candidates)

        for session in candidates:
            outcome = self._sync_single_session(session, destination_root, cutoff, today_start)
            if outcome < 0:
                stats["sessions_failed"] += 1
            elif outcome == 0:
                stats["sessions_skipped"] += 1
            else:
                stats["sessions_synced"] += 1
                stats["messages_written"] += outcome

        stats["orphans_removed"] = self.state_store.cleanup_orphans()
        self.state_store.save()

        return PassResult(
            synced_count=stats["sessions_synced"],
            watching_count=self.state_store.tracked_count,
            stats=stats,
        )

    def _sync_single_session(
        self,
        session: SessionFile,
        destination_root: Path,
        cutoff: datetime,
        since: datetime,
    ) -> int:
        """Sync one transcript. Returns messages written, 0 when skipped, -1 on a recovered I/O error."""
        path = session.path
        if session.sizeBytes < self.settings.sessionMinSizeBytes:
            return 0
        if session.modificationTime < cutoff:
            return 0
        last_synced_at = self.state_store.get_last_synced_timestamp(path)
        if last_synced_at is not None and session.modificationTime <= last_synced_at:
            return 0

        last_line = self.state_store.get_last_line(path)
        result = parse_new_lines(path, after_line=last_line, since=since)

        if not result.messages:
            # Advance past records that were seen but filtered, so they are not rescanned.
            if result.totalLines > last_line:
                self.state_store.update_session(path, result.totalLines)
            return 0

        project_name = self.resolver.resolve_project_name(path)
        try:
            self._append_markdown(result.messages, project_name, destination_root)
        except OSError as e:
            logger.warning(f"Failed to append {path} to {project_name} export: {e}")
            return -1

        self.state_store.update_session(path, result.totalLines)
        logger.debug("Synced %d messages from %s into %s", len(result.messages), path, project_name)
        return len(result.messages)

    def _append_markdown(
        self,
        messages: list[ConversationMessage],
        project_name: str,
        destination_root: Path,
    ) -> Path:
        destination_root.mkdir(parents=True, exist_ok=True)
        filename = self.converter.generate_filename(project_name, datetime.now())
        target = destination_root / filename
        content = self.converter.convert_for_append(messages)
        with target.open("a", encoding="utf-8") as f:
            f.write(content)
        return target
