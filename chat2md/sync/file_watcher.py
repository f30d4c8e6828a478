"""File watcher trigger using watchfiles.

Watches the Claude projects tree and asks the sync engine for a pass when a
transcript changes. Passes still go through the engine's single-flight gate,
so a burst of changes during a pass collapses into the next timer tick.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import Change, awatch

from chat2md.parsers.discovery import EXCLUDED_DIR_NAMES, TRANSCRIPT_SUFFIX

logger = logging.getLogger("chat2md.watcher")


def is_transcript_change(path_str: str) -> bool:
    """True for top-level transcript files; sub-agent transcripts and other files are ignored."""
    path = Path(path_str)
    if path.suffix != TRANSCRIPT_SUFFIX:
        return False
    return not any(part in EXCLUDED_DIR_NAMES for part in path.parts)


def has_transcript_changes(changes: set[tuple[Change, str]]) -> bool:
    return any(is_transcript_change(path_str) for _, path_str in changes)


class FileWatcher:
    """Background watcher that triggers ``sync_engine.sync_now`` on transcript changes."""

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False

    async def start(self, sync_engine, projects_dir: Path) -> None:
        if self._running:
            logger.warning("File watcher already running")
            return
        if not projects_dir.is_dir():
            logger.warning(f"Not watching {projects_dir}: directory does not exist")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(sync_engine, projects_dir, self._stop_event))
        logger.info(f"File watcher started for {projects_dir}")

    async def stop(self) -> None:
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def _watch_loop(self, sync_engine, projects_dir: Path, stop_event: asyncio.Event) -> None:
        try:
            async for changes in awatch(projects_dir, stop_event=stop_event):
                if not self._running:
                    break
                if not has_transcript_changes(changes):
                    continue
                logger.debug("Detected transcript changes, syncing")
                try:
                    await sync_engine.sync_now(trigger="watcher")
                except Exception as e:
                    logger.error(f"Error syncing after file change: {e}")
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        except Exception as e:
            logger.error(f"File watcher error: {e}")
        finally:
            self._running = False


# Singleton instance
file_watcher = FileWatcher()
