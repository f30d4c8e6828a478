"""Pydantic models shared by the sync engine, the API and the persisted JSON files."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["user", "assistant"]
SyncHistoryStatus = Literal["success", "failure", "skipped"]
EngineState = Literal["idle", "syncing", "error"]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Transcript-side models ──────────────────────────────────────────

class SessionFile(BaseModel):
    path: str
    modificationTime: datetime
    sizeBytes: int = 0


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    timestamp: Optional[datetime] = None


class ParseResult(BaseModel):
    messages: list[ConversationMessage] = Field(default_factory=list)
    totalLines: int = 0


class ProjectIndexEntry(BaseModel):
    sessionId: str
    projectPath: Optional[str] = None


class ProjectIndex(BaseModel):
    entries: list[ProjectIndexEntry] = Field(default_factory=list)


# ── Engine state ────────────────────────────────────────────────────

class SessionState(BaseModel):
    sessionPath: str
    lastSyncedLine: int = Field(default=0, ge=0)
    lastSyncedTimestamp: datetime = Field(default_factory=_utc_now)


class SyncState(BaseModel):
    sessionStates: dict[str, SessionState] = Field(default_factory=dict)


class SyncHistoryEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=_utc_now)
    status: SyncHistoryStatus
    filesProcessed: int = 0
    errorMessage: Optional[str] = None


class SyncHistory(BaseModel):
    entries: list[SyncHistoryEntry] = Field(default_factory=list)


class SyncSettings(BaseModel):
    claudeProjectsPath: str = "~/.claude/projects"
    destinationPath: str = "~/Documents/chat2md"
    syncIntervalSeconds: int = Field(default=5, ge=1)
    sessionMaxAgeMinutes: int = Field(default=60, ge=1)
    sessionMinSizeBytes: int = Field(default=1000, ge=0)
    syncEnabled: bool = True
    watchEnabled: bool = False


class SyncStatusSnapshot(BaseModel):
    state: EngineState = "idle"
    lastSyncTime: Optional[datetime] = None
    lastError: Optional[str] = None
    trackedFileCount: int = 0
    periodicSyncRunning: bool = False
    lastPassStats: dict = Field(default_factory=dict)
    history: list[SyncHistoryEntry] = Field(default_factory=list)
