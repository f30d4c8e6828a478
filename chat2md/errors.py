"""Errors that abort a whole sync pass.

Per-file and per-line problems never surface here; they are recovered where
they happen. The message of each error is what the status surface shows.
"""
from __future__ import annotations


class SyncError(Exception):
    """Base class for pass-fatal sync failures."""


class InvalidPathError(SyncError):
    def __init__(self, name: str, path: str = ""):
        self.name = name
        self.path = path
        super().__init__(f"{name} must be an absolute path without '..' segments (path traversal not allowed)")


class SourceRootNotFoundError(SyncError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Claude projects path not found: {path}")
