"""chat2md configuration."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from chat2md.models import SyncSettings

logger = logging.getLogger("chat2md.config")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Engine-owned files (state + history) live under ~/.chat2md by default
DATA_DIR = Path(os.getenv("CHAT2MD_DATA_DIR", str(Path.home() / ".chat2md"))).expanduser()
STATE_FILE = DATA_DIR / "sync_state.json"
HISTORY_FILE = DATA_DIR / "sync_history.json"
SETTINGS_FILE = Path(os.getenv("CHAT2MD_SETTINGS_FILE", str(DATA_DIR / "settings.yaml"))).expanduser()

# Sync defaults
DEFAULT_CLAUDE_PROJECTS_PATH = "~/.claude/projects"
DEFAULT_DESTINATION_PATH = "~/Documents/chat2md"
DEFAULT_SYNC_INTERVAL_SECONDS = 5
DEFAULT_SESSION_MAX_AGE_MINUTES = 60
DEFAULT_SESSION_MIN_SIZE_BYTES = 1000

LOG_LEVEL = os.getenv("CHAT2MD_LOG_LEVEL", "INFO").upper()

# Server settings
HOST = os.getenv("CHAT2MD_HOST", "127.0.0.1")
PORT = _env_int("CHAT2MD_PORT", 8765)
FRONTEND_ORIGIN = os.getenv("CHAT2MD_FRONTEND_ORIGIN", "http://localhost:3000")

# Settings file keys (snake_case in YAML) -> SyncSettings field names
_SETTINGS_KEYS = {
    "claude_projects_path": "claudeProjectsPath",
    "destination_path": "destinationPath",
    "sync_interval_seconds": "syncIntervalSeconds",
    "session_max_age_minutes": "sessionMaxAgeMinutes",
    "session_min_size_bytes": "sessionMinSizeBytes",
    "sync_enabled": "syncEnabled",
    "watch_enabled": "watchEnabled",
}


def is_path_safe(path: str) -> bool:
    """Return True for absolute paths (after ``~`` expansion) without ``..`` segments."""
    raw = (path or "").strip()
    if not raw:
        return False
    expanded = os.path.expanduser(raw)
    if not os.path.isabs(expanded):
        return False
    return ".." not in Path(expanded).parts


def expand_path(path: str) -> Path:
    return Path(os.path.expanduser((path or "").strip()))


def _load_settings_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to read settings file {path}: {e}")
        return {}
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring settings file {path}: expected a mapping")
        return {}

    values: dict[str, Any] = {}
    for key, field_name in _SETTINGS_KEYS.items():
        if key in raw and raw[key] is not None:
            values[field_name] = raw[key]
    return values


def load_settings(settings_file: Path | None = None) -> SyncSettings:
    """Build SyncSettings from defaults, the YAML settings file, then env overrides."""
    values: dict[str, Any] = {
        "claudeProjectsPath": DEFAULT_CLAUDE_PROJECTS_PATH,
        "destinationPath": DEFAULT_DESTINATION_PATH,
        "syncIntervalSeconds": DEFAULT_SYNC_INTERVAL_SECONDS,
        "sessionMaxAgeMinutes": DEFAULT_SESSION_MAX_AGE_MINUTES,
        "sessionMinSizeBytes": DEFAULT_SESSION_MIN_SIZE_BYTES,
        "syncEnabled": True,
        "watchEnabled": False,
    }
    values.update(_load_settings_file(settings_file or SETTINGS_FILE))

    projects_path = os.getenv("CHAT2MD_CLAUDE_PROJECTS_PATH")
    if projects_path:
        values["claudeProjectsPath"] = projects_path
    destination_path = os.getenv("CHAT2MD_DESTINATION_PATH")
    if destination_path:
        values["destinationPath"] = destination_path
    values["syncIntervalSeconds"] = _env_int("CHAT2MD_SYNC_INTERVAL_SECONDS", int(values["syncIntervalSeconds"]))
    values["sessionMaxAgeMinutes"] = _env_int("CHAT2MD_SESSION_MAX_AGE_MINUTES", int(values["sessionMaxAgeMinutes"]))
    values["sessionMinSizeBytes"] = _env_int("CHAT2MD_SESSION_MIN_SIZE_BYTES", int(values["sessionMinSizeBytes"]))
    values["syncEnabled"] = _env_bool("CHAT2MD_SYNC_ENABLED", bool(values["syncEnabled"]))
    values["watchEnabled"] = _env_bool("CHAT2MD_WATCH_ENABLED", bool(values["watchEnabled"]))

    return SyncSettings(**values)
