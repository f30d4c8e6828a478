#!/usr/bin/env python3
"""Run a single transcript-to-Markdown sync pass.

Usage:
  python -m chat2md.scripts.sync_once
  python -m chat2md.scripts.sync_once --reset
  python -m chat2md.scripts.sync_once --status --json
  python -m chat2md.scripts.sync_once --source ~/.claude/projects --dest ~/notes/claude
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging

from chat2md import config
from chat2md.sync.history import SyncHistoryStore
from chat2md.sync.state_store import SyncStateStore
from chat2md.sync.sync_engine import SyncEngine


def _build_engine(args: argparse.Namespace) -> SyncEngine:
    settings = config.load_settings()
    overrides = {}
    if args.source:
        overrides["claudeProjectsPath"] = args.source
    if args.dest:
        overrides["destinationPath"] = args.dest
    if args.max_age_minutes:
        overrides["sessionMaxAgeMinutes"] = args.max_age_minutes
    if overrides:
        settings = settings.model_copy(update=overrides)

    state_store = SyncStateStore(config.STATE_FILE)
    state_store.load()
    history_store = SyncHistoryStore(config.HISTORY_FILE)
    history_store.load()
    return SyncEngine(settings, state_store, history_store)


def _print_status(engine: SyncEngine, as_json: bool) -> None:
    status = engine.get_status()
    if as_json:
        print(json.dumps(status.model_dump(mode="json"), indent=2))
        return
    print(f"Source: {engine.settings.claudeProjectsPath}")
    print(f"Destination: {engine.settings.destinationPath}")
    print(f"Tracked files: {status.trackedFileCount}")
    print(f"History entries: {len(status.history)}")
    for entry in status.history[-10:]:
        line = f"  {entry.timestamp.isoformat()} {entry.status:<8} files={entry.filesProcessed}"
        if entry.errorMessage:
            line += f" error={entry.errorMessage}"
        print(line)


async def _run(args: argparse.Namespace) -> int:
    engine = _build_engine(args)
    if args.status:
        _print_status(engine, args.json)
        return 0

    entry = await (engine.reset_state() if args.reset else engine.sync_now(trigger="cli"))
    if entry is None:
        print("A sync pass is already running")
        return 1

    if args.json:
        print(json.dumps({"entry": entry.model_dump(mode="json"), "stats": engine.get_status().lastPassStats}, indent=2))
    else:
        print(f"Sync {entry.status}: {entry.filesProcessed} files")
        if entry.errorMessage:
            print(f"Error: {entry.errorMessage}")
    return 1 if entry.status == "failure" else 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--source", default="", help="Claude projects directory (absolute)")
    parser.add_argument("--dest", default="", help="Markdown destination directory (absolute)")
    parser.add_argument("--max-age-minutes", type=int, default=0)
    parser.add_argument("--reset", action="store_true", help="Forget all offsets and history before syncing")
    parser.add_argument("--status", action="store_true", help="Print stored status without syncing")
    parser.add_argument("--json", action="store_true")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else config.LOG_LEVEL)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
