"""Sync trigger + status API consumed by the menu bar / dashboard UI."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from pydantic import BaseModel, Field

logger = logging.getLogger("chat2md.api")

sync_router = APIRouter(prefix="/api/sync", tags=["sync"])


class SyncRequest(BaseModel):
    background: bool = False
    trigger: str = "api"


class PeriodicSyncRequest(BaseModel):
    intervalSeconds: Optional[int] = Field(default=None, ge=1)


def _get_sync_engine(request: Request):
    sync_engine = getattr(request.app.state, "sync_engine", None)
    if not sync_engine:
        raise HTTPException(status_code=503, detail="Sync engine not initialized")
    return sync_engine


@sync_router.get("/status")
async def get_sync_status(request: Request):
    """Return engine state, last sync time/error, tracked file count and the history timeline."""
    sync_engine = _get_sync_engine(request)
    return sync_engine.get_status().model_dump(mode="json")


@sync_router.get("/history")
async def list_sync_history(request: Request, limit: int = Query(48, ge=1, le=48)):
    """Return recent sync outcomes, oldest first."""
    sync_engine = _get_sync_engine(request)
    entries = sync_engine.recent_history[-limit:]
    return {
        "status": "ok",
        "count": len(entries),
        "items": [entry.model_dump(mode="json") for entry in entries],
    }


@sync_router.post("/run")
async def trigger_sync(request: Request, background_tasks: BackgroundTasks, body: SyncRequest):
    """Run one sync pass now."""
    sync_engine = _get_sync_engine(request)

    if body.background:
        background_tasks.add_task(sync_engine.sync_now, body.trigger)
        return {
            "status": "ok",
            "mode": "background",
            "message": "Sync triggered in background",
        }

    entry = await sync_engine.sync_now(body.trigger)
    if entry is None:
        raise HTTPException(status_code=409, detail="A sync pass is already running")
    return {
        "status": "ok",
        "mode": "foreground",
        "entry": entry.model_dump(mode="json"),
    }


@sync_router.post("/periodic/start")
async def start_periodic_sync(request: Request, body: PeriodicSyncRequest):
    sync_engine = _get_sync_engine(request)
    await sync_engine.start_periodic_sync(body.intervalSeconds)
    return {"status": "ok", "periodicSyncRunning": True}


@sync_router.post("/periodic/stop")
async def stop_periodic_sync(request: Request):
    sync_engine = _get_sync_engine(request)
    await sync_engine.stop_periodic_sync()
    return {"status": "ok", "periodicSyncRunning": False}


@sync_router.post("/reset")
async def reset_sync_state(request: Request):
    """Clear every stored offset and the history, then run one pass."""
    sync_engine = _get_sync_engine(request)
    logger.info("Reset requested via API")
    entry = await sync_engine.reset_state()
    return {
        "status": "ok",
        "entry": entry.model_dump(mode="json") if entry else None,
    }
