"""chat2md FastAPI service: main application entry point.

Run with ``uvicorn chat2md.main:app``.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chat2md import config
from chat2md.project_names import ProjectNameResolver
from chat2md.routers.sync import sync_router
from chat2md.sync.file_watcher import file_watcher
from chat2md.sync.history import SyncHistoryStore
from chat2md.sync.state_store import SyncStateStore
from chat2md.sync.sync_engine import SyncEngine

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("chat2md")


def build_engine() -> SyncEngine:
    settings = config.load_settings()
    state_store = SyncStateStore(config.STATE_FILE)
    state_store.load()
    history_store = SyncHistoryStore(config.HISTORY_FILE)
    history_store.load()
    return SyncEngine(settings, state_store, history_store, resolver=ProjectNameResolver())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("chat2md starting up")

    sync = build_engine()
    app.state.sync_engine = sync

    # The timer fires immediately, so this also performs the startup sync.
    await sync.start_periodic_sync()

    if sync.settings.watchEnabled:
        await file_watcher.start(sync, config.expand_path(sync.settings.claudeProjectsPath))

    yield

    logger.info("chat2md shutting down")
    await file_watcher.stop()
    await sync.stop_periodic_sync()
    await sync.wait_idle()


app = FastAPI(
    title="chat2md API",
    description="Trigger and status API for the transcript-to-Markdown sync engine",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sync_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    sync = getattr(app.state, "sync_engine", None)
    return {
        "status": "ok",
        "engine": sync.state if sync else "not_initialized",
        "watcher": "running" if file_watcher.is_running else "stopped",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("chat2md.main:app", host=config.HOST, port=config.PORT)
