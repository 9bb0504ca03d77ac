# chatdesk/main.py
# -*- coding: utf-8 -*-
"""
Chatdesk Support Server — FastAPI application entrypoint
--------------------------------------------------------
This file wires everything together:

- Sets up central logging.
- Creates the record store and the session hub (engine, registry,
  broadcaster, connection registry, reply scheduler).
- Creates the FastAPI app with a lifespan that loads the store on startup
  and, on shutdown, cancels waiting scripted replies, waits for the
  background store write and flushes the store.
- Adds CORS middleware outside production.
- Mounts routers:
    * /ws        (WebSocket) -> realtime events for widget + manager console
    * /status/*  (HTTP)      -> read-only snapshot / connection views
- Exposes an ASGI `app` object for uvicorn.

Typical run command (dev):

    uvicorn chatdesk.main:app --host 0.0.0.0 --port 4000 --reload

"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatdesk.core.config import Settings, settings
from chatdesk.core.session_hub import build_hub
from chatdesk.routers.status import router as status_router
from chatdesk.routers.ws import router as ws_router
from chatdesk.storage import RecordStore
from chatdesk.utils import get_logger, setup_logging


setup_logging(debug=settings.debug)
logger = get_logger(__name__)


def create_app(
    config: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
) -> FastAPI:
    """
    Application factory.

    Parameters
    ----------
    config:
        Settings to use; defaults to the global `settings`.
    store:
        Record store to serve from; defaults to a file-backed store at
        `config.store_path`. It is opened by the app lifespan.
    """
    config = config or settings
    store = store if store is not None else RecordStore(
        path=config.store_path,
        auto_persist=config.store_auto_persist,
    )
    hub = build_hub(store, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store.open()
        if not store.available:
            logger.error(
                "Record store at %s is unavailable; serving from memory until it recovers.",
                store.path,
            )
        logger.info(
            "%s ready (env=%s, reply_delay=%.2fs, supersede_scripts=%s)",
            config.app_name,
            config.environment,
            config.script_reply_delay_s,
            config.supersede_pending_scripts,
        )
        try:
            yield
        finally:
            await hub.scheduler.shutdown()
            await store.drain()
            store.flush()
            logger.info("%s stopped", config.app_name)

    app = FastAPI(
        title=config.app_name,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.session_hub = hub

    # ------------------------------------------------------------------
    # CORS: the public site and a local manager console both connect.
    # ------------------------------------------------------------------
    if config.environment != "production":
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=False,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    app.include_router(ws_router)
    app.include_router(status_router)

    # ------------------------------------------------------------------
    # Meta / health endpoints
    # ------------------------------------------------------------------

    @app.get("/", tags=["meta"])
    async def root():
        return {
            "name": config.app_name,
            "environment": config.environment,
            "message": "Chatdesk support server is running.",
        }

    @app.get("/health", tags=["meta"])
    async def health_check():
        """
        Lightweight health check. `store_available` turns False while the
        store file cannot be written; chats keep working from memory.
        """
        return {
            "status": "ok" if store.available else "degraded",
            "environment": config.environment,
            "store_available": store.available,
            "connections": len(hub.connections),
        }

    logger.info("FastAPI app created (env=%s)", config.environment)
    return app


# ASGI app for uvicorn / gunicorn
app = create_app()


if __name__ == "__main__":
    """
    Allow `python -m chatdesk.main` during development.
    """
    import uvicorn

    uvicorn.run(
        "chatdesk.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=(settings.environment == "development"),
        ws_max_size=settings.ws_max_message_mb * 1024 * 1024,
    )
