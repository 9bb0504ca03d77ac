# chatdesk/routers/status.py
# -*- coding: utf-8 -*-
"""
Chatdesk — /status router
-------------------------
Read-only HTTP views for operators and monitoring scripts:

- GET /status/snapshot     the same manager snapshot the WebSocket
                           broadcast carries (steps, gallery, chats with
                           messages, global settings)
- GET /status/connections  open connections and chat-room sizes

Nothing here mutates state, except that reading the snapshot creates the
default GlobalSettings record when it does not exist yet.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from chatdesk.core.session_hub import SessionHub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/status", tags=["status"])


def _hub(request: Request) -> SessionHub:
    return request.app.state.session_hub


@router.get("/snapshot", summary="Current manager snapshot")
async def get_snapshot(request: Request) -> Dict[str, Any]:
    try:
        snapshot = _hub(request).broadcaster.build_snapshot()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to build snapshot for /status/snapshot: %s", exc)
        raise HTTPException(
            status_code=503,
            detail="Record store is not able to serve a snapshot right now.",
        ) from exc
    return snapshot.to_wire()


@router.get("/connections", summary="Open connections and chat rooms")
async def get_connections(request: Request) -> Dict[str, Any]:
    hub = _hub(request)
    stats = hub.connections.stats()
    stats["pending_scripted_replies"] = hub.scheduler.pending()
    return stats
