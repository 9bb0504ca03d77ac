# chatdesk/routers/ws.py
# -*- coding: utf-8 -*-
"""
Chatdesk — WebSocket router
---------------------------
Single realtime endpoint shared by the public chat widget and the
manager console:

- /ws
    Frames in both directions are JSON objects:

        {"event": "<name>", "data": <payload>}

    Inbound events are handed to the SessionHub one at a time, so the
    handlers of one connection never overlap. Different connections run
    concurrently against the same record store.

Design goals
------------
- Keep the protocol a plain JSON envelope (easy to drive with websocat or
  the dev console).
- Never crash the connection on bad input: frames that are not JSON or
  fail validation (binary frames included) are logged and skipped, with
  no reply.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chatdesk.core.session_hub import SessionHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


def get_hub(websocket: WebSocket) -> SessionHub:
    return websocket.app.state.session_hub


@router.websocket("/ws")
async def websocket_events(websocket: WebSocket) -> None:
    """
    Event loop for one connection.

    The connection is registered with the hub on accept and removed from
    every chat room on disconnect.
    """
    hub = get_hub(websocket)
    await websocket.accept()
    conn_id = hub.connect(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            text = message.get("text")
            if text is None:
                logger.warning("Binary frame from %s dropped", conn_id)
                continue

            try:
                raw = json.loads(text)
            except json.JSONDecodeError:
                logger.warning("Non-JSON frame from %s dropped: %.80r", conn_id, text)
                continue

            await hub.dispatch(conn_id, raw)

    except WebSocketDisconnect:
        logger.info("WebSocket %s disconnected", conn_id)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error on WebSocket %s: %s", conn_id, exc)
        try:
            await websocket.close(code=1011)
        except Exception:  # noqa: BLE001
            logger.debug("Close after error failed for %s", conn_id, exc_info=True)
    finally:
        hub.disconnect(conn_id)
