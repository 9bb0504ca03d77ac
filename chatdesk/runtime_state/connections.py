# chatdesk/runtime_state/connections.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Connection registry
------------------------------

Tracks live WebSocket connections and chat-room membership, and fans
outbound frames out to the right audience:

- one connection   (`send`)           e.g. `history` for the caller
- one chat room    (`emit_to_room`)   e.g. `receive_message`
- every connection (`emit_to_all`)    the manager snapshot

Design notes
~~~~~~~~~~~~
- This is the only in-process state the server keeps besides pending
  scripted replies; everything else lives in the record store.
- A room is named after its chatId and contains the connections that sent
  `client_init` for it. Membership is never required to act on a chat.
- A connection whose send fails is dropped here; its receive loop will
  notice the closed socket on its own.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Set, Union

from fastapi import WebSocket

from chatdesk.models.events import OutboundEvent

logger = logging.getLogger(__name__)

EventName = Union[OutboundEvent, str]


def make_frame(event: EventName, data: Any) -> Dict[str, Any]:
    """Build the `{"event", "data"}` envelope sent to clients."""
    name = event.value if isinstance(event, OutboundEvent) else str(event)
    return {"event": name, "data": data}


class ConnectionManager:
    def __init__(self) -> None:
        self._sockets: Dict[str, WebSocket] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def register(self, websocket: WebSocket) -> str:
        conn_id = f"conn-{next(self._ids)}"
        self._sockets[conn_id] = websocket
        logger.info("Connection %s registered (%d open)", conn_id, len(self._sockets))
        return conn_id

    def unregister(self, conn_id: str) -> None:
        if self._sockets.pop(conn_id, None) is None:
            return
        for room in list(self._rooms):
            members = self._rooms[room]
            members.discard(conn_id)
            if not members:
                del self._rooms[room]
        logger.info("Connection %s unregistered (%d open)", conn_id, len(self._sockets))

    def join(self, conn_id: str, room: str) -> None:
        if conn_id not in self._sockets:
            logger.debug("join: connection %s is gone, not joining %r", conn_id, room)
            return
        self._rooms.setdefault(room, set()).add(conn_id)
        logger.debug("Connection %s joined room %r", conn_id, room)

    def members(self, room: str) -> List[str]:
        return sorted(self._rooms.get(room, ()))

    def rooms_of(self, conn_id: str) -> List[str]:
        return sorted(room for room, members in self._rooms.items() if conn_id in members)

    def __len__(self) -> int:
        return len(self._sockets)

    def stats(self) -> Dict[str, Any]:
        return {
            "connections": len(self._sockets),
            "rooms": {room: len(members) for room, members in sorted(self._rooms.items())},
        }

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, conn_id: str, event: EventName, data: Any) -> bool:
        websocket = self._sockets.get(conn_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(make_frame(event, data))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Send to %s failed (%s); dropping connection.", conn_id, exc)
            self.unregister(conn_id)
            return False
        return True

    async def emit_to_room(self, room: str, event: EventName, data: Any) -> int:
        delivered = 0
        for conn_id in self.members(room):
            if await self.send(conn_id, event, data):
                delivered += 1
        return delivered

    async def emit_to_all(self, event: EventName, data: Any) -> int:
        delivered = 0
        for conn_id in list(self._sockets):
            if await self.send(conn_id, event, data):
                delivered += 1
        return delivered
