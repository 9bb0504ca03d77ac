"""
Runtime state package for the chat server.

Holds the only state that is not in the record store: live connections
with their chat-room membership, and scripted replies waiting for their
delay to elapse.

Typical usage:

    from chatdesk.runtime_state import ConnectionManager, ReplyScheduler

    connections = ConnectionManager()
    conn_id = connections.register(websocket)
    connections.join(conn_id, chat_id)
    await connections.emit_to_room(chat_id, "receive_message", payload)
"""

from .connections import (
    ConnectionManager,
    make_frame,
)
from .scheduler import (
    ReplyScheduler,
)

__all__ = [
    "ConnectionManager",
    "make_frame",
    "ReplyScheduler",
]
