# chatdesk/core/session_hub.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Session hub
----------------------
Routes inbound WebSocket events to the conversation engine, the script
registry and the repositories, then lets the snapshot broadcaster refresh
every observer.

Event routing
-------------
    manager_init         -> snapshot broadcast
    client_init          -> join room, create chat, reply history + gallery,
                            opening message for new chats, broadcast
    send_message         -> ConversationEngine.handle_message
    send_manual_script   -> ConversationEngine.send_manual_script
    delete_chat          -> ConversationEngine.delete_chat, broadcast
    delete_message       -> delete, `message_deleted` to the room, broadcast
    update_chat_note     -> set note, broadcast
    save_step / delete_step / update_steps_order -> ScriptRegistry, broadcast
    toggle_all_scripts   -> GlobalSettings switch, broadcast
    save_gallery_item / delete_gallery_item      -> gallery, broadcast

Error policy
------------
Nothing is ever reported back to the sender. Malformed frames and
payloads are logged at WARNING and dropped; any other failure inside a
handler is logged with traceback. The connection always stays open.
No handler checks room membership or roles: any connection may act on any
chat.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List

from fastapi import WebSocket
from pydantic import TypeAdapter, ValidationError

from chatdesk.core.config import Settings
from chatdesk.core.conversation import ConversationEngine
from chatdesk.core.registry import ScriptRegistry
from chatdesk.core.snapshot import SnapshotBroadcaster
from chatdesk.models.events import (
    ChatNotePayload,
    DeleteMessagePayload,
    Frame,
    GalleryItemPayload,
    Identifier,
    InboundEvent,
    ManualScriptPayload,
    OutboundEvent,
    SendMessagePayload,
    StepOrderEntry,
    StepPayload,
)
from chatdesk.runtime_state import ConnectionManager, ReplyScheduler
from chatdesk.storage import RecordStore, Repositories

logger = logging.getLogger(__name__)

Handler = Callable[[str, Any], Awaitable[None]]

_IDENTIFIER = TypeAdapter(Identifier)
_FLAG = TypeAdapter(bool)
_STEP_ORDER = TypeAdapter(List[StepOrderEntry])


class SessionHub:
    def __init__(
        self,
        repos: Repositories,
        registry: ScriptRegistry,
        connections: ConnectionManager,
        broadcaster: SnapshotBroadcaster,
        engine: ConversationEngine,
        scheduler: ReplyScheduler,
    ) -> None:
        self.repos = repos
        self.registry = registry
        self.connections = connections
        self.broadcaster = broadcaster
        self.engine = engine
        self.scheduler = scheduler

        self._handlers: Dict[str, Handler] = {
            InboundEvent.MANAGER_INIT.value: self.on_manager_init,
            InboundEvent.CLIENT_INIT.value: self.on_client_init,
            InboundEvent.SEND_MESSAGE.value: self.on_send_message,
            InboundEvent.SEND_MANUAL_SCRIPT.value: self.on_send_manual_script,
            InboundEvent.SAVE_STEP.value: self.on_save_step,
            InboundEvent.DELETE_STEP.value: self.on_delete_step,
            InboundEvent.TOGGLE_ALL_SCRIPTS.value: self.on_toggle_all_scripts,
            InboundEvent.UPDATE_CHAT_NOTE.value: self.on_update_chat_note,
            InboundEvent.DELETE_MESSAGE.value: self.on_delete_message,
            InboundEvent.DELETE_CHAT.value: self.on_delete_chat,
            InboundEvent.SAVE_GALLERY_ITEM.value: self.on_save_gallery_item,
            InboundEvent.DELETE_GALLERY_ITEM.value: self.on_delete_gallery_item,
            InboundEvent.UPDATE_STEPS_ORDER.value: self.on_update_steps_order,
        }

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, websocket: WebSocket) -> str:
        return self.connections.register(websocket)

    def disconnect(self, conn_id: str) -> None:
        self.connections.unregister(conn_id)

    async def dispatch(self, conn_id: str, raw: Any) -> bool:
        """
        Handle one inbound frame. Returns True if a handler ran to completion.
        """
        try:
            frame = Frame.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Malformed frame from %s dropped: %s", conn_id, exc)
            return False

        handler = self._handlers.get(frame.event)
        if handler is None:
            logger.warning("Unknown event %r from %s ignored", frame.event, conn_id)
            return False

        logger.debug("%s -> %s %r", conn_id, frame.event, frame.data)
        try:
            await handler(conn_id, frame.data)
        except ValidationError as exc:
            logger.warning("Invalid %s payload from %s dropped: %s", frame.event, conn_id, exc)
            return False
        except Exception:  # noqa: BLE001
            logger.exception("Handler for %s failed (connection %s)", frame.event, conn_id)
            return False
        return True

    # ------------------------------------------------------------------
    # Chat events
    # ------------------------------------------------------------------

    async def on_manager_init(self, conn_id: str, data: Any) -> None:
        await self.broadcaster.broadcast()

    async def on_client_init(self, conn_id: str, data: Any) -> None:
        chat_id = _IDENTIFIER.validate_python(data)
        self.connections.join(conn_id, chat_id)

        _, created = self.engine.ensure_chat(chat_id)
        history = [m.to_wire() for m in self.repos.messages.list_for_chat(chat_id)]
        gallery = [g.to_wire() for g in self.repos.gallery.list_all()]
        await self.connections.send(conn_id, OutboundEvent.HISTORY, history)
        await self.connections.send(conn_id, OutboundEvent.GALLERY_DATA, gallery)

        if created:
            await self.engine.send_opening_message(chat_id)
        await self.broadcaster.broadcast()

    async def on_send_message(self, conn_id: str, data: Any) -> None:
        await self.engine.handle_message(SendMessagePayload.model_validate(data))

    async def on_send_manual_script(self, conn_id: str, data: Any) -> None:
        await self.engine.send_manual_script(ManualScriptPayload.model_validate(data))

    async def on_update_chat_note(self, conn_id: str, data: Any) -> None:
        payload = ChatNotePayload.model_validate(data)
        self.repos.chats.set_note(payload.chat_id, payload.note)
        await self.broadcaster.broadcast()

    async def on_delete_message(self, conn_id: str, data: Any) -> None:
        payload = DeleteMessagePayload.model_validate(data)
        self.repos.messages.delete(payload.msg_id)
        await self.connections.emit_to_room(payload.chat_id, OutboundEvent.MESSAGE_DELETED, payload.msg_id)
        await self.broadcaster.broadcast()

    async def on_delete_chat(self, conn_id: str, data: Any) -> None:
        await self.engine.delete_chat(_IDENTIFIER.validate_python(data))
        await self.broadcaster.broadcast()

    # ------------------------------------------------------------------
    # Administrative events
    # ------------------------------------------------------------------

    async def on_save_step(self, conn_id: str, data: Any) -> None:
        self.registry.upsert_step(StepPayload.model_validate(data))
        await self.broadcaster.broadcast()

    async def on_delete_step(self, conn_id: str, data: Any) -> None:
        self.registry.delete_step(_IDENTIFIER.validate_python(data))
        await self.broadcaster.broadcast()

    async def on_update_steps_order(self, conn_id: str, data: Any) -> None:
        entries = _STEP_ORDER.validate_python(data)
        self.registry.reorder([entry.id for entry in entries])
        await self.broadcaster.broadcast()

    async def on_toggle_all_scripts(self, conn_id: str, data: Any) -> None:
        enabled = _FLAG.validate_python(data)
        self.repos.settings.set_all_scripts_enabled(enabled)
        logger.info("Scripts globally %s", "enabled" if enabled else "disabled")
        await self.broadcaster.broadcast()

    async def on_save_gallery_item(self, conn_id: str, data: Any) -> None:
        payload = GalleryItemPayload.model_validate(data)
        self.repos.gallery.add(title=payload.title, img=payload.img, desc=payload.desc)
        await self.broadcaster.broadcast()

    async def on_delete_gallery_item(self, conn_id: str, data: Any) -> None:
        self.repos.gallery.delete(_IDENTIFIER.validate_python(data))
        await self.broadcaster.broadcast()


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_hub(store: RecordStore, config: Settings) -> SessionHub:
    """Assemble repositories, registry, broadcaster and engine around `store`."""
    repos = Repositories(store)
    registry = ScriptRegistry(store)
    connections = ConnectionManager()
    scheduler = ReplyScheduler(supersede=config.supersede_pending_scripts)
    broadcaster = SnapshotBroadcaster(repos, registry, connections)
    engine = ConversationEngine(
        repos,
        registry,
        connections,
        broadcaster,
        scheduler,
        reply_delay_s=config.script_reply_delay_s,
        start_step_key=config.start_step_key,
    )
    return SessionHub(repos, registry, connections, broadcaster, engine, scheduler)
