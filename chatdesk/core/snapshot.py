# chatdesk/core/snapshot.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Manager snapshot broadcast
-------------------------------------
Builds the full read-model shown in the manager console and pushes it to
every connection after each mutation:

    steps_list_ordered  -> all steps, ascending `order`
    gallery_data        -> all gallery items
    update_chat_list    -> all chats (latest activity first), each with its
                           messages (oldest first)
    global_settings     -> the GlobalSettings singleton

The collections are read one after the other with no transaction, so a
message created or deleted mid-build may or may not show up; the next
broadcast corrects it. There is no diffing: every broadcast carries
everything.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from chatdesk.core.registry import ScriptRegistry
from chatdesk.models.events import OutboundEvent
from chatdesk.models.records import Chat, GalleryItem, GlobalSettings, Message, Step
from chatdesk.runtime_state import ConnectionManager
from chatdesk.storage import Repositories
from chatdesk.utils import Stopwatch

logger = logging.getLogger(__name__)


class ChatWithMessages(Chat):
    messages: List[Message] = Field(default_factory=list)


class ManagerSnapshot(BaseModel):
    steps: List[Step] = Field(default_factory=list)
    gallery: List[GalleryItem] = Field(default_factory=list)
    chats: List[ChatWithMessages] = Field(default_factory=list)
    settings: GlobalSettings

    def to_wire(self) -> Dict[str, Any]:
        return {
            "steps": [s.to_wire() for s in self.steps],
            "gallery": [g.to_wire() for g in self.gallery],
            "chats": [c.to_wire() for c in self.chats],
            "settings": self.settings.to_wire(),
        }


def join_messages(chats: List[Chat], messages: List[Message]) -> List[ChatWithMessages]:
    """Attach each message to the chat with the same chat_id, keeping order."""
    by_chat: Dict[str, List[Message]] = {}
    for message in messages:
        by_chat.setdefault(message.chat_id, []).append(message)
    return [
        ChatWithMessages(**chat.model_dump(), messages=by_chat.get(chat.chat_id, []))
        for chat in chats
    ]


class SnapshotBroadcaster:
    def __init__(
        self,
        repos: Repositories,
        registry: ScriptRegistry,
        connections: ConnectionManager,
    ) -> None:
        self.repos = repos
        self.registry = registry
        self.connections = connections

    def build_snapshot(self) -> ManagerSnapshot:
        with Stopwatch("build_snapshot", logger, logging.DEBUG):
            steps = self.registry.list_ordered()
            gallery = self.repos.gallery.list_all()
            chats = self.repos.chats.list_recent_first()
            messages = self.repos.messages.list_all()
            settings = self.repos.settings.get_or_create()
            return ManagerSnapshot(
                steps=steps,
                gallery=gallery,
                chats=join_messages(chats, messages),
                settings=settings,
            )

    async def broadcast(self) -> bool:
        """
        Push a fresh snapshot to every connection.

        A failure while building is logged and the broadcast is skipped;
        the caller's connection is never affected.
        """
        try:
            snapshot = self.build_snapshot().to_wire()
        except Exception:  # noqa: BLE001
            logger.exception("Failed to build manager snapshot; broadcast skipped.")
            return False

        await self.connections.emit_to_all(OutboundEvent.STEPS_LIST_ORDERED, snapshot["steps"])
        await self.connections.emit_to_all(OutboundEvent.GALLERY_DATA, snapshot["gallery"])
        await self.connections.emit_to_all(OutboundEvent.UPDATE_CHAT_LIST, snapshot["chats"])
        await self.connections.emit_to_all(OutboundEvent.GLOBAL_SETTINGS, snapshot["settings"])
        return True
