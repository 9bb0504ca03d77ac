# chatdesk/storage/repositories.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Repositories
-----------------------
Thin, typed accessors over the record store, one per collection.
Steps are handled by `chatdesk.core.registry.ScriptRegistry`.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from chatdesk.models.records import (
    Chat,
    GalleryItem,
    GlobalSettings,
    Message,
    utcnow,
)
from chatdesk.storage.record_store import Collection, RecordStore
from chatdesk.utils import get_logger

logger = get_logger(__name__)


class SettingsRepository:
    """
    Access to the GlobalSettings singleton.

    The singleton is created on first access with `all_scripts_enabled=True`;
    every read and write targets that one record.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def get_or_create(self) -> GlobalSettings:
        current = self.store.find_one(Collection.SETTINGS)
        if current is not None:
            return current
        logger.info("Creating default global settings (all scripts enabled).")
        return self.store.insert(Collection.SETTINGS, GlobalSettings(all_scripts_enabled=True))

    def set_all_scripts_enabled(self, enabled: bool) -> GlobalSettings:
        return self.store.update_one(
            Collection.SETTINGS,
            {},
            {"all_scripts_enabled": enabled},
            upsert=True,
        )


class ChatRepository:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def get(self, chat_id: str) -> Optional[Chat]:
        return self.store.find_one(Collection.CHATS, {"chat_id": chat_id})

    def create(self, chat_id: str) -> Chat:
        return self.store.insert(Collection.CHATS, Chat(chat_id=chat_id))

    def list_recent_first(self) -> List[Chat]:
        return self.store.find(Collection.CHATS, sort=[("last_update", -1)])

    def touch(self, chat_id: str, when: Optional[datetime] = None) -> Optional[Chat]:
        """Set last_update (now by default). Unknown chats are left alone."""
        return self.store.update_one(
            Collection.CHATS,
            {"chat_id": chat_id},
            {"last_update": when or utcnow()},
        )

    def set_current_step(
        self,
        chat_id: str,
        step_key: str,
        *,
        touch: bool = False,
    ) -> Optional[Chat]:
        changes = {"current_step": step_key}
        if touch:
            changes["last_update"] = utcnow()
        return self.store.update_one(Collection.CHATS, {"chat_id": chat_id}, changes)

    def set_note(self, chat_id: str, note: str) -> Optional[Chat]:
        return self.store.update_one(
            Collection.CHATS,
            {"chat_id": chat_id},
            {"custom_note": note},
        )

    def delete(self, chat_id: str) -> int:
        return self.store.delete_one(Collection.CHATS, {"chat_id": chat_id})


class MessageRepository:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def add(self, message: Message) -> Message:
        return self.store.insert(Collection.MESSAGES, message)

    def list_for_chat(self, chat_id: str) -> List[Message]:
        return self.store.find(
            Collection.MESSAGES,
            {"chat_id": chat_id},
            sort=[("timestamp", 1)],
        )

    def list_all(self) -> List[Message]:
        return self.store.find(Collection.MESSAGES, sort=[("timestamp", 1)])

    def delete(self, message_id: str) -> int:
        return self.store.delete_by_id(Collection.MESSAGES, message_id)

    def delete_for_chat(self, chat_id: str) -> int:
        return self.store.delete_many(Collection.MESSAGES, {"chat_id": chat_id})


class GalleryRepository:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def list_all(self) -> List[GalleryItem]:
        return self.store.find(Collection.GALLERY)

    def add(self, title: str = "", img: str = "", desc: str = "") -> GalleryItem:
        return self.store.insert(
            Collection.GALLERY,
            GalleryItem(title=title, img=img, desc=desc),
        )

    def delete(self, item_id: str) -> int:
        return self.store.delete_by_id(Collection.GALLERY, item_id)


class Repositories:
    """Bundle of all repositories over one store."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self.settings = SettingsRepository(store)
        self.chats = ChatRepository(store)
        self.messages = MessageRepository(store)
        self.gallery = GalleryRepository(store)
