"""
Record storage for the chat server.

The store keeps every record in memory and mirrors it to a single JSON
file. Typical usage:

    from chatdesk.storage import RecordStore, Repositories

    store = RecordStore(path=settings.store_path)
    store.open()
    repos = Repositories(store)

    chat = repos.chats.get("c1")
"""

from .record_store import (
    Collection,
    RecordStore,
    StoreState,
)
from .repositories import (
    ChatRepository,
    GalleryRepository,
    MessageRepository,
    Repositories,
    SettingsRepository,
)

__all__ = [
    "Collection",
    "RecordStore",
    "StoreState",
    "ChatRepository",
    "GalleryRepository",
    "MessageRepository",
    "Repositories",
    "SettingsRepository",
]
