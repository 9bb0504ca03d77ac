# chatdesk/storage/record_store.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Record Store
-----------------------

Durable storage for the five record collections of the chat server:
settings, steps, gallery, messages and chats.

Design notes
~~~~~~~~~~~~
- All records live in memory as pydantic models and are mirrored to a
  single JSON file (atomic temp-file + rename).
- Single process only. There are no transactions and no locks: every
  operation runs to completion inside one event-loop step, and handlers
  from different connections interleave between operations.
- Reads hand out copies and writes replace records instead of editing
  them, so a caller can never mutate a stored record in place.
- Referential integrity is not enforced (Message.chat_id is a soft key).
- Persistence never fails a mutation. Inside the event loop, mutations
  mark the store dirty and one background task writes the file from a
  worker thread; mutations made while a write is running are coalesced
  into the next write. Outside a loop the file is written immediately.
- If the file cannot be read at startup the store starts empty; if it
  cannot be written the store is flagged unavailable, keeps serving from
  memory and tries again on the next mutation.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel, Field

from chatdesk.core.errors import StoreError, UnknownCollectionError
from chatdesk.models.records import (
    Chat,
    GalleryItem,
    GlobalSettings,
    Message,
    Record,
    Step,
)
from chatdesk.utils import get_logger, read_json_safely, write_json_atomic


logger = get_logger("chatdesk.storage")


class Collection(str, Enum):
    SETTINGS = "settings"
    STEPS = "steps"
    GALLERY = "gallery"
    MESSAGES = "messages"
    CHATS = "chats"


_MODELS: Dict[Collection, Type[Record]] = {
    Collection.SETTINGS: GlobalSettings,
    Collection.STEPS: Step,
    Collection.GALLERY: GalleryItem,
    Collection.MESSAGES: Message,
    Collection.CHATS: Chat,
}

# (field name, 1 ascending | -1 descending)
SortSpec = Sequence[Tuple[str, int]]
Where = Dict[str, Any]
Snapshot = Dict[str, List[Record]]

_MISSING = object()


class StoreState(BaseModel):
    """Top-level container for everything stored on disk."""

    settings: List[GlobalSettings] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)
    gallery: List[GalleryItem] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)
    chats: List[Chat] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Store implementation
# ---------------------------------------------------------------------------


class RecordStore:
    """
    In-memory record store synced to a JSON file.

    Parameters
    ----------
    path:
        JSON file backing the store. `None` keeps everything in memory
        (tests, throwaway servers).
    auto_persist:
        Write the file after mutations. With False, call `flush()`.
    """

    def __init__(
        self,
        path: Optional[Union[Path, str]] = None,
        auto_persist: bool = True,
    ) -> None:
        self.path: Optional[Path] = Path(path) if path is not None else None
        self.auto_persist = auto_persist
        self.available: bool = True
        self.state: StoreState = StoreState()
        self._dirty = False
        self._flush_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle / low-level I/O
    # ------------------------------------------------------------------

    def open(self) -> "RecordStore":
        """
        Load the store from disk.

        - No path: in-memory store, nothing to load.
        - Missing file: start empty and try to create it.
        - Unreadable / invalid file: log and start empty (do NOT crash).
        """
        if self.path is None:
            logger.info("[RecordStore] Running in memory (no store path configured).")
            return self

        if not self.path.exists():
            logger.info("[RecordStore] No store file at %s, creating a new one.", self.path)
            self.state = StoreState()
            self.flush()
            return self

        raw = read_json_safely(self.path, default=None)
        if raw is None:
            logger.error(
                "[RecordStore] Storage unavailable, could not read %s; starting empty.",
                self.path,
            )
            self.available = False
            self.state = StoreState()
            return self

        try:
            self.state = StoreState.model_validate(raw)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "[RecordStore] Invalid store file %s: %s; starting empty.",
                self.path,
                exc,
            )
            self.available = False
            self.state = StoreState()
            return self

        logger.info(
            "[RecordStore] Loaded %s from %s",
            ", ".join(f"{len(self._records(c))} {c.value}" for c in Collection),
            self.path,
        )
        return self

    def _snapshot(self) -> Snapshot:
        # Records are replaced, never edited, so copying the lists is enough.
        return {c.value: list(self._records(c)) for c in Collection}

    def _write_to_disk(self, snapshot: Snapshot) -> None:
        assert self.path is not None
        payload = StoreState.model_construct(**snapshot).model_dump(mode="json", by_alias=True)
        write_json_atomic(self.path, payload, indent=None)

    def _persist(self, snapshot: Snapshot) -> None:
        try:
            self._write_to_disk(snapshot)
        except OSError as exc:
            raise StoreError(f"failed to persist record store to {self.path}: {exc}") from exc

    def _record_outcome(self, error: Optional[StoreError]) -> bool:
        if error is not None:
            if self.available:
                logger.error(
                    "[RecordStore] %s. Serving from memory until a write succeeds.", error
                )
            self.available = False
            return False
        if not self.available:
            logger.info("[RecordStore] Storage reachable again at %s", self.path)
            self.available = True
        return True

    def _changed(self) -> None:
        """Schedule persistence after a mutation."""
        if self.path is None or not self.auto_persist:
            return
        self._dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = loop.create_task(self._flush_in_background())

    async def _flush_in_background(self) -> None:
        while self._dirty:
            self._dirty = False
            try:
                await asyncio.to_thread(self._persist, self._snapshot())
            except StoreError as exc:
                self._record_outcome(exc)
                return
            self._record_outcome(None)

    async def drain(self) -> None:
        """Wait until the background write (if any) has finished."""
        while self._flush_task is not None and not self._flush_task.done():
            await self._flush_task

    def flush(self) -> bool:
        """Write the current state to disk now. Returns False (logged) on failure."""
        if self.path is None:
            return True
        self._dirty = False
        try:
            self._persist(self._snapshot())
        except StoreError as exc:
            return self._record_outcome(exc)
        return self._record_outcome(None)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _records(self, collection: Union[Collection, str]) -> List[Record]:
        try:
            name = Collection(collection)
        except ValueError:
            raise UnknownCollectionError(collection) from None
        return getattr(self.state, name.value)

    @staticmethod
    def _model(collection: Union[Collection, str]) -> Type[Record]:
        return _MODELS[Collection(collection)]

    @staticmethod
    def _matches(record: Record, where: Optional[Where]) -> bool:
        if not where:
            return True
        return all(getattr(record, field, _MISSING) == value for field, value in where.items())

    def _index_of(self, collection: Union[Collection, str], where: Optional[Where]) -> int:
        for idx, record in enumerate(self._records(collection)):
            if self._matches(record, where):
                return idx
        return -1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find(
        self,
        collection: Union[Collection, str],
        where: Optional[Where] = None,
        sort: Optional[SortSpec] = None,
    ) -> List[Any]:
        """
        Return copies of all records matching `where` (field equality).

        `sort` is applied stably, so records with equal keys stay in
        insertion order.
        """
        results = [
            r.model_copy(deep=True)
            for r in self._records(collection)
            if self._matches(r, where)
        ]
        for field, direction in reversed(list(sort or ())):
            results.sort(key=lambda r: getattr(r, field), reverse=direction < 0)
        return results

    def find_one(
        self,
        collection: Union[Collection, str],
        where: Optional[Where] = None,
    ) -> Optional[Any]:
        idx = self._index_of(collection, where)
        if idx < 0:
            return None
        return self._records(collection)[idx].model_copy(deep=True)

    def get(self, collection: Union[Collection, str], record_id: str) -> Optional[Any]:
        return self.find_one(collection, {"id": record_id})

    def count(self, collection: Union[Collection, str], where: Optional[Where] = None) -> int:
        return sum(1 for r in self._records(collection) if self._matches(r, where))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, collection: Union[Collection, str], record: Record) -> Any:
        model = self._model(collection)
        if not isinstance(record, model):
            raise TypeError(
                f"{collection!s} holds {model.__name__}, got {type(record).__name__}"
            )
        stored = record.model_copy(deep=True)
        self._records(collection).append(stored)
        self._changed()
        return stored.model_copy(deep=True)

    def update_one(
        self,
        collection: Union[Collection, str],
        where: Where,
        changes: Dict[str, Any],
        *,
        upsert: bool = False,
    ) -> Optional[Any]:
        """
        Apply `changes` to the first record matching `where`.

        With `upsert=True` and no match, a new record is built from
        `where` + `changes`. Returns the updated record or None.
        """
        records = self._records(collection)
        model = self._model(collection)
        idx = self._index_of(collection, where)

        if idx >= 0:
            merged = {**records[idx].model_dump(), **changes}
            updated = model.model_validate(merged)
            records[idx] = updated
        elif upsert:
            updated = model.model_validate({**where, **changes})
            records.append(updated)
        else:
            return None

        self._changed()
        return updated.model_copy(deep=True)

    def update_by_id(
        self,
        collection: Union[Collection, str],
        record_id: str,
        changes: Dict[str, Any],
    ) -> Optional[Any]:
        return self.update_one(collection, {"id": record_id}, changes)

    def delete_one(self, collection: Union[Collection, str], where: Where) -> int:
        idx = self._index_of(collection, where)
        if idx < 0:
            return 0
        del self._records(collection)[idx]
        self._changed()
        return 1

    def delete_by_id(self, collection: Union[Collection, str], record_id: str) -> int:
        return self.delete_one(collection, {"id": record_id})

    def delete_many(self, collection: Union[Collection, str], where: Where) -> int:
        records = self._records(collection)
        keep = [r for r in records if not self._matches(r, where)]
        removed = len(records) - len(keep)
        if removed:
            records[:] = keep
            self._changed()
        return removed
