# chatdesk/models/records.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Record models
------------------------
Pydantic models for everything the record store holds:

- GlobalSettings : singleton `{allScriptsEnabled}` switch
- Step           : one node of the scripted conversation tree
- GalleryItem    : image card shown to visitors
- Message        : one entry of a chat thread
- Chat           : conversation header (note, current step, last update)

Python code uses snake_case attributes; the wire (WebSocket frames, HTTP
status views, the store file) uses camelCase plus `_id` for record ids.
Always serialize with `to_wire()` so aliases are applied.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue, computed_field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Base classes
# ---------------------------------------------------------------------------


class WireModel(BaseModel):
    """Base for anything that travels over the wire in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with wire aliases applied."""
        return self.model_dump(mode="json", by_alias=True)


class Record(WireModel):
    """A stored record. `id` is assigned by the store and exposed as `_id`."""

    id: str = Field(default_factory=new_record_id, alias="_id")


class SenderRole(str, Enum):
    """Who authored a message."""

    USER = "user"        # visitor on the public site
    BOT = "bot"          # scripted reply generated from a Step
    MANAGER = "manager"  # human operator typing in the console


class MessageKind(str, Enum):
    TEXT = "text"
    FILE = "file"
    OPTIONS = "options"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class GlobalSettings(Record):
    """Process-wide switches. Exactly one logical instance exists."""

    all_scripts_enabled: bool = True


class Step(Record):
    """
    A node of the scripted conversation tree.

    `key` is the logical identifier used by chats and options; `order` is
    only the display rank in the manager console. `options` is kept exactly
    as the console sent it (usually `{text, nextStep}` objects, but plain
    strings work too); the server never looks inside an option.
    """

    key: str
    title: str = ""
    question: str = ""
    options: List[JsonValue] = Field(default_factory=list)
    scripts_active: bool = True
    order: int = 0


class GalleryItem(Record):
    title: str = ""
    img: str = ""
    desc: str = ""


class Message(Record):
    """
    One message of a chat thread. Immutable once stored; only deletion is
    allowed afterwards.

    `file` is whatever the widget attached (an object with name/type/data,
    a data URL, ...). It is stored and echoed back untouched.
    """

    chat_id: str
    sender: SenderRole
    text: Optional[str] = None
    file: JsonValue = None
    file_comment: Optional[str] = None
    options: List[JsonValue] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def kind(self) -> MessageKind:
        if self.file:
            return MessageKind.FILE
        if self.options:
            return MessageKind.OPTIONS
        return MessageKind.TEXT


class Chat(Record):
    """
    Conversation header. `current_step` is a soft reference to Step.key and
    is never validated against the registry.
    """

    chat_id: str
    custom_note: str = ""
    current_step: str = "start"
    last_update: datetime = Field(default_factory=utcnow)
