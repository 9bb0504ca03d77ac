# chatdesk/models/events.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Realtime event payloads
----------------------------------
Frame envelope and typed payloads for the `/ws` endpoint.

Every frame, in both directions, is:

    {"event": "<name>", "data": <payload>}

Payloads that are a bare scalar on the wire (`client_init` carries just
the chatId string, `toggle_all_scripts` just a bool) are validated in the
session hub; the structured ones are modelled here.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue, StringConstraints

from chatdesk.models.records import SenderRole, WireModel

# Chat ids, step keys and record ids arrive from browsers; surrounding
# whitespace is dropped so " c1 " and "c1" address the same chat.
Identifier = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class InboundEvent(str, Enum):
    MANAGER_INIT = "manager_init"
    CLIENT_INIT = "client_init"
    SEND_MESSAGE = "send_message"
    SEND_MANUAL_SCRIPT = "send_manual_script"
    SAVE_STEP = "save_step"
    DELETE_STEP = "delete_step"
    TOGGLE_ALL_SCRIPTS = "toggle_all_scripts"
    UPDATE_CHAT_NOTE = "update_chat_note"
    DELETE_MESSAGE = "delete_message"
    DELETE_CHAT = "delete_chat"
    SAVE_GALLERY_ITEM = "save_gallery_item"
    DELETE_GALLERY_ITEM = "delete_gallery_item"
    UPDATE_STEPS_ORDER = "update_steps_order"


class OutboundEvent(str, Enum):
    RECEIVE_MESSAGE = "receive_message"
    MESSAGE_DELETED = "message_deleted"
    HISTORY = "history"
    GALLERY_DATA = "gallery_data"
    STEPS_LIST_ORDERED = "steps_list_ordered"
    UPDATE_CHAT_LIST = "update_chat_list"
    GLOBAL_SETTINGS = "global_settings"


class Frame(BaseModel):
    """Envelope of a single WebSocket frame."""

    event: str = Field(..., min_length=1)
    data: Any = None


# ---------------------------------------------------------------------------
# Inbound payloads
# ---------------------------------------------------------------------------


class SendMessagePayload(WireModel):
    """
    `send_message`. `next_step` asks the scripted engine to answer with the
    given step once the message is stored.
    """

    chat_id: Identifier
    sender: SenderRole
    text: Optional[str] = None
    file: JsonValue = None
    file_comment: Optional[str] = None
    next_step: Optional[str] = None


class ManualScriptPayload(WireModel):
    chat_id: Identifier
    step_key: Identifier


class ChatNotePayload(WireModel):
    chat_id: Identifier
    note: str = ""


class DeleteMessagePayload(WireModel):
    msg_id: Identifier
    chat_id: Identifier


class StepPayload(WireModel):
    """
    `save_step`. Only `key` is required; fields left out keep their stored
    value (or the record default for a new step). `_id` is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    key: Identifier
    title: Optional[str] = None
    question: Optional[str] = None
    options: Optional[List[JsonValue]] = None
    scripts_active: Optional[bool] = None
    order: Optional[int] = None


class GalleryItemPayload(WireModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    img: str = ""
    desc: str = ""


class StepOrderEntry(BaseModel):
    """One element of `update_steps_order`; the console sends full steps."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., alias="_id", min_length=1)
