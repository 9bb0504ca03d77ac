# chatdesk/core/conversation.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Conversation engine
------------------------------
Decides, for every inbound chat message, whether a scripted bot reply
follows, and applies it.

Flow for `handle_message`:

    store message -> emit `receive_message` to the chat room
                  -> bump chat.last_update
                  -> gate: scripts enabled AND (nextStep given OR sender is user)
                  -> resolve nextStep among *active* steps
                  -> schedule bot reply after script_reply_delay_s
                  -> manager snapshot broadcast

The delayed reply stores a bot message with the step's question/options,
emits it to the room, moves chat.current_step to the step key and
broadcasts again, so one visitor message can refresh managers twice.

IMPORTANT:
- A step is only ever resolved from `nextStep`. A user message without
  `nextStep` passes the gate but fires nothing.
- Unknown or inactive steps, unknown chats: silent no-ops.
- Manual scripts (`send_manual_script`) skip the global switch and the
  step's active flag, and fire immediately.
- Opening message: a brand-new chat gets the active start step, if any.
  This does not write chat.current_step.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from chatdesk.core.registry import ScriptRegistry
from chatdesk.core.snapshot import SnapshotBroadcaster
from chatdesk.models.events import ManualScriptPayload, OutboundEvent, SendMessagePayload
from chatdesk.models.records import (
    Chat,
    GlobalSettings,
    Message,
    SenderRole,
    Step,
    utcnow,
)
from chatdesk.runtime_state import ConnectionManager, ReplyScheduler
from chatdesk.storage import Repositories

logger = logging.getLogger(__name__)


class ConversationEngine:
    def __init__(
        self,
        repos: Repositories,
        registry: ScriptRegistry,
        connections: ConnectionManager,
        broadcaster: SnapshotBroadcaster,
        scheduler: ReplyScheduler,
        *,
        reply_delay_s: float = 0.8,
        start_step_key: str = "start",
    ) -> None:
        self.repos = repos
        self.registry = registry
        self.connections = connections
        self.broadcaster = broadcaster
        self.scheduler = scheduler
        self.reply_delay_s = reply_delay_s
        self.start_step_key = start_step_key

    # ------------------------------------------------------------------
    # Chat lifecycle
    # ------------------------------------------------------------------

    def ensure_chat(self, chat_id: str) -> Tuple[Chat, bool]:
        """Return the chat, creating it on first contact. Second item: created?"""
        chat = self.repos.chats.get(chat_id)
        if chat is not None:
            return chat, False
        logger.info("New chat %r", chat_id)
        return self.repos.chats.create(chat_id), True

    async def send_opening_message(self, chat_id: str) -> Optional[Message]:
        start = self.registry.find_active_by_key(self.start_step_key)
        if start is None:
            logger.debug("No active %r step; chat %r starts silently", self.start_step_key, chat_id)
            return None
        return await self._post_step_message(chat_id, start)

    async def delete_chat(self, chat_id: str) -> int:
        """
        Delete the chat, then every message carrying its chat_id.
        Returns the number of messages removed.
        """
        self.scheduler.supersede(chat_id)
        self.repos.chats.delete(chat_id)
        removed = self.repos.messages.delete_for_chat(chat_id)
        logger.info("Deleted chat %r with %d message(s)", chat_id, removed)
        return removed

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle_message(self, payload: SendMessagePayload) -> Message:
        chat_id = payload.chat_id
        self.scheduler.supersede(chat_id)

        message = self.repos.messages.add(
            Message(
                chat_id=chat_id,
                sender=payload.sender,
                text=payload.text,
                file=payload.file,
                file_comment=payload.file_comment,
                timestamp=utcnow(),
            )
        )
        await self.connections.emit_to_room(chat_id, OutboundEvent.RECEIVE_MESSAGE, message.to_wire())
        self.repos.chats.touch(chat_id)

        settings = self.repos.settings.get_or_create()
        step = self.resolve_scripted_step(settings, payload.sender, payload.next_step)
        if step is not None:
            self.scheduler.schedule(
                chat_id,
                self.reply_delay_s,
                lambda: self._fire_scripted_reply(chat_id, step),
            )

        await self.broadcaster.broadcast()
        return message

    def resolve_scripted_step(
        self,
        settings: GlobalSettings,
        sender: SenderRole,
        next_step: Optional[str],
    ) -> Optional[Step]:
        """Step to answer with, or None when no scripted reply should follow."""
        if not settings.all_scripts_enabled:
            return None
        if not (next_step or sender == SenderRole.USER):
            return None
        if not next_step:
            return None
        step = self.registry.find_active_by_key(next_step)
        if step is None:
            logger.debug("nextStep %r is unknown or inactive; no scripted reply", next_step)
        return step

    async def send_manual_script(self, payload: ManualScriptPayload) -> Optional[Message]:
        step = self.registry.find_by_key(payload.step_key)
        if step is None:
            logger.debug("Manual script: unknown step %r", payload.step_key)
            return None

        message = await self._post_step_message(payload.chat_id, step)
        self.repos.chats.set_current_step(payload.chat_id, step.key, touch=True)
        await self.broadcaster.broadcast()
        return message

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fire_scripted_reply(self, chat_id: str, step: Step) -> None:
        await self._post_step_message(chat_id, step)
        self.repos.chats.set_current_step(chat_id, step.key)
        await self.broadcaster.broadcast()

    async def _post_step_message(self, chat_id: str, step: Step) -> Message:
        message = self.repos.messages.add(
            Message(
                chat_id=chat_id,
                sender=SenderRole.BOT,
                text=step.question,
                options=step.options,
            )
        )
        await self.connections.emit_to_room(chat_id, OutboundEvent.RECEIVE_MESSAGE, message.to_wire())
        logger.debug("Step %r posted to chat %r", step.key, chat_id)
        return message
