# chatdesk/runtime_state/scheduler.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Delayed scripted replies
-----------------------------------

A scripted bot reply is sent a short moment after the visitor's message
(see settings.script_reply_delay_s). Each reply is a fire-and-forget
asyncio task keyed by chatId.

Two modes:

- supersede=False (default): replies always fire once scheduled, even if
  the chat or its steps changed in the meantime.
- supersede=True: a reply still waiting for its delay is cancelled when
  `supersede(chat_id)` is called, i.e. when a newer message arrives, a
  newer reply is scheduled, or the chat is deleted.

Once the delay has elapsed the reply is "firing" and is no longer
cancellable, so a reply is either sent completely or not at all.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

ReplyJob = Callable[[], Awaitable[None]]


class ReplyScheduler:
    def __init__(self, supersede: bool = False) -> None:
        self.supersede_enabled = supersede
        # Tasks still sleeping, per chat. Only these can be cancelled.
        self._waiting: Dict[str, Set[asyncio.Task]] = {}
        # Every task not finished yet (waiting or firing).
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, chat_id: str, delay_s: float, job: ReplyJob) -> asyncio.Task:
        """Run `job` after `delay_s` seconds in the background."""
        self.supersede(chat_id)

        task = asyncio.create_task(self._run(chat_id, delay_s, job))
        self._waiting.setdefault(chat_id, set()).add(task)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._forget(chat_id, t))
        logger.debug("Scripted reply for chat %r scheduled in %.2fs", chat_id, delay_s)
        return task

    def supersede(self, chat_id: str) -> int:
        """Cancel waiting replies for `chat_id` if superseding is enabled."""
        if not self.supersede_enabled:
            return 0
        return self.cancel(chat_id)

    def cancel(self, chat_id: str) -> int:
        waiting = self._waiting.pop(chat_id, set())
        for task in waiting:
            task.cancel()
        if waiting:
            logger.info("Cancelled %d pending scripted repl(y/ies) for chat %r", len(waiting), chat_id)
        return len(waiting)

    def pending(self, chat_id: Optional[str] = None) -> int:
        if chat_id is None:
            return len(self._tasks)
        return len(self._waiting.get(chat_id, ()))

    async def drain(self) -> None:
        """Wait until every scheduled reply has fired or been cancelled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for chat_id in list(self._waiting):
            self.cancel(chat_id)
        await self.drain()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, chat_id: str, delay_s: float, job: ReplyJob) -> None:
        await asyncio.sleep(max(0.0, delay_s))

        # From here on the reply is firing and cannot be cancelled.
        current = asyncio.current_task()
        waiting = self._waiting.get(chat_id)
        if waiting is not None and current is not None:
            waiting.discard(current)
            if not waiting:
                self._waiting.pop(chat_id, None)

        try:
            await job()
        except Exception:  # noqa: BLE001
            logger.exception("Scripted reply for chat %r failed", chat_id)

    def _forget(self, chat_id: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        waiting = self._waiting.get(chat_id)
        if waiting is not None:
            waiting.discard(task)
            if not waiting:
                self._waiting.pop(chat_id, None)
