# chatdesk/core/registry.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Script Registry
--------------------------
The ordered collection of Steps that drives scripted conversations.

- A Step is identified by its `key`; saving a step upserts by key, so a
  key never appears twice.
- `scripts_active` gates automatic replies only. Managers can still force
  an inactive step (`find_by_key`).
- `order` is a display rank for the manager console. Reordering assigns
  `order = position` to the listed steps and leaves the others alone.
- Deleting a step does not touch chats whose `current_step` points to it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from chatdesk.models.events import StepPayload
from chatdesk.models.records import Step
from chatdesk.storage import Collection, RecordStore

logger = logging.getLogger(__name__)


class ScriptRegistry:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_step(self, step: StepPayload) -> Step:
        """
        Insert the step, or update the stored step with the same key.

        Fields not present in the payload keep their stored value; on
        insert they take the Step defaults (active, order 0).
        """
        sent = step.model_dump(exclude_unset=True, exclude={"key"})
        changes: Dict[str, Any] = {name: value for name, value in sent.items() if value is not None}
        saved = self.store.update_one(
            Collection.STEPS,
            {"key": step.key},
            changes,
            upsert=True,
        )
        logger.info("Saved step %r (active=%s)", saved.key, saved.scripts_active)
        return saved

    def delete_step(self, key: str) -> bool:
        removed = self.store.delete_one(Collection.STEPS, {"key": key})
        if removed:
            logger.info("Deleted step %r", key)
        return bool(removed)

    def reorder(self, step_ids: Sequence[str]) -> int:
        """Assign order = index to each listed step id. Returns how many matched."""
        updated = 0
        for index, step_id in enumerate(step_ids):
            if self.store.update_by_id(Collection.STEPS, step_id, {"order": index}) is not None:
                updated += 1
            else:
                logger.debug("reorder: unknown step id %r skipped", step_id)
        return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_key(self, key: str) -> Optional[Step]:
        return self.store.find_one(Collection.STEPS, {"key": key})

    def find_active_by_key(self, key: str) -> Optional[Step]:
        return self.store.find_one(Collection.STEPS, {"key": key, "scripts_active": True})

    def list_ordered(self) -> List[Step]:
        return self.store.find(Collection.STEPS, sort=[("order", 1)])
