# chatdesk/core/errors.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Exceptions
---------------------
Missing entities are not errors anywhere in the chat engine (unknown step
keys, chats or messages are silent no-ops), so the hierarchy is small.
"""

from __future__ import annotations


class ChatdeskError(Exception):
    """Base class for errors raised by the chat server."""


class StoreError(ChatdeskError):
    """The record store could not persist its state."""


class UnknownCollectionError(ChatdeskError, KeyError):
    """A store operation named a collection that does not exist."""
