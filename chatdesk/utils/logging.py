# chatdesk/utils/logging.py
# -*- coding: utf-8 -*-
"""
Chatdesk — logging utilities
----------------------------
Central logging configuration for the chat server.

- One format for every module.
- DEBUG in development (settings.debug), INFO otherwise.
- Uvicorn access logs are quietened; a busy chat produces a lot of them.
"""

from __future__ import annotations

import logging
import os
from typing import Optional


def setup_logging(
    *,
    debug: bool = False,
    level: Optional[int] = None,
) -> None:
    """
    Configure root logging for the process.

    Parameters
    ----------
    debug:
        If True, default log level becomes DEBUG, otherwise INFO.
    level:
        Optional explicit level, overrides `debug`.

    Safe to call more than once: later calls only adjust levels.
    """
    if level is not None:
        base_level = level
    else:
        base_level = logging.DEBUG if debug else logging.INFO

    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    root = logging.getLogger()
    if root.handlers:
        root.setLevel(base_level)
        for h in root.handlers:
            h.setLevel(base_level)
        return

    logging.basicConfig(
        level=base_level,
        format=fmt,
        datefmt=datefmt,
    )

    for noisy in ("uvicorn.access", "websockets", "httpx"):
        logging.getLogger(noisy).setLevel(os.getenv("CHATDESK_NOISY_LOG_LEVEL", "WARNING"))


def get_logger(name: str) -> logging.Logger:
    """
    Small convenience wrapper around logging.getLogger.

        from chatdesk.utils import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)
