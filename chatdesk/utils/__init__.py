# -*- coding: utf-8 -*-
"""
Chatdesk — Utility toolbox
--------------------------
Shared helpers used across the chat server:

- file_io   : tolerant JSON read + atomic JSON write (record store file)
- logging   : central logging configuration
- timers    : small timing helpers (snapshot build duration)

Import from here for a clean public API, e.g.:

    from chatdesk.utils import setup_logging, get_logger
"""

from __future__ import annotations

from .file_io import (  # noqa: F401
    read_json_safely,
    write_json_atomic,
)

from .logging import (  # noqa: F401
    setup_logging,
    get_logger,
)

from .timers import (  # noqa: F401
    Stopwatch,
)
