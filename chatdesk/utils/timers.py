# chatdesk/utils/timers.py
# -*- coding: utf-8 -*-
"""
Chatdesk — timing utilities
---------------------------
Stopwatch used to log how long a manager snapshot takes to build. Useful
for spotting when the "recompute everything" broadcast starts to hurt.
"""

from __future__ import annotations

import logging
import time
from contextlib import ContextDecorator
from typing import Optional


class Stopwatch(ContextDecorator):
    """
    Context manager that logs the elapsed time of its block.

        with Stopwatch("build_snapshot", logger, logging.DEBUG):
            ...

    logs:
        build_snapshot took 0.004 s
    """

    def __init__(
        self,
        label: str,
        logger: Optional[logging.Logger] = None,
        level: int = logging.INFO,
    ) -> None:
        self.label = label
        self.logger = logger or logging.getLogger(__name__)
        self.level = level
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Stopwatch":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:  # type: ignore[override]
        self.elapsed = time.perf_counter() - self._start
        self.logger.log(self.level, "%s took %.3f s", self.label, self.elapsed)
