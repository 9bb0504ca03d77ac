# chatdesk/utils/file_io.py
# -*- coding: utf-8 -*-
"""
Chatdesk — file_io utilities
----------------------------
Helpers for the JSON file that backs the record store.

- Reads are tolerant: a missing or corrupt file yields `default`.
- Writes are atomic (temp file + rename) and raise on failure, so the
  store can report the problem and keep its in-memory state.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def read_json_safely(
    path: Path,
    default: Optional[T] = None,
    *,
    log_missing: bool = False,
) -> Optional[T]:
    """
    Read JSON from `path` and return the parsed object.

    - Missing file -> `default` (INFO log when log_missing=True).
    - Unreadable file or invalid JSON -> WARNING log, `default`.
    """
    if not path.is_file():
        if log_missing:
            logger.info("read_json_safely: file not found: %s", path)
        return default

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("read_json_safely: failed to read %s: %s", path, exc)
        return default

    try:
        return json.loads(text)  # type: ignore[return-value]
    except json.JSONDecodeError as exc:
        logger.warning("read_json_safely: invalid JSON in %s: %s", path, exc)
        return default


def write_json_atomic(path: Path, data: Dict[str, Any], *, indent: Optional[int] = 2) -> None:
    """
    Replace `path` with `data` serialised as JSON.

    The document goes to a uniquely named sibling file first, is fsynced,
    then renamed over `path`, so readers see either the old or the new
    store and never a half-written one. OSError propagates after the temp
    file is cleaned up. Pass `indent=None` for compact output.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False, indent=indent)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except OSError as exc:
        logger.error("Could not write %s: %s", path, exc)
        tmp_path.unlink(missing_ok=True)
        raise
