"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- Events may carry a "level"; events below the configured level are dropped
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}

_min_level: int = _LEVELS["INFO"]
_enabled: bool = True


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


def configure(*, level: str = "INFO", enabled: bool = True) -> None:
    """
    Set the minimum level and the global on/off switch.

    Unknown level names fall back to INFO.
    """
    global _min_level, _enabled  # pylint: disable=global-statement
    _min_level = _LEVELS.get(level.upper(), _LEVELS["INFO"])
    _enabled = enabled


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller supplies a fully-formed event dict. A missing ts_ms is
    filled in with wall-clock milliseconds; a missing level counts as INFO.

    This function:
    - Serializes to JSON
    - Writes exactly one line (or nothing when filtered)
    - Flushes immediately
    - Never raises
    """
    if not _enabled:
        return

    level = str(event.get("level", "INFO")).upper()
    if _LEVELS.get(level, _LEVELS["INFO"]) < _min_level:
        return

    payload: dict[str, Any] = dict(event)
    payload.setdefault("ts_ms", now_ms())

    try:
        line = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the dispatch thread
        fallback: dict[str, Any] = {
            "ts_ms": payload.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
