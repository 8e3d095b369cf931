"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests, swappable by the runner)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def _discard(line: str) -> None:  # pylint: disable=unused-argument
    return None


_print: Callable[[str], None] = _stdout_print


def now_ms() -> int:
    """Wall-clock milliseconds used to stamp events."""
    return time.time_ns() // 1_000_000


def set_enabled(enabled: bool) -> None:
    """
    Route events to stdout or drop them.

    Called once at startup from the configured ENABLE_JSON_LOGS flag.
    """
    global _print  # pylint: disable=global-statement
    _print = _stdout_print if enabled else _discard


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller is responsible for:
    - Supplying a fully-formed event dict
    - Including event_type, session_id, call_state, etc.

    This function:
    - Stamps ts_ms when the caller did not
    - Serializes to JSON
    - Writes exactly one line
    - Never raises
    """
    if "ts_ms" not in event:
        event = {"ts_ms": now_ms(), **event}

    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the call
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
