"""
Audio chunk primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioChunk:
    """
    Canonical captured audio segment sent to the call server.

    sequence_num:
        Monotonic position in the capture sequence, starting at
        SEQ_NUM_START. Never reused; no retransmission.

    data:
        Encoded audio bytes (one WAV container per chunk).

    ts_ms:
        Wall-clock timestamp (milliseconds) when the chunk was produced.
        Used for observability only (not control logic).
    """
    sequence_num: int
    data: bytes
    ts_ms: int
