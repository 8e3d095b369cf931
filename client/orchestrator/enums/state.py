"""
Authoritative call state enumeration.

Rules:
- This enum defines ONLY the control-plane states of a call.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class CallState(str, Enum):
    """
    High-level deterministic lifecycle states for a single call.

    These states represent orchestration intent, NOT connection status
    and NOT device lifecycles (see ConnectionState / RecordingState /
    PlaybackState for those).

    ERROR is not terminal: the call is only torn down through END_CALL.
    """

    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    ENDING = "ENDING"
    ENDED = "ENDED"
    ERROR = "ERROR"
