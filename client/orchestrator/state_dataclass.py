"""
Authoritative call snapshot container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass

from config import DeviceErrorPolicy
from orchestrator.enums.media import PlaybackState, RecordingState
from orchestrator.enums.state import CallState
from session.connection_status import ConnectionState
from spec import CLIP_ID_NONE


# =============================================================================
# Call Snapshot
# =============================================================================

@dataclass(frozen=True)
class CallSnapshot:
    """Immutable snapshot of all reducer-owned call state."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    call_state: CallState = CallState.IDLE

    # ------------------------------------------------------------------
    # Composite sub-flags (read-only signals for UI)
    # ------------------------------------------------------------------
    connection_state: ConnectionState = ConnectionState.IDLE
    recording_state: RecordingState = RecordingState.STOPPED
    playback_state: PlaybackState = PlaybackState.SILENT

    # ------------------------------------------------------------------
    # Playback versioning
    # ------------------------------------------------------------------
    # Monotonic; bumped on every PlayAudio, never reused
    active_clip_id: int = CLIP_ID_NONE

    # ------------------------------------------------------------------
    # Counters (observability only, no control decisions)
    # ------------------------------------------------------------------
    chunks_sent: int = 0
    chunks_dropped: int = 0
    clips_started: int = 0

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------
    device_error_policy: DeviceErrorPolicy = DeviceErrorPolicy.CONTINUE

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    # Single current-error slot; new errors overwrite the previous one
    last_error: str | None = None

    # Component that produced last_error; None when clear
    error_source: str | None = None

    # Why the call ended; set when teardown starts
    end_reason: str | None = None
