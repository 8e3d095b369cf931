"""
Unified event definitions for the call reducer (v1).

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Clip-scoped events carry clip_id so the reducer can drop stale reports
from a clip that has already been replaced or cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # User intent
    # ------------------------------------------------------------------
    START_CALL = "START_CALL"
    END_CALL = "END_CALL"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    TRANSPORT_OPENED = "TRANSPORT_OPENED"
    TRANSPORT_CLOSED = "TRANSPORT_CLOSED"
    TRANSPORT_FAILED = "TRANSPORT_FAILED"
    SEND_FAILED = "SEND_FAILED"
    PROTOCOL_VIOLATION = "PROTOCOL_VIOLATION"
    SYNTHESIZED_AUDIO_RECEIVED = "SYNTHESIZED_AUDIO_RECEIVED"

    # ------------------------------------------------------------------
    # Capture device
    # ------------------------------------------------------------------
    CAPTURE_STARTED = "CAPTURE_STARTED"
    CAPTURE_STOPPED = "CAPTURE_STOPPED"
    DEVICE_FAILED = "DEVICE_FAILED"
    CHUNK_CAPTURED = "CHUNK_CAPTURED"

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------
    PLAYBACK_FINISHED = "PLAYBACK_FINISHED"
    PLAYBACK_FAILED = "PLAYBACK_FAILED"

    # ------------------------------------------------------------------
    # Internal control
    # ------------------------------------------------------------------
    TEARDOWN_COMPLETE = "TEARDOWN_COMPLETE"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# User Intent Events
# =============================================================================

@dataclass(frozen=True)
class StartCall(Event):
    """User asked to start the call."""
    endpoint: str
    chunk_interval_ms: int


@dataclass(frozen=True)
class EndCall(Event):
    """User asked to hang up."""


# =============================================================================
# Transport Events
# =============================================================================

@dataclass(frozen=True)
class TransportOpened(Event):
    """Connection to the call server established."""


@dataclass(frozen=True)
class TransportClosed(Event):
    """Connection closed by the server or the network."""
    code: int
    reason: str = ""


@dataclass(frozen=True)
class TransportFailed(Event):
    """Connection could not be opened or broke with an error."""
    detail: str


@dataclass(frozen=True)
class SendFailed(Event):
    """An outbound message could not be handed to the connection."""
    sequence_num: int
    detail: str


@dataclass(frozen=True)
class ProtocolViolation(Event):
    """
    Inbound message could not be decoded or was a server error report.

    Never connection-fatal; the message is dropped.
    """
    detail: str


@dataclass(frozen=True)
class SynthesizedAudioReceived(Event):
    """One playable assistant audio segment arrived."""
    payload: bytes


# =============================================================================
# Capture Events
# =============================================================================

@dataclass(frozen=True)
class CaptureStarted(Event):
    """Microphone opened and producing chunks."""


@dataclass(frozen=True)
class CaptureStopped(Event):
    """Microphone chunk sequence ended."""


@dataclass(frozen=True)
class DeviceFailed(Event):
    """Microphone access denied or unavailable."""
    detail: str


@dataclass(frozen=True)
class ChunkCaptured(Event):
    """
    One captured audio segment is ready to send.

    The capture pipeline has already run the interruption hook for it.
    """
    sequence_num: int
    data: bytes


# =============================================================================
# Playback Events
# =============================================================================

@dataclass(frozen=True)
class PlaybackFinished(Event):
    """A clip rendered to natural completion."""
    clip_id: int


@dataclass(frozen=True)
class PlaybackFailed(Event):
    """A clip could not be decoded or rendered."""
    clip_id: int
    detail: str


# =============================================================================
# Internal Control Events
# =============================================================================

@dataclass(frozen=True)
class TeardownComplete(Event):
    """Runtime finished executing teardown commands."""
