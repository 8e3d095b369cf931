"""
Side-effect command definitions for the call reducer.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Transport
    OPEN_TRANSPORT = "OPEN_TRANSPORT"
    CLOSE_TRANSPORT = "CLOSE_TRANSPORT"
    SEND_AUDIO_CHUNK = "SEND_AUDIO_CHUNK"

    # Capture
    START_CAPTURE = "START_CAPTURE"
    STOP_CAPTURE = "STOP_CAPTURE"

    # Playback
    PLAY_AUDIO = "PLAY_AUDIO"
    CANCEL_PLAYBACK = "CANCEL_PLAYBACK"

    # Session / lifecycle
    COMPLETE_TEARDOWN = "COMPLETE_TEARDOWN"
    NOTIFY_CALL_ENDED = "NOTIFY_CALL_ENDED"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Transport Commands
# =============================================================================

@dataclass(frozen=True)
class OpenTransport(Command):
    """Request to open the connection to the call server."""
    endpoint: str
    command_type: CommandType = CommandType.OPEN_TRANSPORT


@dataclass(frozen=True)
class CloseTransport(Command):
    """Request to close the connection (fire-and-forget handshake)."""
    command_type: CommandType = CommandType.CLOSE_TRANSPORT


@dataclass(frozen=True)
class SendAudioChunk(Command):
    """
    Send one captured chunk to the server.

    Always preceded by CancelPlayback in the same command tuple.
    """
    sequence_num: int
    data: bytes
    command_type: CommandType = CommandType.SEND_AUDIO_CHUNK


# =============================================================================
# Capture Commands
# =============================================================================

@dataclass(frozen=True)
class StartCapture(Command):
    """Request microphone access and start producing chunks."""
    chunk_interval_ms: int
    command_type: CommandType = CommandType.START_CAPTURE


@dataclass(frozen=True)
class StopCapture(Command):
    """Stop producing chunks and release the microphone."""
    command_type: CommandType = CommandType.STOP_CAPTURE


# =============================================================================
# Playback Commands
# =============================================================================

# CancelPlayback / interruption reasons
CANCEL_REASON_BARGE_IN = "barge_in"
CANCEL_REASON_END_CALL = "end_call"
CANCEL_REASON_SUPERSEDED = "superseded"


@dataclass(frozen=True)
class PlayAudio(Command):
    """
    Decode and render one assistant audio segment.

    The manager must cancel any active clip before starting this one.
    """
    clip_id: int
    payload: bytes
    command_type: CommandType = CommandType.PLAY_AUDIO


@dataclass(frozen=True)
class CancelPlayback(Command):
    """Stop the active clip immediately, if any (idempotent)."""
    reason: str
    command_type: CommandType = CommandType.CANCEL_PLAYBACK


# =============================================================================
# Session / Lifecycle Commands
# =============================================================================

@dataclass(frozen=True)
class CompleteTeardown(Command):
    """
    Marker emitted after the ordered teardown commands.

    Runtime answers with a TeardownComplete event once every preceding
    command has executed.
    """
    command_type: CommandType = CommandType.COMPLETE_TEARDOWN


@dataclass(frozen=True)
class NotifyCallEnded(Command):
    """Invoke the external call-ended callback (exactly once per call)."""
    reason: str
    command_type: CommandType = CommandType.NOTIFY_CALL_ENDED


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
