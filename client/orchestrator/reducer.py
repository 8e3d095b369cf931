"""
Pure call reducer.

(snapshot, event) -> (new_snapshot, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from config import DeviceErrorPolicy
from orchestrator.commands import (
    CANCEL_REASON_BARGE_IN,
    CANCEL_REASON_END_CALL,
    CancelPlayback,
    CloseTransport,
    Command,
    CompleteTeardown,
    LogEvent,
    NotifyCallEnded,
    OpenTransport,
    PlayAudio,
    SendAudioChunk,
    StartCapture,
    StopCapture,
)
from orchestrator.enums.media import PlaybackState, RecordingState
from orchestrator.enums.state import CallState
from orchestrator.events import (
    CaptureStarted,
    CaptureStopped,
    ChunkCaptured,
    DeviceFailed,
    EndCall,
    Event,
    PlaybackFailed,
    PlaybackFinished,
    ProtocolViolation,
    SendFailed,
    StartCall,
    SynthesizedAudioReceived,
    TeardownComplete,
    TransportClosed,
    TransportFailed,
    TransportOpened,
)
from orchestrator.state_dataclass import CallSnapshot
from session.connection_status import ConnectionState
from spec import (
    ERROR_DEVICE_ACCESS,
    ERROR_ENDPOINT_NOT_CONFIGURED,
    ERROR_SOURCE_CONFIG,
    ERROR_SOURCE_DEVICE,
    ERROR_SOURCE_PLAYBACK,
    ERROR_SOURCE_PROTOCOL,
    ERROR_SOURCE_TRANSPORT,
    ERROR_TRANSPORT_FAILED,
)


# =============================================================================
# Invariants
# =============================================================================
# - Every ChunkCaptured emits CancelPlayback BEFORE SendAudioChunk
# - Clip ids are bumped ONLY on PlayAudio; cancellation never bumps them
# - Playback reports for a clip_id other than active_clip_id are stale
# - Nothing reconnects a DISCONNECTED transport
# - ENDED is terminal; NotifyCallEnded is emitted once, on ENDING -> ENDED
# - TransportOpened clears last_error only when the transport produced it

# End reasons
END_REASON_USER = "user"
END_REASON_DEVICE_ERROR = "device_error"


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: CallSnapshot,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "call_state": state.call_state.value,
            "connection_state": state.connection_state.value,
            "recording_state": state.recording_state.value,
            "playback_state": state.playback_state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "active_clip_id": state.active_clip_id,
            "details": details or {},
        }
    )


def _state_changed(
    prev: CallSnapshot,
    new: CallSnapshot,
    event: Event,
    source: str,
) -> tuple[Command, ...]:
    if prev.call_state is new.call_state:
        return ()
    return (
        _log(
            new,
            event,
            "state_changed",
            {
                "from_state": prev.call_state.value,
                "to_state": new.call_state.value,
                "source": source,
            },
        ),
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: CallSnapshot, event: Event, reason: str
) -> tuple[CallSnapshot, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _set_error(
    state: CallSnapshot,
    event: Event,
    message: str,
    source: str,
    *,
    origin: str,
) -> tuple[CallSnapshot, tuple[Command, ...]]:
    """Overwrite the single error slot without a state transition."""
    new_state = replace(state, last_error=message, error_source=origin)
    return new_state, (
        _log(new_state, event, "error_reported", {"source": source, "error": message}),
    )


def _enter_disconnected(
    state: CallSnapshot, event: Event, message: str, source: str
) -> tuple[CallSnapshot, tuple[Command, ...]]:
    """
    Transport is gone for good.

    The call stays up (ERROR is not terminal) until the user ends it;
    no reconnect is attempted.
    """
    new_state = replace(
        state,
        call_state=CallState.ERROR,
        connection_state=ConnectionState.DISCONNECTED,
        last_error=message,
        error_source=ERROR_SOURCE_TRANSPORT,
    )
    return new_state, _logs_last(
        (
            _log(
                new_state,
                event,
                "transport_lost",
                {"source": source, "error": message, "reconnect": False},
            ),
        )
        + _state_changed(state, new_state, event, source)
    )


def _teardown(
    state: CallSnapshot,
    event: Event,
    *,
    reason: str,
    last_error: str | None,
    error_source: str | None = None,
) -> tuple[CallSnapshot, tuple[Command, ...]]:
    """
    Ordered teardown into ENDING.

    Order is part of the contract and is NOT passed through _logs_last:
    device released -> transport closing -> playback cancelled, then the
    CompleteTeardown marker which the runtime answers with TeardownComplete.
    """
    new_state = replace(
        state,
        call_state=CallState.ENDING,
        connection_state=ConnectionState.ENDED,
        recording_state=RecordingState.STOPPED,
        playback_state=PlaybackState.SILENT,
        last_error=last_error,
        error_source=error_source,
        end_reason=reason,
    )
    return new_state, (
        StopCapture(),
        CloseTransport(),
        CancelPlayback(reason=CANCEL_REASON_END_CALL),
        _log(new_state, event, "teardown_started", {"reason": reason}),
        *_state_changed(state, new_state, event, "teardown"),
        CompleteTeardown(),
    )


def _is_stale_clip(state: CallSnapshot, clip_id: int) -> bool:
    return (
        clip_id != state.active_clip_id
        or state.playback_state is PlaybackState.SILENT
    )


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    state: CallSnapshot, event: Event
) -> tuple[CallSnapshot, tuple[Command, ...]]:
    """
    Pure reducer for the call state machine.

    Given the current snapshot and a single event, returns:
    - the next snapshot
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Version-safe: ignores playback reports with stale clip ids
    """
    # ------------------------------------------------------------------
    # Terminal / draining states
    # ------------------------------------------------------------------
    if state.call_state is CallState.ENDED:
        return _ignore(state, event, "call_ended")

    if state.call_state is CallState.ENDING:
        if isinstance(event, TeardownComplete):
            new_state = replace(state, call_state=CallState.ENDED)
            reason = state.end_reason or END_REASON_USER
            return new_state, (
                NotifyCallEnded(reason=reason),
                _log(new_state, event, "call_ended", {"reason": reason}),
                *_state_changed(state, new_state, event, "teardown_complete"),
            )
        return _ignore(state, event, "call_ending")

    # ------------------------------------------------------------------
    # User intent
    # ------------------------------------------------------------------
    if isinstance(event, StartCall):
        if state.call_state is not CallState.IDLE:
            return _ignore(state, event, "start_call_not_idle")

        if not event.endpoint:
            # Demo mode: no connection attempt, capture still starts
            new_state = replace(
                state,
                call_state=CallState.ERROR,
                connection_state=ConnectionState.DISCONNECTED,
                last_error=ERROR_ENDPOINT_NOT_CONFIGURED,
                error_source=ERROR_SOURCE_CONFIG,
            )
            return new_state, _logs_last(
                (
                    StartCapture(chunk_interval_ms=event.chunk_interval_ms),
                    _log(new_state, event, "endpoint_not_configured"),
                )
                + _state_changed(state, new_state, event, "start_call")
            )

        new_state = replace(
            state,
            call_state=CallState.CONNECTING,
            connection_state=ConnectionState.CONNECTING,
            last_error=None,
            error_source=None,
        )
        return new_state, _logs_last(
            (
                OpenTransport(endpoint=event.endpoint),
                StartCapture(chunk_interval_ms=event.chunk_interval_ms),
                _log(
                    new_state,
                    event,
                    "start_call",
                    {"chunk_interval_ms": event.chunk_interval_ms},
                ),
            )
            + _state_changed(state, new_state, event, "start_call")
        )

    if isinstance(event, EndCall):
        return _teardown(state, event, reason=END_REASON_USER, last_error=None)

    if isinstance(event, TeardownComplete):
        return _ignore(state, event, "not_ending")

    if state.call_state is CallState.IDLE:
        return _ignore(state, event, "call_not_started")

    # From here on: CONNECTING, ACTIVE or ERROR

    # ------------------------------------------------------------------
    # Transport lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, TransportOpened):
        if state.call_state is not CallState.CONNECTING:
            return _ignore(state, event, "unexpected_transport_open")

        new_state = replace(
            state,
            call_state=CallState.ACTIVE,
            connection_state=ConnectionState.CONNECTED,
        )
        if state.error_source == ERROR_SOURCE_TRANSPORT:
            new_state = replace(new_state, last_error=None, error_source=None)
        return new_state, _logs_last(
            (_log(new_state, event, "transport_opened"),)
            + _state_changed(state, new_state, event, "transport_opened")
        )

    if isinstance(event, TransportClosed):
        if state.connection_state is ConnectionState.DISCONNECTED:
            return _ignore(state, event, "already_disconnected")

        reason = f": {event.reason}" if event.reason else ""
        message = f"Connection closed by server (code {event.code}{reason})"
        return _enter_disconnected(state, event, message, "transport_closed")

    if isinstance(event, TransportFailed):
        message = f"{ERROR_TRANSPORT_FAILED} ({event.detail})"
        if state.connection_state is ConnectionState.DISCONNECTED:
            return _set_error(
                state, event, message, "transport_failed", origin=ERROR_SOURCE_TRANSPORT
            )
        return _enter_disconnected(state, event, message, "transport_failed")

    if isinstance(event, SendFailed):
        return _set_error(
            state,
            event,
            f"Failed to send audio chunk {event.sequence_num}: {event.detail}",
            "send_failed",
            origin=ERROR_SOURCE_TRANSPORT,
        )

    if isinstance(event, ProtocolViolation):
        return _set_error(
            state, event, event.detail, "protocol", origin=ERROR_SOURCE_PROTOCOL
        )

    # ------------------------------------------------------------------
    # Capture lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, CaptureStarted):
        new_state = replace(state, recording_state=RecordingState.RECORDING)
        return new_state, (_log(new_state, event, "recording_started"),)

    if isinstance(event, CaptureStopped):
        new_state = replace(state, recording_state=RecordingState.STOPPED)
        return new_state, (_log(new_state, event, "recording_stopped"),)

    if isinstance(event, DeviceFailed):
        message = f"{ERROR_DEVICE_ACCESS} ({event.detail})"
        new_state = replace(
            state,
            recording_state=RecordingState.STOPPED,
            last_error=message,
            error_source=ERROR_SOURCE_DEVICE,
        )
        if state.device_error_policy is DeviceErrorPolicy.END_CALL:
            ending, cmds = _teardown(
                new_state,
                event,
                reason=END_REASON_DEVICE_ERROR,
                last_error=message,
                error_source=ERROR_SOURCE_DEVICE,
            )
            return ending, (
                _log(new_state, event, "device_failed", {"policy": "end_call"}),
            ) + cmds

        return new_state, (
            _log(
                new_state,
                event,
                "device_failed",
                {"policy": "continue", "error": message},
            ),
        )

    # ------------------------------------------------------------------
    # Barge-in: user audio always wins over assistant audio
    # ------------------------------------------------------------------
    if isinstance(event, ChunkCaptured):
        silenced = replace(state, playback_state=PlaybackState.SILENT)
        cancel = CancelPlayback(reason=CANCEL_REASON_BARGE_IN)

        if (
            state.call_state is CallState.ACTIVE
            and state.connection_state is ConnectionState.CONNECTED
        ):
            new_state = replace(silenced, chunks_sent=state.chunks_sent + 1)
            return new_state, (
                cancel,
                SendAudioChunk(sequence_num=event.sequence_num, data=event.data),
            )

        new_state = replace(silenced, chunks_dropped=state.chunks_dropped + 1)
        return new_state, (
            cancel,
            _log(
                new_state,
                event,
                "chunk_dropped",
                {
                    "reason": "not_connected",
                    "sequence_num": event.sequence_num,
                    "chunks_dropped": new_state.chunks_dropped,
                },
            ),
        )

    # ------------------------------------------------------------------
    # Assistant audio
    # ------------------------------------------------------------------
    if isinstance(event, SynthesizedAudioReceived):
        if state.connection_state is not ConnectionState.CONNECTED:
            return _ignore(state, event, "audio_after_disconnect")

        clip_id = state.active_clip_id + 1
        new_state = replace(
            state,
            active_clip_id=clip_id,
            playback_state=PlaybackState.PLAYING,
            clips_started=state.clips_started + 1,
        )
        return new_state, (
            PlayAudio(clip_id=clip_id, payload=event.payload),
            _log(
                new_state,
                event,
                "play_audio",
                {"clip_id": clip_id, "payload_len": len(event.payload)},
            ),
        )

    if isinstance(event, PlaybackFinished):
        if _is_stale_clip(state, event.clip_id):
            return _ignore(state, event, "playback_report_stale")

        new_state = replace(state, playback_state=PlaybackState.SILENT)
        return new_state, (
            _log(new_state, event, "playback_finished", {"clip_id": event.clip_id}),
        )

    if isinstance(event, PlaybackFailed):
        if _is_stale_clip(state, event.clip_id):
            return _ignore(state, event, "playback_report_stale")

        new_state = replace(
            state,
            playback_state=PlaybackState.SILENT,
            last_error=f"Could not play assistant audio: {event.detail}",
            error_source=ERROR_SOURCE_PLAYBACK,
        )
        return new_state, (
            _log(
                new_state,
                event,
                "playback_failed",
                {"clip_id": event.clip_id, "error": event.detail},
            ),
        )

    return _ignore(state, event, "unhandled_event")
