"""
Call session container.

- Owns one Runtime (which owns the immutable call snapshot)
- Exclusively owns one TransportChannel, one CapturePipeline and one
  PlaybackManager
- Exposes user intent (start_call / end_call) and a read-only status
- NOT a state machine: contains no orchestration logic

A CallSession is single-use. After the call has ended a new one must be
created.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable
from uuid import uuid4

from audio.capture import CapturePipeline
from audio.devices import (
    AudioInputDevice,
    AudioOutputDevice,
    SoundDeviceInput,
    SoundDeviceOutput,
)
from audio.playback import PlaybackManager
from config import AppConfig
from observability.logger import log_event, now_ms
from orchestrator.enums.media import PlaybackState, RecordingState
from orchestrator.enums.state import CallState
from orchestrator.events import EndCall, EventType, PlaybackFinished, StartCall
from orchestrator.interruption import InterruptionCoordinator
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import CallSnapshot
from session.connection_status import ConnectionState
from session.gateway import TransportGateway
from spec import CaptureConstraints
from transport.channel import Connector, TransportChannel


def _new_session_id() -> str:
    return f"call_{uuid4().hex[:12]}"


# ---------------------------------------------------------------------
# Read-only status
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class CallStatus:
    """What a UI may observe about the call."""

    call_state: CallState
    connection_state: ConnectionState
    recording_state: RecordingState
    playback_state: PlaybackState
    last_error: str | None

    @staticmethod
    def from_snapshot(snapshot: CallSnapshot) -> CallStatus:
        return CallStatus(
            call_state=snapshot.call_state,
            connection_state=snapshot.connection_state,
            recording_state=snapshot.recording_state,
            playback_state=snapshot.playback_state,
            last_error=snapshot.last_error,
        )


StatusListener = Callable[[CallStatus], None]


# ---------------------------------------------------------------------
# CallSession
# ---------------------------------------------------------------------

class CallSession:
    """
    Aggregate root for one voice call.

    Devices and the socket connector are injectable so the whole call can
    run against in-process fakes.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        on_call_ended: Callable[[], None] | None = None,
        on_status: StatusListener | None = None,
        input_device: AudioInputDevice | None = None,
        output_device: AudioOutputDevice | None = None,
        connect: Connector | None = None,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or _new_session_id()
        self.created_at = time.time()
        self.on_call_ended = on_call_ended

        self._config = config
        self._on_status = on_status
        self._ended = asyncio.Event()
        self._last_status: CallStatus | None = None

        self.runtime = Runtime(
            initial_state=CallSnapshot(device_error_policy=config.device_error_policy),
            context=RuntimeExecutionContext(session=self),
            on_state_change=self._on_state_change,
        )

        self.gateway = TransportGateway(
            emit_event=self.runtime.handle_event,
            session_id=self.session_id,
        )
        self.transport = TransportChannel(
            listener=self.gateway,
            connect=connect,
            session_id=self.session_id,
        )

        self.playback = PlaybackManager(
            device=output_device or SoundDeviceOutput(config.output_device),
            on_finished=self._on_clip_finished,
            session_id=self.session_id,
        )
        self.interruption = InterruptionCoordinator(
            playback=self.playback,
            session_id=self.session_id,
        )
        self.capture = CapturePipeline(
            device=input_device or SoundDeviceInput(config.input_device),
            constraints=CaptureConstraints(sample_rate_hz=config.sample_rate_hz),
            before_chunk=self.interruption.before_chunk,
            session_id=self.session_id,
        )

    # ------------------------------------------------------------------
    # User intent
    # ------------------------------------------------------------------

    async def start_call(self) -> bool:
        """
        Begin the call.

        Returns False (and changes nothing) unless the call is IDLE.
        """
        state = self.runtime.state.call_state
        if state is not CallState.IDLE:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "START_CALL_IGNORED",
                **self.log_context(),
            })
            return False

        await self.runtime.handle_event(
            StartCall(
                event_type=EventType.START_CALL,
                ts_ms=now_ms(),
                endpoint=self._config.endpoint,
                chunk_interval_ms=self._config.chunk_interval_ms,
            )
        )
        return True

    async def end_call(self) -> None:
        """
        Hang up. Valid from any state; repeated calls are no-ops.

        Returns after the microphone is released and the transport close
        has been initiated.
        """
        await self.runtime.handle_event(
            EndCall(event_type=EventType.END_CALL, ts_ms=now_ms())
        )

    async def wait_ended(self) -> None:
        await self._ended.wait()

    async def aclose(self) -> None:
        """Wait for background tasks once the call has ended."""
        await self.runtime.shutdown()
        await self.transport.wait_closed()

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    @property
    def status(self) -> CallStatus:
        return CallStatus.from_snapshot(self.runtime.state)

    def log_context(self) -> dict[str, Any]:
        """Standard logging context for this call."""
        snapshot = self.runtime.state
        return {
            "session_id": self.session_id,
            "call_state": snapshot.call_state.value,
            "connection_state": snapshot.connection_state.value,
        }

    # ------------------------------------------------------------------
    # Internal wiring
    # ------------------------------------------------------------------

    def _on_state_change(self, snapshot: CallSnapshot) -> None:
        if snapshot.call_state is CallState.ENDED:
            self._ended.set()

        status = CallStatus.from_snapshot(snapshot)
        if status == self._last_status:
            # Counter-only change
            return
        self._last_status = status
        if self._on_status is not None:
            self._on_status(status)

    def _on_clip_finished(self, clip_id: int) -> None:
        self.runtime.emit(
            PlaybackFinished(
                event_type=EventType.PLAYBACK_FINISHED,
                ts_ms=now_ms(),
                clip_id=clip_id,
            )
        )
