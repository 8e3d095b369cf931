"""
Runtime execution shell for a single call.

Responsibilities:
- Own the authoritative call snapshot
- Call the pure reducer
- Execute commands with side effects (transport, capture, playback)
- Run the capture loop and convert captured chunks into events
- Convert component failures into events

Non-responsibilities:
- NO orchestration decisions (the reducer makes all of them)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from audio.errors import CaptureError, PlaybackError
from observability.logger import log_event, now_ms
from orchestrator.commands import (
    CANCEL_REASON_SUPERSEDED,
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
from orchestrator.events import (
    CaptureStarted,
    CaptureStopped,
    ChunkCaptured,
    DeviceFailed,
    Event,
    EventType,
    PlaybackFailed,
    SendFailed,
    TeardownComplete,
    TransportFailed,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import CallSnapshot
from protocol.messages import OutboundAudioChunk
from transport.channel import TransportError, TransportSendError

if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


StateListener = Callable[[CallSnapshot], None]


class Runtime:
    """
    Runtime execution boundary for a single call.

    Architectural role:
    Runtime is the bridge between the pure orchestration layer
    (reducer + immutable snapshot) and the imperative world
    (devices, sockets, logging, time).

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - State transitions are serialized on the event loop
    - All side effects occur *after* state has been updated
    - Commands execute in reducer-emitted order
    - Follow-up events re-enter through handle_event (single entry point)

    Command execution never suspends on I/O: a CancelPlayback followed by
    SendAudioChunk in one tuple runs without yielding to the loop.
    """

    def __init__(
        self,
        *,
        initial_state: CallSnapshot,
        context: RuntimeExecutionContext,
        on_state_change: StateListener | None = None,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._on_state_change = on_state_change
        self._capture_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> CallSnapshot:
        """
        Return the current immutable call snapshot.

        The returned object must be treated as read-only; it is only
        replaced internally by Runtime via the reducer.
        """
        return self._state

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        Processing steps:
        1. Pass the current snapshot and event to the pure reducer
        2. Swap in the new snapshot and notify the state listener
        3. Execute all emitted commands sequentially

        All event sources converge here: user intent, transport
        callbacks, the capture loop, playback completion.
        """
        prev_state = self._state
        new_state, commands = reduce(self._state, event)
        self._state = new_state

        if self._on_state_change is not None and new_state != prev_state:
            self._on_state_change(new_state)

        for cmd in commands:
            await self._execute_command(cmd)

    def emit(self, event: Event) -> None:
        """
        Fire-and-forget entry point for synchronous callers
        (device completion callbacks already marshalled onto the loop).
        """
        self._spawn(self.handle_event(event))

    async def shutdown(self) -> None:
        """
        Wait for background work to finish.

        Called after the call has ended; the capture loop ends on its
        own once StopCapture has run.
        """
        tasks = list(self._tasks)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
            })

        elif isinstance(cmd, OpenTransport):
            try:
                self._ctx.transport.connect(cmd.endpoint)
            except TransportError as e:
                await self.handle_event(
                    TransportFailed(
                        event_type=EventType.TRANSPORT_FAILED,
                        ts_ms=now_ms(),
                        detail=f"Connection failed: {e}",
                    )
                )

        elif isinstance(cmd, CloseTransport):
            self._ctx.transport.close()

        elif isinstance(cmd, SendAudioChunk):
            try:
                self._ctx.transport.send(OutboundAudioChunk(data=cmd.data))
            except TransportSendError as e:
                await self.handle_event(
                    SendFailed(
                        event_type=EventType.SEND_FAILED,
                        ts_ms=now_ms(),
                        sequence_num=cmd.sequence_num,
                        detail=str(e),
                    )
                )

        elif isinstance(cmd, StartCapture):
            if self._capture_task is not None:
                log_event({
                    "ts_ms": now_ms(),
                    "event_type": "CAPTURE_ALREADY_RUNNING",
                    "session_id": self._ctx.session_id,
                })
                return
            self._capture_task = self._spawn(self._run_capture(cmd.chunk_interval_ms))

        elif isinstance(cmd, StopCapture):
            self._ctx.capture.stop()

        elif isinstance(cmd, CancelPlayback):
            self._ctx.interruption.interrupt(cmd.reason)

        elif isinstance(cmd, PlayAudio):
            self._ctx.interruption.interrupt(CANCEL_REASON_SUPERSEDED)
            try:
                self._ctx.playback.play(cmd.payload, cmd.clip_id)
            except PlaybackError as e:
                log_event({
                    "ts_ms": now_ms(),
                    "event_type": "PLAYBACK_START_FAILED",
                    "session_id": self._ctx.session_id,
                    "clip_id": cmd.clip_id,
                    "error_type": type(e).__name__,
                    "error": str(e),
                })
                await self.handle_event(
                    PlaybackFailed(
                        event_type=EventType.PLAYBACK_FAILED,
                        ts_ms=now_ms(),
                        clip_id=cmd.clip_id,
                        detail=str(e),
                    )
                )

        elif isinstance(cmd, CompleteTeardown):
            await self.handle_event(
                TeardownComplete(
                    event_type=EventType.TEARDOWN_COMPLETE,
                    ts_ms=now_ms(),
                )
            )

        elif isinstance(cmd, NotifyCallEnded):
            callback = self._ctx.on_call_ended
            if callback is None:
                return
            try:
                callback()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": now_ms(),
                    "event_type": "CALL_ENDED_CALLBACK_FAILED",
                    "session_id": self._ctx.session_id,
                    "reason": cmd.reason,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                })

        else:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "UNKNOWN_COMMAND",
                "session_id": self._ctx.session_id,
                "command_type": type(cmd).__name__,
            })

    # ------------------------------------------------------------------
    # Capture loop
    # ------------------------------------------------------------------

    async def _run_capture(self, chunk_interval_ms: int) -> None:
        capture = self._ctx.capture

        try:
            await capture.start(chunk_interval_ms)
        except CaptureError as e:
            await self.handle_event(
                DeviceFailed(
                    event_type=EventType.DEVICE_FAILED,
                    ts_ms=now_ms(),
                    detail=str(e),
                )
            )
            return

        await self.handle_event(
            CaptureStarted(event_type=EventType.CAPTURE_STARTED, ts_ms=now_ms())
        )

        async for chunk in capture.chunks():
            await self.handle_event(
                ChunkCaptured(
                    event_type=EventType.CHUNK_CAPTURED,
                    ts_ms=chunk.ts_ms,
                    sequence_num=chunk.sequence_num,
                    data=chunk.data,
                )
            )

        await self.handle_event(
            CaptureStopped(event_type=EventType.CAPTURE_STOPPED, ts_ms=now_ms())
        )

    # ------------------------------------------------------------------
    # Task bookkeeping
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
