"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution (transport, capture, playback, interruption).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, AsyncIterator, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from audio.frames import AudioChunk
    from protocol.messages import TransportMessage
    from session.call_session import CallSession


# ---------------------------------------------------------------------
# Component Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class TransportProtocol(Protocol):
    @property
    def is_connected(self) -> bool: ...
    def connect(self, endpoint: str) -> None: ...
    def send(self, message: TransportMessage) -> None: ...
    def close(self) -> None: ...


@runtime_checkable
class CaptureProtocol(Protocol):
    async def start(self, chunk_interval_ms: int) -> None: ...
    def chunks(self) -> AsyncIterator[AudioChunk]: ...
    def stop(self) -> None: ...


@runtime_checkable
class PlaybackProtocol(Protocol):
    def play(self, payload: bytes, clip_id: int) -> None: ...
    def cancel(self) -> bool: ...


@runtime_checkable
class InterruptionProtocol(Protocol):
    def interrupt(self, reason: str) -> bool: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    This object provides *live views* into session-owned resources
    so Runtime does not need to synchronize or cache anything.

    Runtime is allowed to:
    - Call transport, capture, playback and interruption
    - Invoke the call-ended callback

    Runtime is NOT allowed to:
    - Mutate session state directly
    - Perform orchestration decisions
    """

    def __init__(self, session: CallSession) -> None:
        self.session = session

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def transport(self) -> TransportProtocol:
        return self.session.transport

    @property
    def capture(self) -> CaptureProtocol:
        return self.session.capture

    @property
    def playback(self) -> PlaybackProtocol:
        return self.session.playback

    @property
    def interruption(self) -> InterruptionProtocol:
        return self.session.interruption

    @property
    def on_call_ended(self) -> Callable[[], None] | None:
        return self.session.on_call_ended
