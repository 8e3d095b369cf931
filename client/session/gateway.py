"""
Transport gateway.

Responsibilities:
- Implement the transport listener for one call
- Route transport lifecycle callbacks -> call events
- Route inbound decoded messages -> call events
- Log unexpected message types

NOT responsible for:
- Executing commands
- Any state machine logic
"""

from __future__ import annotations

from typing import Awaitable, Callable

from observability.logger import log_event, now_ms
from orchestrator.events import (
    Event,
    EventType,
    ProtocolViolation,
    SynthesizedAudioReceived,
    TransportClosed,
    TransportFailed,
    TransportOpened,
)
from protocol.messages import ControlError, InboundSynthesizedAudio, TransportMessage


EventSink = Callable[[Event], Awaitable[None]]


class TransportGateway:
    """One gateway == one transport channel == one call."""

    def __init__(self, *, emit_event: EventSink, session_id: str = "") -> None:
        self._emit_event = emit_event
        self._session_id = session_id

    async def on_open(self) -> None:
        await self._emit_event(
            TransportOpened(event_type=EventType.TRANSPORT_OPENED, ts_ms=now_ms())
        )

    async def on_message(self, message: TransportMessage) -> None:
        """Route inbound messages to call events."""
        event: Event

        if isinstance(message, InboundSynthesizedAudio):
            event = SynthesizedAudioReceived(
                event_type=EventType.SYNTHESIZED_AUDIO_RECEIVED,
                ts_ms=now_ms(),
                payload=message.data,
            )
        elif isinstance(message, ControlError):
            event = ProtocolViolation(
                event_type=EventType.PROTOCOL_VIOLATION,
                ts_ms=now_ms(),
                detail=f"Server error: {message.message}",
            )
        else:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "UNEXPECTED_MESSAGE_TYPE",
                "session_id": self._session_id,
                "msg_type": message.type,
            })
            event = ProtocolViolation(
                event_type=EventType.PROTOCOL_VIOLATION,
                ts_ms=now_ms(),
                detail=f"Unexpected message type from server: {message.type}",
            )

        await self._emit_event(event)

    async def on_close(self, code: int, reason: str) -> None:
        await self._emit_event(
            TransportClosed(
                event_type=EventType.TRANSPORT_CLOSED,
                ts_ms=now_ms(),
                code=code,
                reason=reason,
            )
        )

    async def on_error(self, detail: str) -> None:
        await self._emit_event(
            TransportFailed(
                event_type=EventType.TRANSPORT_FAILED,
                ts_ms=now_ms(),
                detail=detail,
            )
        )

    async def on_protocol_error(self, detail: str) -> None:
        await self._emit_event(
            ProtocolViolation(
                event_type=EventType.PROTOCOL_VIOLATION,
                ts_ms=now_ms(),
                detail=f"Malformed message dropped: {detail}",
            )
        )
