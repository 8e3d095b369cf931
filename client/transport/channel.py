"""
Call transport channel (client side of the call WebSocket).

Responsibilities:
- Open one WebSocket connection to the call endpoint
- Serialize outbound messages in FIFO order through a single writer task
- Decode inbound frames and hand them to the listener
- Surface close and failure exactly once, with the close code and reason

Non-responsibilities:
- NO reconnect. A closed or failed channel is terminal for this instance.
- NO call-state decisions

Threading:
All methods run on the event loop. send() and close() never suspend.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from observability.logger import log_event
from protocol.messages import (
    ProtocolDecodeError,
    ProtocolEncodeError,
    TransportMessage,
    decode_message,
    encode_message,
)
from spec import (
    PAYLOAD_PREVIEW_CHARS,
    TRANSPORT_OPEN_TIMEOUT_S,
    TRANSPORT_SEND_QUEUE_MAX,
    WS_CLOSE_ABNORMAL,
)


# ---------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------

class TransportError(Exception):
    """Base class for call transport errors."""


class TransportConnectError(TransportError):
    """Raised when a connection cannot be established (or was already used)."""


class TransportSendError(TransportError):
    """Raised when a message cannot be queued for sending."""


class TransportCloseError(TransportError):
    """Raised (and logged) when the closing handshake fails."""


# ---------------------------------------------------------------------
# Listener protocol
# ---------------------------------------------------------------------

class TransportListener(Protocol):
    async def on_open(self) -> None: ...
    async def on_message(self, message: TransportMessage) -> None: ...
    async def on_close(self, code: int, reason: str) -> None: ...
    async def on_error(self, detail: str) -> None: ...
    async def on_protocol_error(self, detail: str) -> None: ...


Connector = Callable[[str], Awaitable[Any]]


def _default_connect(endpoint: str) -> Awaitable[Any]:
    return ws_connect(
        endpoint,
        open_timeout=TRANSPORT_OPEN_TIMEOUT_S,
        max_size=None,
    )


def _close_info(exc: ConnectionClosed) -> tuple[int, str]:
    """Close code/reason as received from the peer; 1006 when none arrived."""
    if exc.rcvd is not None:
        return exc.rcvd.code, exc.rcvd.reason
    return WS_CLOSE_ABNORMAL, ""


def _preview(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        return raw[:PAYLOAD_PREVIEW_CHARS].hex()
    return raw[:PAYLOAD_PREVIEW_CHARS]


class _ChannelState(str, Enum):
    NEW = "new"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


# ---------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------

class TransportChannel:
    """
    One channel == one connection attempt == one call.

    Lifecycle:
    1. connect(endpoint)  -> background task opens the socket
    2. listener.on_open() -> send() becomes available
    3. listener.on_message(...) for every decoded inbound frame
    4. listener.on_close(code, reason) or listener.on_error(detail), once

    close() is local: it never produces on_close.
    """

    def __init__(
        self,
        *,
        listener: TransportListener,
        connect: Connector | None = None,
        session_id: str = "",
    ) -> None:
        self._listener = listener
        self._connect = connect or _default_connect
        self._session_id = session_id

        self._state = _ChannelState.NEW
        self._ws: Any = None
        self._outbox: asyncio.Queue[str] | None = None

        self._run_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._close_tasks: set[asyncio.Task[None]] = set()

        self.messages_sent = 0
        self.messages_received = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._state is _ChannelState.OPEN

    def connect(self, endpoint: str) -> None:
        """
        Begin connecting in the background.

        Raises:
            TransportConnectError if this channel was already used.
        """
        if self._state is not _ChannelState.NEW:
            raise TransportConnectError(
                f"Channel is single-use (state={self._state.value})"
            )

        self._state = _ChannelState.CONNECTING
        log_event({
            "event_type": "TRANSPORT_CONNECTING",
            "session_id": self._session_id,
            "endpoint": endpoint,
        })
        self._run_task = asyncio.create_task(self._run(endpoint))

    def send(self, message: TransportMessage) -> None:
        """
        Queue one message for delivery, preserving submission order.

        Raises:
            TransportSendError if the channel is not open, the message
            cannot be encoded, or the outbound queue is full.
        """
        if self._state is not _ChannelState.OPEN or self._outbox is None:
            raise TransportSendError(
                f"Channel not connected (state={self._state.value})"
            )

        try:
            text = encode_message(message)
        except ProtocolEncodeError as e:
            raise TransportSendError(str(e)) from e

        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull as e:
            raise TransportSendError("Outbound queue full") from e

    def close(self) -> None:
        """
        Close the connection. Idempotent, never raises, never suspends.

        Messages still queued are discarded.
        """
        if self._state is _ChannelState.CLOSED:
            return

        prev = self._state
        self._state = _ChannelState.CLOSED
        self._stop_writer()

        if prev is _ChannelState.CONNECTING and self._run_task is not None:
            self._run_task.cancel()

        ws, self._ws = self._ws, None
        if ws is not None:
            task = asyncio.create_task(self._close_ws(ws))
            self._close_tasks.add(task)
            task.add_done_callback(self._close_tasks.discard)

        log_event({
            "event_type": "TRANSPORT_CLOSED_LOCALLY",
            "session_id": self._session_id,
            "previous_state": prev.value,
            "messages_sent": self.messages_sent,
            "messages_received": self.messages_received,
        })

    async def wait_closed(self) -> None:
        """Await background tasks after close(); used on shutdown."""
        tasks = [t for t in (self._run_task, self._writer_task) if t is not None]
        tasks.extend(self._close_tasks)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    async def _run(self, endpoint: str) -> None:
        try:
            ws = await self._connect(endpoint)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            # websockets raises OSError, TimeoutError, InvalidURI and InvalidHandshake here
            err = TransportConnectError(f"{type(e).__name__}: {e}")
            self._state = _ChannelState.CLOSED
            log_event({
                "event_type": "TRANSPORT_CONNECT_FAILED",
                "session_id": self._session_id,
                "endpoint": endpoint,
                "error": str(err),
            })
            await self._listener.on_error(f"Connection failed: {err}")
            return

        if self._state is not _ChannelState.CONNECTING:
            # close() won the race with the handshake
            await self._close_ws(ws)
            return

        self._ws = ws
        self._state = _ChannelState.OPEN
        self._outbox = asyncio.Queue(maxsize=TRANSPORT_SEND_QUEUE_MAX)
        self._writer_task = asyncio.create_task(self._write_loop(ws, self._outbox))

        log_event({
            "event_type": "TRANSPORT_OPENED",
            "session_id": self._session_id,
            "endpoint": endpoint,
        })
        await self._listener.on_open()

        code, reason = await self._recv_loop(ws)

        if self._state is not _ChannelState.OPEN:
            # Closed locally; nothing to surface
            return

        self._state = _ChannelState.CLOSED
        self._ws = None
        self._stop_writer()

        log_event({
            "event_type": "TRANSPORT_CLOSED_BY_PEER",
            "session_id": self._session_id,
            "code": code,
            "reason": reason,
        })
        await self._listener.on_close(code, reason)

    async def _recv_loop(self, ws: Any) -> tuple[int, str]:
        try:
            async for raw in ws:
                self.messages_received += 1
                try:
                    message = decode_message(raw)
                except ProtocolDecodeError as e:
                    log_event({
                        "event_type": "PROTOCOL_DECODE_ERROR",
                        "session_id": self._session_id,
                        "error": str(e),
                        "payload_preview": _preview(raw),
                    })
                    await self._listener.on_protocol_error(str(e))
                    continue

                await self._listener.on_message(message)
        except ConnectionClosed as e:
            return _close_info(e)

        code = ws.close_code if ws.close_code is not None else WS_CLOSE_ABNORMAL
        return code, ws.close_reason or ""

    async def _write_loop(self, ws: Any, outbox: asyncio.Queue[str]) -> None:
        while True:
            text = await outbox.get()
            try:
                await ws.send(text)
            except ConnectionClosed as e:
                # The receive loop reports the close itself
                log_event({
                    "event_type": "TRANSPORT_SEND_ABORTED",
                    "session_id": self._session_id,
                    "pending": outbox.qsize(),
                    "error": str(e),
                })
                return
            self.messages_sent += 1

    def _stop_writer(self) -> None:
        task, self._writer_task = self._writer_task, None
        if task is not None and not task.done():
            task.cancel()
        self._outbox = None

    async def _close_ws(self, ws: Any) -> None:
        try:
            await ws.close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            err = TransportCloseError(f"{type(e).__name__}: {e}")
            log_event({
                "event_type": "TRANSPORT_CLOSE_FAILED",
                "session_id": self._session_id,
                "error": str(err),
            })
