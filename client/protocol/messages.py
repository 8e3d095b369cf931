"""
JSON message framing for the call transport.

Every frame is a JSON text message with a string `type` discriminator:

- Client → Server (mic):
    {"type": "audio_chunk", "data": "<base64 bytes>"}

- Server → Client (assistant audio):
    {"type": "tts_chunk", "data": "<base64 bytes>"}

- Server → Client (diagnostic):
    {"type": "error", "message": "<text>"}

Byte payloads use standard base64 (RFC 4648) in both directions so raw
audio survives a text transport.

Usage example:

    text = encode_message(OutboundAudioChunk(data=chunk.data))
    await ws.send(text)

    try:
        msg = decode_message(raw)
    except ProtocolDecodeError as e:
        log_event({"event_type": "PROTOCOL_DECODE_ERROR", "error": str(e)})
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Union

from spec import (
    MSG_FIELD_DATA,
    MSG_FIELD_MESSAGE,
    MSG_FIELD_TYPE,
    MSG_TYPE_AUDIO_CHUNK,
    MSG_TYPE_ERROR,
    MSG_TYPE_TTS_CHUNK,
)


# -------------------------
# Exceptions
# -------------------------

class ProtocolError(Exception):
    """Base class for message protocol errors."""


class ProtocolDecodeError(ProtocolError):
    """
    Raised when an inbound frame is not a well-formed message.

    Covers invalid JSON, a missing or unknown `type`, and payloads that are
    not valid base64. The frame is unsafe to process and must be dropped;
    it is never connection-fatal.
    """


class ProtocolEncodeError(ProtocolError):
    """Raised when an outbound message cannot be represented on the wire."""


# -------------------------
# Message types
# -------------------------

@dataclass(frozen=True)
class OutboundAudioChunk:
    """One captured microphone segment, client → server."""
    data: bytes
    type: str = MSG_TYPE_AUDIO_CHUNK


@dataclass(frozen=True)
class InboundSynthesizedAudio:
    """One playable assistant audio segment, server → client."""
    data: bytes
    type: str = MSG_TYPE_TTS_CHUNK


@dataclass(frozen=True)
class ControlError:
    """Server-side diagnostic, server → client."""
    message: str
    type: str = MSG_TYPE_ERROR


TransportMessage = Union[OutboundAudioChunk, InboundSynthesizedAudio, ControlError]


# -------------------------
# Text-safe payload encoding
# -------------------------

def encode_payload(data: bytes) -> str:
    """Encode raw bytes as an ASCII base64 string."""
    return base64.b64encode(data).decode("ascii")


def decode_payload(text: str) -> bytes:
    """
    Decode a base64 string produced by encode_payload().

    Strict: characters outside the base64 alphabet are rejected rather
    than skipped.
    """
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ProtocolDecodeError(f"Invalid base64 payload: {e}") from e


# -------------------------
# Framing
# -------------------------

def encode_message(message: TransportMessage) -> str:
    """Serialize a message into one JSON text frame."""
    if isinstance(message, (OutboundAudioChunk, InboundSynthesizedAudio)):
        body = {
            MSG_FIELD_TYPE: message.type,
            MSG_FIELD_DATA: encode_payload(message.data),
        }
    elif isinstance(message, ControlError):
        body = {
            MSG_FIELD_TYPE: message.type,
            MSG_FIELD_MESSAGE: message.message,
        }
    else:
        raise ProtocolEncodeError(f"Unsupported message: {type(message).__name__}")

    return json.dumps(body, separators=(",", ":"))


def decode_message(raw: str | bytes) -> TransportMessage:
    """
    Parse one inbound frame.

    Binary frames are accepted if they hold UTF-8 JSON.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolDecodeError(f"Binary frame is not UTF-8: {e}") from e

    try:
        body = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProtocolDecodeError(f"Invalid JSON: {e}") from e

    if not isinstance(body, dict):
        raise ProtocolDecodeError(f"Expected JSON object, got {type(body).__name__}")

    msg_type = body.get(MSG_FIELD_TYPE)
    if not isinstance(msg_type, str):
        raise ProtocolDecodeError("Missing message type")

    if msg_type in (MSG_TYPE_TTS_CHUNK, MSG_TYPE_AUDIO_CHUNK):
        data = body.get(MSG_FIELD_DATA)
        if not isinstance(data, str) or not data:
            raise ProtocolDecodeError(f"{msg_type} without data")

        payload = decode_payload(data)
        if msg_type == MSG_TYPE_TTS_CHUNK:
            return InboundSynthesizedAudio(data=payload)
        return OutboundAudioChunk(data=payload)

    if msg_type == MSG_TYPE_ERROR:
        message = body.get(MSG_FIELD_MESSAGE)
        return ControlError(message=str(message) if message is not None else "")

    raise ProtocolDecodeError(f"Unknown message type: {msg_type!r}")
