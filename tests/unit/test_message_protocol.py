# pylint: disable=missing-module-docstring,missing-function-docstring

import json

import pytest

from protocol.messages import (
    ControlError,
    InboundSynthesizedAudio,
    OutboundAudioChunk,
    ProtocolDecodeError,
    ProtocolEncodeError,
    decode_message,
    decode_payload,
    encode_message,
    encode_payload,
)


# ---------------------------------------------------------------------
# Text-safe payload encoding
# ---------------------------------------------------------------------

@pytest.mark.parametrize("data", [b"", b"\x00", bytes(range(7))])
def test_payload_round_trip_preserves_bytes(data: bytes) -> None:
    assert decode_payload(encode_payload(data)) == data


def test_payload_encoding_is_standard_base64() -> None:
    assert encode_payload(b"\xfb\xff") == "+/8="


def test_decode_payload_rejects_non_alphabet_characters() -> None:
    with pytest.raises(ProtocolDecodeError):
        decode_payload("AAAA*AAA")


def test_decode_payload_rejects_bad_padding() -> None:
    with pytest.raises(ProtocolDecodeError):
        decode_payload("AAA")


# ---------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------

def test_outbound_chunk_is_json_with_type_and_base64_data() -> None:
    text = encode_message(OutboundAudioChunk(data=b"RIFF\x00\x01"))

    body = json.loads(text)
    assert body == {"type": "audio_chunk", "data": encode_payload(b"RIFF\x00\x01")}


def test_decode_tts_chunk() -> None:
    raw = json.dumps({"type": "tts_chunk", "data": encode_payload(b"\x01\x02\x03")})

    msg = decode_message(raw)

    assert msg == InboundSynthesizedAudio(data=b"\x01\x02\x03")


def test_decode_accepts_utf8_binary_frames() -> None:
    raw = json.dumps({"type": "tts_chunk", "data": "AQID"}).encode("utf-8")

    assert decode_message(raw) == InboundSynthesizedAudio(data=b"\x01\x02\x03")


def test_decode_server_error_message() -> None:
    msg = decode_message('{"type": "error", "message": "model overloaded"}')

    assert msg == ControlError(message="model overloaded")


def test_encode_rejects_unknown_message_object() -> None:
    with pytest.raises(ProtocolEncodeError):
        encode_message("not a message")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        '{"data": "AQID"}',
        '{"type": 7, "data": "AQID"}',
        '{"type": "tts_chunk"}',
        '{"type": "tts_chunk", "data": ""}',
        '{"type": "tts_chunk", "data": "%%%"}',
        '{"type": "transcript", "text": "hi"}',
        b"\xff\xfe",
    ],
)
def test_malformed_frames_raise_decode_error(raw: str | bytes) -> None:
    with pytest.raises(ProtocolDecodeError):
        decode_message(raw)
