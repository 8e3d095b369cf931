# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
import json

import pytest

from protocol.messages import InboundSynthesizedAudio, OutboundAudioChunk, decode_message
from transport.channel import TransportChannel, TransportConnectError, TransportSendError

from fakes import FakeConnection, FakeConnector, RecordingListener, settle, tts_frame


ENDPOINT = "wss://calls.example.test/v1"


async def open_channel() -> tuple[TransportChannel, FakeConnection, RecordingListener]:
    conn = FakeConnection()
    listener = RecordingListener()
    channel = TransportChannel(listener=listener, connect=FakeConnector(conn))
    channel.connect(ENDPOINT)
    await settle()
    return channel, conn, listener


# ---------------------------------------------------------------------
# Connect
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_connect_reports_open():
    channel, _, listener = await open_channel()

    assert channel.is_connected
    assert listener.kinds() == ["open"]


@pytest.mark.asyncio
async def test_connect_failure_reports_error_once():
    listener = RecordingListener()
    connector = FakeConnector(fail=OSError("connection refused"))
    channel = TransportChannel(listener=listener, connect=connector)

    channel.connect(ENDPOINT)
    await settle()

    assert not channel.is_connected
    assert listener.kinds() == ["error"]
    assert "connection refused" in listener.calls[0][1]
    assert connector.calls == [ENDPOINT]


@pytest.mark.asyncio
async def test_channel_is_single_use():
    channel, _, _ = await open_channel()
    channel.close()

    with pytest.raises(TransportConnectError):
        channel.connect(ENDPOINT)


@pytest.mark.asyncio
async def test_close_while_connecting_abandons_attempt():
    gate = asyncio.Event()
    conn = FakeConnection()
    listener = RecordingListener()
    channel = TransportChannel(listener=listener, connect=FakeConnector(conn, gate=gate))

    channel.connect(ENDPOINT)
    await settle()
    channel.close()
    gate.set()
    await settle()

    assert listener.calls == []
    assert not channel.is_connected


# ---------------------------------------------------------------------
# Send
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_sends_are_written_in_submission_order():
    channel, conn, _ = await open_channel()

    for i in range(5):
        channel.send(OutboundAudioChunk(data=bytes([i])))
    await settle()

    assert [decode_message(raw) for raw in conn.sent] == [
        OutboundAudioChunk(data=bytes([i])) for i in range(5)
    ]
    assert json.loads(conn.sent[0])["type"] == "audio_chunk"
    assert channel.messages_sent == 5


@pytest.mark.asyncio
async def test_send_before_open_raises():
    channel = TransportChannel(listener=RecordingListener(), connect=FakeConnector(FakeConnection()))

    with pytest.raises(TransportSendError):
        channel.send(OutboundAudioChunk(data=b"x"))


@pytest.mark.asyncio
async def test_send_after_close_raises():
    channel, _, _ = await open_channel()
    channel.close()

    with pytest.raises(TransportSendError):
        channel.send(OutboundAudioChunk(data=b"x"))


# ---------------------------------------------------------------------
# Receive
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_inbound_audio_is_decoded_for_listener():
    _, conn, listener = await open_channel()

    conn.server_send(tts_frame(b"\x00\x01\x02"))
    await settle()

    assert listener.calls[-1] == ("message", InboundSynthesizedAudio(data=b"\x00\x01\x02"))


@pytest.mark.asyncio
async def test_malformed_frame_is_reported_and_connection_survives():
    channel, conn, listener = await open_channel()

    conn.server_send("{not json")
    conn.server_send(tts_frame(b"ok"))
    await settle()

    assert listener.kinds() == ["open", "protocol_error", "message"]
    assert channel.is_connected


# ---------------------------------------------------------------------
# Close
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_network_loss_reports_1006():
    channel, conn, listener = await open_channel()

    conn.drop()
    await settle()

    assert listener.calls[-1] == ("close", 1006, "")
    assert not channel.is_connected


@pytest.mark.asyncio
async def test_server_close_code_and_reason_are_reported():
    _, conn, listener = await open_channel()

    conn.server_close_with_error(4000, "session expired")
    await settle()

    assert listener.calls[-1] == ("close", 4000, "session expired")


@pytest.mark.asyncio
async def test_clean_server_close_is_reported_once():
    _, conn, listener = await open_channel()

    conn.server_close(1000, "bye")
    await settle()

    assert listener.calls[-1] == ("close", 1000, "bye")
    assert listener.kinds().count("close") == 1


@pytest.mark.asyncio
async def test_local_close_is_idempotent_and_not_reported():
    channel, conn, listener = await open_channel()

    channel.close()
    channel.close()
    await channel.wait_closed()

    assert conn.close_calls == 1
    assert "close" not in listener.kinds()
    assert not channel.is_connected
