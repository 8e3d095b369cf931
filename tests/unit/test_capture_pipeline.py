# pylint: disable=missing-module-docstring,missing-function-docstring
import io

import pytest
import soundfile as sf

from audio.capture import CapturePipeline
from audio.errors import CaptureError, DeviceAccessError
from spec import CaptureConstraints

from fakes import FakeInputDevice, settle, wav_first_sample


@pytest.mark.asyncio
async def test_start_opens_device_with_chunk_sized_blocks():
    device = FakeInputDevice()
    pipeline = CapturePipeline(device=device)

    await pipeline.start(250)

    assert device.blocksize == 4000  # 250 ms @ 16 kHz
    assert device.constraints is not None
    assert device.constraints.echo_cancellation is True
    assert device.constraints.noise_suppression is True
    assert pipeline.recording


@pytest.mark.asyncio
async def test_chunks_are_wav_encoded_and_numbered_from_one():
    device = FakeInputDevice()
    pipeline = CapturePipeline(device=device)
    await pipeline.start(250)

    device.feed(1000)
    device.feed(2000)
    await settle()

    chunks = pipeline.chunks()
    first = await anext(chunks)
    second = await anext(chunks)

    assert (first.sequence_num, second.sequence_num) == (1, 2)
    info = sf.info(io.BytesIO(first.data))
    assert info.samplerate == 16_000
    assert info.channels == 1
    assert info.frames == 4000
    assert wav_first_sample(first.data) == 1000
    assert wav_first_sample(second.data) == 2000


@pytest.mark.asyncio
async def test_interruption_hook_runs_before_each_chunk_is_yielded():
    hook_calls: list[int] = []
    device = FakeInputDevice()
    pipeline = CapturePipeline(
        device=device,
        before_chunk=lambda: hook_calls.append(len(hook_calls) + 1),
    )
    await pipeline.start(250)

    device.feed()
    device.feed()
    await settle()

    seen: list[tuple[int, int]] = []
    chunks = pipeline.chunks()
    for _ in range(2):
        chunk = await anext(chunks)
        seen.append((chunk.sequence_num, len(hook_calls)))

    assert seen == [(1, 1), (2, 2)]


@pytest.mark.asyncio
async def test_quiet_blocks_are_gated_to_silence():
    device = FakeInputDevice()
    pipeline = CapturePipeline(device=device)
    await pipeline.start(250)

    device.feed(3)
    await settle()

    chunk = await anext(pipeline.chunks())
    assert wav_first_sample(chunk.data) == 0


@pytest.mark.asyncio
async def test_noise_gate_can_be_disabled():
    device = FakeInputDevice()
    pipeline = CapturePipeline(
        device=device,
        constraints=CaptureConstraints(noise_suppression=False),
    )
    await pipeline.start(250)

    device.feed(3)
    await settle()

    chunk = await anext(pipeline.chunks())
    assert wav_first_sample(chunk.data) == 3


@pytest.mark.asyncio
async def test_stop_releases_device_and_ends_iteration():
    device = FakeInputDevice()
    pipeline = CapturePipeline(device=device)
    await pipeline.start(250)
    device.feed()
    await settle()

    pipeline.stop()
    pipeline.stop()

    received = [chunk async for chunk in pipeline.chunks()]
    assert received == []
    assert device.close_calls == 1
    assert not pipeline.recording


@pytest.mark.asyncio
async def test_denied_device_raises_and_produces_no_chunks():
    device = FakeInputDevice(fail=DeviceAccessError("Permission denied"))
    pipeline = CapturePipeline(device=device)

    with pytest.raises(DeviceAccessError):
        await pipeline.start(250)

    assert not pipeline.recording
    assert [chunk async for chunk in pipeline.chunks()] == []


@pytest.mark.asyncio
async def test_pipeline_is_not_restartable():
    pipeline = CapturePipeline(device=FakeInputDevice())
    await pipeline.start(250)

    with pytest.raises(CaptureError):
        await pipeline.start(250)


@pytest.mark.asyncio
async def test_start_after_stop_is_refused():
    device = FakeInputDevice()
    pipeline = CapturePipeline(device=device)
    pipeline.stop()

    with pytest.raises(CaptureError):
        await pipeline.start(250)
    assert device.open_attempts == 0


@pytest.mark.asyncio
async def test_chunk_sequence_is_single_use():
    pipeline = CapturePipeline(device=FakeInputDevice())
    await pipeline.start(250)
    pipeline.stop()

    assert [c async for c in pipeline.chunks()] == []
    with pytest.raises(CaptureError):
        await anext(pipeline.chunks())
