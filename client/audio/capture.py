"""
Microphone capture pipeline.

Responsibilities:
- Own the input device for the lifetime of one call
- Turn fixed-size PCM16 device blocks into AudioChunk objects
- Run the interruption hook before every chunk is handed out

Non-responsibilities:
- No transport, no playback, no state machine decisions

The chunk sequence is lazy, infinite until stop(), and non-restartable:
one pipeline instance serves exactly one call.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable

from audio.devices import AudioInputDevice
from audio.errors import CaptureError
from audio.frames import AudioChunk
from audio.pcm import noise_gate, pcm16_to_wav
from observability.logger import log_event, now_ms
from spec import (
    CAPTURE_CONSTRAINTS_V1,
    CAPTURE_QUEUE_MAX_CHUNKS,
    CHUNK_INTERVAL_MS_DEFAULT,
    SEQ_NUM_START,
    CaptureConstraints,
)


class CapturePipeline:
    """
    Produces one AudioChunk per chunk interval from the microphone.

    Lifecycle:
    1. await start(chunk_interval_ms)  -> device acquired or DeviceAccessError
    2. async for chunk in chunks()     -> one suspension point per chunk
    3. stop()                          -> device released, iteration ends

    Threading:
    Device blocks arrive on the PortAudio thread and are marshalled onto
    the event loop with call_soon_threadsafe; everything else runs on the
    loop.
    """

    def __init__(
        self,
        *,
        device: AudioInputDevice,
        constraints: CaptureConstraints = CAPTURE_CONSTRAINTS_V1,
        before_chunk: Callable[[], None] | None = None,
        session_id: str = "",
    ) -> None:
        self._device = device
        self._constraints = constraints
        self._before_chunk = before_chunk
        self._session_id = session_id

        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[bytes | None] | None = None

        self._started = False
        self._device_open = False
        self._stopped = False
        self._consumed = False

        self._next_seq = SEQ_NUM_START
        self._overflow_drops = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def recording(self) -> bool:
        """True while the device is held and chunks can still be produced."""
        return self._device_open and not self._stopped

    async def start(self, chunk_interval_ms: int = CHUNK_INTERVAL_MS_DEFAULT) -> None:
        """
        Acquire the microphone and begin buffering blocks.

        Raises:
            DeviceAccessError if the device is denied or unavailable.
            CaptureError if the pipeline was already started or stopped.
        """
        if self._started:
            raise CaptureError("Capture pipeline is not restartable")
        if self._stopped:
            raise CaptureError("Capture pipeline was stopped before start")
        self._started = True

        blocksize = self._constraints.samples_per_chunk(chunk_interval_ms)
        if blocksize <= 0:
            raise CaptureError(f"Invalid chunk interval: {chunk_interval_ms} ms")

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=CAPTURE_QUEUE_MAX_CHUNKS)

        self._device.open(
            constraints=self._constraints,
            blocksize=blocksize,
            on_block=self._on_device_block,
        )
        self._device_open = True

        log_event({
            "event_type": "CAPTURE_STARTED",
            "session_id": self._session_id,
            "chunk_interval_ms": chunk_interval_ms,
            "samples_per_chunk": blocksize,
            "echo_cancellation": self._constraints.echo_cancellation,
            "noise_suppression": self._constraints.noise_suppression,
        })

    async def chunks(self) -> AsyncIterator[AudioChunk]:
        """
        Yield captured chunks in strict temporal order until stop().

        The interruption hook runs before each chunk is yielded.
        Yields nothing if the device never opened.
        """
        if self._consumed:
            raise CaptureError("Chunk sequence can only be consumed once")
        self._consumed = True

        if not self._device_open or self._queue is None:
            return

        while True:
            block = await self._queue.get()
            if block is None:
                return

            if self._constraints.noise_suppression:
                block = noise_gate(block)

            chunk = AudioChunk(
                sequence_num=self._next_seq,
                data=pcm16_to_wav(
                    block,
                    sample_rate_hz=self._constraints.sample_rate_hz,
                    channels=self._constraints.channels,
                ),
                ts_ms=now_ms(),
            )
            self._next_seq += 1

            if self._before_chunk is not None:
                self._before_chunk()

            yield chunk

    def stop(self) -> None:
        """
        Release the device and end the chunk sequence.

        Idempotent: safe to call when never started or already stopped.
        Blocks still buffered are discarded, never sent.
        """
        if self._stopped:
            return
        self._stopped = True

        if self._device_open:
            self._device.close()

        if self._queue is not None:
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(None)

        log_event({
            "event_type": "CAPTURE_STOPPED",
            "session_id": self._session_id,
            "chunks_produced": self._next_seq - SEQ_NUM_START,
            "overflow_drops": self._overflow_drops,
        })

    # ------------------------------------------------------------------
    # Device thread -> event loop
    # ------------------------------------------------------------------

    def _on_device_block(self, block: bytes) -> None:
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self._enqueue_block, block)
        except RuntimeError:
            # Loop already closed; the device is being torn down
            log_event({
                "event_type": "CAPTURE_BLOCK_AFTER_LOOP_CLOSED",
                "session_id": self._session_id,
            })

    def _enqueue_block(self, block: bytes) -> None:
        if self._stopped or self._queue is None:
            return
        try:
            self._queue.put_nowait(block)
        except asyncio.QueueFull:
            self._overflow_drops += 1
            log_event({
                "event_type": "CAPTURE_OVERFLOW",
                "session_id": self._session_id,
                "overflow_drops": self._overflow_drops,
            })
