"""
Audio device backends.

This module contains:
- Narrow Protocols (capabilities, not implementations)
- PortAudio implementations via sounddevice

Threading model:
- PortAudio invokes stream callbacks on its own thread.
- Input blocks are handed to the caller's on_block callback from that
  thread; the caller is responsible for marshalling onto its event loop.
- Output completion is marshalled onto the event loop that started the
  render, via loop.call_soon_threadsafe.

sounddevice is imported lazily: a missing PortAudio library is a device
access failure for this call, not an import-time crash.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Protocol, runtime_checkable

import numpy as np

from audio.errors import DeviceAccessError, PlaybackRenderError
from observability.logger import log_event
from spec import CAPTURE_DTYPE, PLAYBACK_DTYPE, CaptureConstraints


def _load_sounddevice() -> Any:
    # PortAudio is a system library; sounddevice raises OSError without it
    import sounddevice  # pylint: disable=import-outside-toplevel
    return sounddevice


# ---------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class AudioInputDevice(Protocol):
    def open(
        self,
        *,
        constraints: CaptureConstraints,
        blocksize: int,
        on_block: Callable[[bytes], None],
    ) -> None:
        """
        Acquire the microphone exclusively and start delivering PCM16 blocks.

        Raises:
            DeviceAccessError if the device is denied or unavailable.
        """

    def close(self) -> None:
        """Release the microphone. Idempotent."""


@runtime_checkable
class RenderHandle(Protocol):
    def stop(self) -> None:
        """Stop rendering immediately and release the stream. Idempotent."""


@runtime_checkable
class AudioOutputDevice(Protocol):
    def render(
        self,
        samples: np.ndarray,
        sample_rate_hz: int,
        on_finished: Callable[[], None],
    ) -> RenderHandle:
        """
        Start rendering float32 samples shaped (frames, channels).

        on_finished is invoked on the event loop once rendering ends,
        whether naturally or because the handle was stopped.

        Raises:
            PlaybackRenderError if the output stream cannot be started.
        """


# ---------------------------------------------------------------------
# PortAudio input
# ---------------------------------------------------------------------

class SoundDeviceInput:
    """
    Microphone backend over sounddevice.RawInputStream.

    PortAudio offers no echo canceller; the constraint flag is logged so
    a deployment can see it was requested but not applied.
    """

    def __init__(self, device: int | str | None = None) -> None:
        self._device = device
        self._stream: Any = None

    def open(
        self,
        *,
        constraints: CaptureConstraints,
        blocksize: int,
        on_block: Callable[[bytes], None],
    ) -> None:
        if self._stream is not None:
            raise DeviceAccessError("Input device already open")

        try:
            sd = _load_sounddevice()
        except OSError as e:
            raise DeviceAccessError(f"PortAudio unavailable: {e}") from e

        def _callback(indata: Any, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
            if status:
                log_event({
                    "event_type": "CAPTURE_DEVICE_STATUS",
                    "status": str(status),
                })
            on_block(bytes(indata))

        try:
            stream = sd.RawInputStream(
                samplerate=constraints.sample_rate_hz,
                channels=constraints.channels,
                dtype=CAPTURE_DTYPE,
                blocksize=blocksize,
                device=self._device,
                callback=_callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceAccessError(str(e)) from e

        self._stream = stream

        log_event({
            "event_type": "CAPTURE_DEVICE_OPENED",
            "device": self._device,
            "sample_rate_hz": constraints.sample_rate_hz,
            "channels": constraints.channels,
            "blocksize": blocksize,
            "echo_cancellation_requested": constraints.echo_cancellation,
            "echo_cancellation_applied": False,
        })

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return

        sd = _load_sounddevice()
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            log_event({
                "event_type": "CAPTURE_DEVICE_CLOSE_FAILED",
                "error": str(e),
            })


# ---------------------------------------------------------------------
# PortAudio output
# ---------------------------------------------------------------------

class _StreamHandle:
    def __init__(self, stream: Any, port_audio_error: type[Exception]) -> None:
        self._stream = stream
        self._port_audio_error = port_audio_error
        self._stopped = False

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        try:
            if self._stream.active:
                self._stream.abort()
            self._stream.close()
        except self._port_audio_error as e:
            log_event({
                "event_type": "PLAYBACK_STREAM_CLOSE_FAILED",
                "error": str(e),
            })


class SoundDeviceOutput:
    """Speaker backend over sounddevice.OutputStream (one stream per clip)."""

    def __init__(self, device: int | str | None = None) -> None:
        self._device = device

    def render(
        self,
        samples: np.ndarray,
        sample_rate_hz: int,
        on_finished: Callable[[], None],
    ) -> RenderHandle:
        try:
            sd = _load_sounddevice()
        except OSError as e:
            raise PlaybackRenderError(f"PortAudio unavailable: {e}") from e

        loop = asyncio.get_running_loop()
        position = 0

        def _callback(outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
            nonlocal position
            block = samples[position : position + frames]
            outdata[: len(block)] = block
            if len(block) < frames:
                outdata[len(block):] = 0
                raise sd.CallbackStop
            position += frames

        def _finished() -> None:
            loop.call_soon_threadsafe(on_finished)

        try:
            stream = sd.OutputStream(
                samplerate=sample_rate_hz,
                channels=samples.shape[1],
                dtype=PLAYBACK_DTYPE,
                device=self._device,
                callback=_callback,
                finished_callback=_finished,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise PlaybackRenderError(str(e)) from e

        return _StreamHandle(stream, sd.PortAudioError)
