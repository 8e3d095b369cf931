"""
Assistant-audio playback.

Invariant:
- At most one clip is active at any time. The manager owns it
  exclusively and releases it on finish, on cancel, and on replacement.

Clips are identified by a monotonic clip_id assigned by the reducer;
completion is reported with that id so stale completions can be dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from audio.devices import AudioOutputDevice, RenderHandle
from audio.errors import PlaybackDecodeError
from audio.pcm import decode_audio
from observability.logger import log_event
from orchestrator.enums.media import PlaybackState


@dataclass
class PlaybackClip:
    clip_id: int
    samples: np.ndarray
    sample_rate_hz: int
    handle: RenderHandle | None = None

    @property
    def duration_ms(self) -> int:
        return int(self.samples.shape[0] * 1000 / self.sample_rate_hz)


class PlaybackManager:
    def __init__(
        self,
        *,
        device: AudioOutputDevice,
        on_finished: Callable[[int], None] | None = None,
        session_id: str = "",
    ) -> None:
        self._device = device
        self._on_finished = on_finished
        self._session_id = session_id
        self._clip: PlaybackClip | None = None

    @property
    def playback_state(self) -> PlaybackState:
        return PlaybackState.PLAYING if self._clip is not None else PlaybackState.SILENT

    @property
    def active_clip_id(self) -> int | None:
        return self._clip.clip_id if self._clip is not None else None

    def play(self, payload: bytes, clip_id: int) -> None:
        """
        Decode payload and start rendering it as clip_id.

        Any active clip is cancelled first. On failure nothing is left
        playing.

        Raises:
            PlaybackDecodeError, PlaybackRenderError
        """
        self.cancel()

        try:
            samples, sample_rate_hz = decode_audio(payload)
        except (RuntimeError, ValueError) as e:
            raise PlaybackDecodeError(f"Could not decode audio: {e}") from e

        if samples.shape[0] == 0:
            raise PlaybackDecodeError("Decoded audio has no frames")

        clip = PlaybackClip(clip_id=clip_id, samples=samples, sample_rate_hz=sample_rate_hz)
        self._clip = clip

        try:
            clip.handle = self._device.render(
                samples,
                sample_rate_hz,
                lambda: self._on_render_finished(clip_id),
            )
        except Exception:
            if self._clip is clip:
                self._clip = None
            raise

        log_event({
            "event_type": "PLAYBACK_STARTED",
            "session_id": self._session_id,
            "clip_id": clip_id,
            "duration_ms": clip.duration_ms,
            "sample_rate_hz": sample_rate_hz,
        })

    def cancel(self) -> bool:
        """
        Stop and release the active clip.

        Returns True if a clip was actually cancelled. Idempotent.
        """
        clip, self._clip = self._clip, None
        if clip is None:
            return False

        if clip.handle is not None:
            clip.handle.stop()
        return True

    def _on_render_finished(self, clip_id: int) -> None:
        clip = self._clip
        if clip is None or clip.clip_id != clip_id:
            # Cancelled or replaced; the stream was already released
            return

        self._clip = None
        if clip.handle is not None:
            clip.handle.stop()

        log_event({
            "event_type": "PLAYBACK_FINISHED",
            "session_id": self._session_id,
            "clip_id": clip_id,
        })

        if self._on_finished is not None:
            self._on_finished(clip_id)
