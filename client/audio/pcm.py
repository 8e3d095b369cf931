"""PCM conversion and container utilities."""
from __future__ import annotations

import io

import numpy as np
import soundfile as sf

from spec import (
    CHUNK_CONTAINER_FORMAT,
    CHUNK_CONTAINER_SUBTYPE,
    NOISE_GATE_RMS_THRESHOLD,
    PLAYBACK_DTYPE,
)


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; drop the dangling byte
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")
    return audio_i16.astype(np.float32) / 32768.0


def rms(samples: np.ndarray) -> float:
    """Root-mean-square level of float samples (0.0 for empty input)."""
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def noise_gate(
    pcm_bytes: bytes,
    threshold: float = NOISE_GATE_RMS_THRESHOLD,
) -> bytes:
    """
    Zero out a PCM16 block whose level is below threshold.

    Length is preserved so chunk cadence never changes.
    """
    if rms(pcm16le_to_float32(pcm_bytes)) >= threshold:
        return pcm_bytes
    return bytes(len(pcm_bytes))


def pcm16_to_wav(pcm_bytes: bytes, *, sample_rate_hz: int, channels: int = 1) -> bytes:
    """Wrap raw PCM16 mono bytes in a WAV container."""
    samples = np.frombuffer(pcm_bytes[: len(pcm_bytes) - len(pcm_bytes) % 2], dtype="<i2")
    if channels > 1:
        samples = samples.reshape(-1, channels)

    buf = io.BytesIO()
    sf.write(
        buf,
        samples,
        sample_rate_hz,
        format=CHUNK_CONTAINER_FORMAT,
        subtype=CHUNK_CONTAINER_SUBTYPE,
    )
    return buf.getvalue()


def decode_audio(payload: bytes) -> tuple[np.ndarray, int]:
    """
    Decode any container libsndfile understands (WAV, FLAC, OGG, ...).

    Returns:
        (float32 samples shaped (frames, channels), sample_rate_hz)

    Raises:
        RuntimeError (soundfile.LibsndfileError) for undecodable payloads.
        ValueError for empty payloads.
    """
    if not payload:
        raise ValueError("empty audio payload")

    data, sample_rate = sf.read(io.BytesIO(payload), dtype=PLAYBACK_DTYPE, always_2d=True)
    return data, int(sample_rate)
