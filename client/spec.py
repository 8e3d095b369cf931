"""
BEHAVIORAL CONSTANTS
-------------------
Single source of truth for all behavioral invariants of the call client.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific values (endpoint, devices) live in config.py instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

# =============================================================================
# Capture Format (PCM16 mono @ 16kHz, 250ms chunks)
# =============================================================================

CAPTURE_SAMPLE_RATE_HZ: Final[int] = 16_000
CAPTURE_CHANNELS: Final[int] = 1
CAPTURE_DTYPE: Final[str] = "int16"

CHUNK_INTERVAL_MS_DEFAULT: Final[int] = 250
CHUNK_INTERVAL_MS_MIN: Final[int] = 20
CHUNK_INTERVAL_MS_MAX: Final[int] = 5_000

# Requested from the device backend; PortAudio has no echo canceller
CAPTURE_ECHO_CANCELLATION: Final[bool] = True
CAPTURE_NOISE_SUPPRESSION: Final[bool] = True

# Noise gate used when noise suppression is requested (float RMS in [0, 1])
NOISE_GATE_RMS_THRESHOLD: Final[float] = 0.005

# Each chunk is shipped as a self-describing container
CHUNK_CONTAINER_FORMAT: Final[str] = "WAV"
CHUNK_CONTAINER_SUBTYPE: Final[str] = "PCM_16"

# Pending chunks held between device callback and consumer
CAPTURE_QUEUE_MAX_CHUNKS: Final[int] = 32

# =============================================================================
# Sequence numbers
# =============================================================================

SEQ_NUM_START: Final[int] = 1

# =============================================================================
# Wire Protocol (JSON text frames)
# =============================================================================

MSG_TYPE_AUDIO_CHUNK: Final[str] = "audio_chunk"
MSG_TYPE_TTS_CHUNK: Final[str] = "tts_chunk"
MSG_TYPE_ERROR: Final[str] = "error"

MSG_FIELD_TYPE: Final[str] = "type"
MSG_FIELD_DATA: Final[str] = "data"
MSG_FIELD_MESSAGE: Final[str] = "message"

PAYLOAD_PREVIEW_CHARS: Final[int] = 100

# =============================================================================
# Transport
# =============================================================================

# RFC 6455 close code reported when no close frame was received
WS_CLOSE_ABNORMAL: Final[int] = 1006

TRANSPORT_OPEN_TIMEOUT_S: Final[float] = 10.0
TRANSPORT_SEND_QUEUE_MAX: Final[int] = 256

# =============================================================================
# Playback
# =============================================================================

PLAYBACK_DTYPE: Final[str] = "float32"

# Clip ids start at 1; 0 means "nothing has played yet"
CLIP_ID_NONE: Final[int] = 0

# =============================================================================
# User-visible error messages
# =============================================================================

ERROR_ENDPOINT_NOT_CONFIGURED: Final[str] = (
    "Call endpoint not configured (demo mode)"
)
ERROR_TRANSPORT_FAILED: Final[str] = (
    "Could not reach the call server. Check that it is running."
)
ERROR_DEVICE_ACCESS: Final[str] = (
    "Could not access the microphone. Check device permissions."
)

# Which component produced last_error; a transport open only clears its own
ERROR_SOURCE_CONFIG: Final[str] = "config"
ERROR_SOURCE_TRANSPORT: Final[str] = "transport"
ERROR_SOURCE_PROTOCOL: Final[str] = "protocol"
ERROR_SOURCE_DEVICE: Final[str] = "device"
ERROR_SOURCE_PLAYBACK: Final[str] = "playback"

# =============================================================================
# Helper Functions
# =============================================================================

def samples_per_chunk(
    chunk_interval_ms: int,
    sample_rate_hz: int = CAPTURE_SAMPLE_RATE_HZ,
) -> int:
    """
    Number of samples captured per chunk.

    Edge cases:
    - Non-positive input returns 0.
    """
    if chunk_interval_ms <= 0 or sample_rate_hz <= 0:
        return 0
    return (sample_rate_hz * chunk_interval_ms) // 1000


# =============================================================================
# Convenience Bundles
# =============================================================================

@dataclass(frozen=True)
class CaptureConstraints:
    """
    Immutable bundle describing what the capture device is asked for.

    This is a convenience wrapper for passing capture parameters around;
    it is NOT a second source of truth.
    """
    sample_rate_hz: int = CAPTURE_SAMPLE_RATE_HZ
    channels: int = CAPTURE_CHANNELS
    echo_cancellation: bool = CAPTURE_ECHO_CANCELLATION
    noise_suppression: bool = CAPTURE_NOISE_SUPPRESSION

    def samples_per_chunk(self, chunk_interval_ms: int) -> int:
        """Return number of samples per chunk at this sample rate."""
        return samples_per_chunk(chunk_interval_ms, self.sample_rate_hz)


CAPTURE_CONSTRAINTS_V1: Final[CaptureConstraints] = CaptureConstraints()
