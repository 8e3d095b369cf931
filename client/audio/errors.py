"""
Audio device and playback error taxonomy.

All of these are non-fatal to the process: they are caught at the boundary
of the component that raised them and converted into call events.
"""

from __future__ import annotations


# -------------------------
# Capture
# -------------------------

class CaptureError(Exception):
    """Base class for microphone capture errors."""


class DeviceAccessError(CaptureError):
    """
    Raised when the microphone cannot be opened.

    Covers denied permission, a missing or busy device, and a missing
    PortAudio library. No chunks are produced after this error.
    """


# -------------------------
# Playback
# -------------------------

class PlaybackError(Exception):
    """Base class for assistant-audio playback errors."""


class PlaybackDecodeError(PlaybackError):
    """Raised when a payload is not a decodable audio container."""


class PlaybackRenderError(PlaybackError):
    """Raised when decoded audio cannot be sent to the output device."""
