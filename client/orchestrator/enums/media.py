"""
Media sub-flags of an active call.

Recording and playback are orthogonal to the call state and to each other:
- RecordingState answers: "Is the microphone producing chunks?"
- PlaybackState answers:  "Is assistant audio audibly rendering?"
"""

from __future__ import annotations

from enum import Enum


class RecordingState(str, Enum):
    """Microphone capture status."""

    STOPPED = "STOPPED"
    RECORDING = "RECORDING"


class PlaybackState(str, Enum):
    """
    Assistant audio status.

    PLAYING:
        Exactly one clip is rendering.

    SILENT:
        No clip is rendering (never started, finished, failed or cancelled).
    """

    SILENT = "SILENT"
    PLAYING = "PLAYING"
