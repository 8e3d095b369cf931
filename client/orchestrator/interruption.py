"""
Interruption (barge-in) coordinator.

Responsibilities:
- Stop assistant playback immediately when the user speaks
- Stop playback when a newer clip supersedes the active one
- Count and log every interruption that actually cut a clip short

Non-responsibilities:
- NO state machine decisions
- NO voice activity detection: every captured chunk counts as user speech

This module is infrastructure only. Interruptions are idempotent: with
nothing playing they are a no-op and are not logged.
"""

from __future__ import annotations

from audio.playback import PlaybackManager
from observability.logger import log_event
from orchestrator.commands import CANCEL_REASON_BARGE_IN


class InterruptionCoordinator:
    def __init__(self, *, playback: PlaybackManager, session_id: str = "") -> None:
        self._playback = playback
        self._session_id = session_id
        self.interruptions = 0

    def interrupt(self, reason: str) -> bool:
        """
        Cancel the active clip, if any.

        Returns True if a clip was cut short.
        """
        clip_id = self._playback.active_clip_id
        if not self._playback.cancel():
            return False

        self.interruptions += 1
        log_event({
            "event_type": "PLAYBACK_INTERRUPTED",
            "session_id": self._session_id,
            "clip_id": clip_id,
            "reason": reason,
            "interruptions": self.interruptions,
        })
        return True

    def before_chunk(self) -> None:
        """Capture hook: runs before every captured chunk is handed out."""
        self.interrupt(CANCEL_REASON_BARGE_IN)
