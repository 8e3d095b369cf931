# pylint: disable=missing-module-docstring,missing-function-docstring
from typing import Any

import pytest

from audio.errors import PlaybackDecodeError, PlaybackRenderError
from audio.playback import PlaybackManager
from orchestrator.enums.media import PlaybackState
from orchestrator.interruption import InterruptionCoordinator

from fakes import FakeOutputDevice, wav_clip


def make_manager(device: FakeOutputDevice | None = None) -> tuple[PlaybackManager, FakeOutputDevice, list[int]]:
    device = device or FakeOutputDevice()
    finished: list[int] = []
    return PlaybackManager(device=device, on_finished=finished.append), device, finished


# ---------------------------------------------------------------------
# play / cancel
# ---------------------------------------------------------------------

def test_play_decodes_and_renders_clip():
    manager, device, _ = make_manager()

    manager.play(wav_clip(samples=1600), clip_id=1)

    assert manager.playback_state is PlaybackState.PLAYING
    assert manager.active_clip_id == 1
    render = device.renders[0]
    assert render.sample_rate_hz == 16_000
    assert render.samples.shape == (1600, 1)


def test_play_while_playing_leaves_exactly_one_active_clip():
    manager, device, _ = make_manager()

    manager.play(wav_clip(), clip_id=1)
    manager.play(wav_clip(), clip_id=2)

    assert len(device.active) == 1
    assert device.renders[0].handle.stopped
    assert manager.active_clip_id == 2


def test_cancel_is_idempotent():
    manager, device, _ = make_manager()
    manager.play(wav_clip(), clip_id=1)

    assert manager.cancel() is True
    assert manager.cancel() is False

    assert manager.playback_state is PlaybackState.SILENT
    assert device.renders[0].handle.stop_calls == 1


def test_natural_finish_reports_clip_and_releases_stream():
    manager, device, finished = make_manager()
    manager.play(wav_clip(), clip_id=7)

    device.finish_last()

    assert finished == [7]
    assert manager.playback_state is PlaybackState.SILENT
    assert device.renders[0].handle.stopped


def test_finish_after_cancel_is_not_reported():
    manager, device, finished = make_manager()
    manager.play(wav_clip(), clip_id=1)
    manager.cancel()

    device.finish_last()

    assert finished == []


def test_finish_of_replaced_clip_is_not_reported():
    manager, device, finished = make_manager()
    manager.play(wav_clip(), clip_id=1)
    manager.play(wav_clip(), clip_id=2)

    device.renders[0].on_finished()

    assert finished == []
    assert manager.active_clip_id == 2


@pytest.mark.parametrize("payload", [b"", b"definitely not audio"])
def test_undecodable_payload_raises_and_leaves_silence(payload: bytes):
    manager, device, _ = make_manager()
    manager.play(wav_clip(), clip_id=1)

    with pytest.raises(PlaybackDecodeError):
        manager.play(payload, clip_id=2)

    assert manager.playback_state is PlaybackState.SILENT
    assert device.active == []


def test_render_failure_raises_and_leaves_silence():
    manager, _, _ = make_manager(FakeOutputDevice(fail=PlaybackRenderError("no output device")))

    with pytest.raises(PlaybackRenderError):
        manager.play(wav_clip(), clip_id=1)

    assert manager.playback_state is PlaybackState.SILENT
    assert manager.active_clip_id is None


# ---------------------------------------------------------------------
# Interruption coordinator
# ---------------------------------------------------------------------

def test_interrupt_with_nothing_playing_is_silent_noop(monkeypatch: pytest.MonkeyPatch):
    logged: list[dict[str, Any]] = []
    monkeypatch.setattr("orchestrator.interruption.log_event", logged.append)
    manager, _, _ = make_manager()
    coordinator = InterruptionCoordinator(playback=manager)

    assert coordinator.interrupt("barge_in") is False
    assert coordinator.interruptions == 0
    assert logged == []


def test_barge_in_cancels_active_clip_and_logs(monkeypatch: pytest.MonkeyPatch):
    logged: list[dict[str, Any]] = []
    monkeypatch.setattr("orchestrator.interruption.log_event", logged.append)
    manager, device, _ = make_manager()
    coordinator = InterruptionCoordinator(playback=manager, session_id="call_test")
    manager.play(wav_clip(), clip_id=3)

    coordinator.before_chunk()

    assert manager.playback_state is PlaybackState.SILENT
    assert device.active == []
    assert coordinator.interruptions == 1
    assert logged[0]["event_type"] == "PLAYBACK_INTERRUPTED"
    assert logged[0]["clip_id"] == 3
    assert logged[0]["reason"] == "barge_in"
