# pylint: disable=missing-module-docstring,missing-function-docstring

from orchestrator.reducer import reduce
from orchestrator.state_dataclass import CallSnapshot
from orchestrator.events import EventType, StartCall, TeardownComplete
from orchestrator.commands import LogEvent


REQUIRED_FIELDS = {
    "ts_ms",
    "call_state",
    "connection_state",
    "recording_state",
    "playback_state",
    "event_type",
    "decision",
    "active_clip_id",
    "details",
}


def test_reducer_emits_logevent_with_required_fields():
    event = StartCall(
        event_type=EventType.START_CALL,
        ts_ms=123,
        endpoint="wss://calls.example.test/v1",
        chunk_interval_ms=250,
    )

    _, commands = reduce(CallSnapshot(), event)

    log_events = [c for c in commands if isinstance(c, LogEvent)]
    assert log_events, "Reducer must emit at least one LogEvent"

    for log in log_events:
        assert REQUIRED_FIELDS <= set(log.event)
        assert log.event["ts_ms"] == 123


def test_ignored_event_is_still_logged():
    event = TeardownComplete(event_type=EventType.TEARDOWN_COMPLETE, ts_ms=5)

    state, commands = reduce(CallSnapshot(), event)

    assert state == CallSnapshot()
    assert len(commands) == 1
    log = commands[0]
    assert isinstance(log, LogEvent)
    assert log.event["decision"] == "ignore"
    assert log.event["details"] == {"reason": "not_ending"}
