# pylint: disable=missing-module-docstring,missing-function-docstring
from app.main import apply_overrides, build_parser, format_status
from config import AppConfig, DeviceErrorPolicy
from orchestrator.enums.media import PlaybackState, RecordingState
from orchestrator.enums.state import CallState
from session.call_session import CallStatus
from session.connection_status import ConnectionState


def test_command_line_overrides_environment_config():
    args = build_parser().parse_args([
        "--endpoint", " ws://localhost:8080/call ",
        "--chunk-interval-ms", "500",
        "--input-device", "1",
        "--end-on-device-error",
        "--quiet",
    ])

    config = apply_overrides(AppConfig(endpoint="wss://other"), args)

    assert config.endpoint == "ws://localhost:8080/call"
    assert config.chunk_interval_ms == 500
    assert config.input_device == 1
    assert config.output_device is None
    assert config.device_error_policy is DeviceErrorPolicy.END_CALL
    assert config.enable_json_logs is False


def test_no_flags_keep_config():
    config = AppConfig(endpoint="wss://calls.example.test/v1")

    assert apply_overrides(config, build_parser().parse_args([])) == config


def test_status_line_includes_error():
    status = CallStatus(
        call_state=CallState.ERROR,
        connection_state=ConnectionState.DISCONNECTED,
        recording_state=RecordingState.RECORDING,
        playback_state=PlaybackState.SILENT,
        last_error="Connection closed by server (code 1006)",
    )

    line = format_status(status)

    assert line.startswith("[call] ERROR connection=DISCONNECTED")
    assert "mic=RECORDING" in line
    assert "code 1006" in line
