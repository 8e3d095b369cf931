"""
Console call runner.

Loads configuration (environment, optionally a .env file, then command-line
overrides), starts one call and keeps it up until the user hangs up with
Ctrl+C or SIGTERM. Status changes are printed to stderr; JSONL events go
to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import signal
import sys
from typing import Sequence

from dotenv import load_dotenv

from config import AppConfig, DeviceErrorPolicy, parse_device
from observability.logger import log_event, set_enabled
from orchestrator.enums.state import CallState
from session.call_session import CallSession, CallStatus


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="voice-call",
        description="Full-duplex voice call against a streaming speech server.",
    )
    ap.add_argument("--endpoint", default=None, help="ws:// or wss:// call endpoint (overrides CALL_ENDPOINT)")
    ap.add_argument("--chunk-interval-ms", type=int, default=None, help="Capture chunk length in ms")
    ap.add_argument("--sample-rate", type=int, default=None, help="Capture sample rate in Hz")
    ap.add_argument("--input-device", default=None, help="PortAudio input device index or name")
    ap.add_argument("--output-device", default=None, help="PortAudio output device index or name")
    ap.add_argument(
        "--end-on-device-error",
        action="store_true",
        help="End the call if the microphone cannot be opened (default: continue playback-only)",
    )
    ap.add_argument("--quiet", action="store_true", help="Suppress JSONL event output")
    return ap


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    overrides: dict[str, object] = {}
    if args.endpoint is not None:
        overrides["endpoint"] = args.endpoint.strip()
    if args.chunk_interval_ms is not None:
        overrides["chunk_interval_ms"] = args.chunk_interval_ms
    if args.sample_rate is not None:
        overrides["sample_rate_hz"] = args.sample_rate
    if args.input_device is not None:
        overrides["input_device"] = parse_device(args.input_device)
    if args.output_device is not None:
        overrides["output_device"] = parse_device(args.output_device)
    if args.end_on_device_error:
        overrides["device_error_policy"] = DeviceErrorPolicy.END_CALL
    if args.quiet:
        overrides["enable_json_logs"] = False
    return dataclasses.replace(config, **overrides)


def format_status(status: CallStatus) -> str:
    line = (
        f"[call] {status.call_state.value} "
        f"connection={status.connection_state.value} "
        f"mic={status.recording_state.value} "
        f"speaker={status.playback_state.value}"
    )
    if status.last_error:
        line += f" error={status.last_error!r}"
    return line


def _print_status(status: CallStatus) -> None:
    print(format_status(status), file=sys.stderr)
    if status.call_state is CallState.ERROR:
        print("[call] press Ctrl+C to hang up", file=sys.stderr)


async def run_call(config: AppConfig) -> int:
    session = CallSession(config=config, on_status=_print_status)
    loop = asyncio.get_running_loop()

    hang_ups: set[asyncio.Task[None]] = set()

    def _hang_up() -> None:
        task = loop.create_task(session.end_call())
        hang_ups.add(task)
        task.add_done_callback(hang_ups.discard)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _hang_up)
        except NotImplementedError:
            # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead
            log_event({"event_type": "SIGNAL_HANDLER_UNAVAILABLE", "signal": sig.name})

    log_event({
        "event_type": "CLIENT_STARTED",
        "env": config.env,
        "session_id": session.session_id,
        "endpoint_configured": bool(config.endpoint),
        "chunk_interval_ms": config.chunk_interval_ms,
    })

    try:
        await session.start_call()
        await session.wait_ended()
    finally:
        if session.status.call_state is not CallState.ENDED:
            await session.end_call()
        await session.aclose()

    return 0 if session.status.last_error is None else 1


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        config = apply_overrides(AppConfig.load_from_env(), args)
    except ValueError as e:
        print(f"[call] invalid configuration: {e}", file=sys.stderr)
        return 2

    set_enabled(config.enable_json_logs)
    return asyncio.run(run_call(config))


if __name__ == "__main__":
    raise SystemExit(main())
