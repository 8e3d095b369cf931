"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from spec import (
    CAPTURE_SAMPLE_RATE_HZ,
    CHUNK_INTERVAL_MS_DEFAULT,
    CHUNK_INTERVAL_MS_MAX,
    CHUNK_INTERVAL_MS_MIN,
)


class DeviceErrorPolicy(str, Enum):
    """
    What the call does when the microphone cannot be opened.

    CONTINUE:
        Keep the call up in a playback-only posture.

    END_CALL:
        Escalate into the normal teardown path.
    """

    CONTINUE = "continue"
    END_CALL = "end_call"


def parse_device(raw: str | None) -> int | str | None:
    """Device selectors may be a PortAudio index or a name substring."""
    if raw is None or raw.strip() == "":
        return None
    raw = raw.strip()
    if raw.isdigit():
        return int(raw)
    return raw


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the call session.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    # Empty endpoint means "not configured" (demo mode)
    endpoint: str = ""

    # ------------------------------------------------------------------
    # Capture / playback devices
    # ------------------------------------------------------------------

    chunk_interval_ms: int = CHUNK_INTERVAL_MS_DEFAULT
    sample_rate_hz: int = CAPTURE_SAMPLE_RATE_HZ
    input_device: int | str | None = None
    output_device: int | str | None = None
    device_error_policy: DeviceErrorPolicy = DeviceErrorPolicy.CONTINUE

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    def __post_init__(self) -> None:
        if not CHUNK_INTERVAL_MS_MIN <= self.chunk_interval_ms <= CHUNK_INTERVAL_MS_MAX:
            raise ValueError(
                f"chunk_interval_ms must be within "
                f"[{CHUNK_INTERVAL_MS_MIN}, {CHUNK_INTERVAL_MS_MAX}], "
                f"got {self.chunk_interval_ms}"
            )
        if self.sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a variable is present but malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),

            endpoint=os.environ.get("CALL_ENDPOINT", "").strip(),

            chunk_interval_ms=int(
                os.environ.get("CHUNK_INTERVAL_MS", CHUNK_INTERVAL_MS_DEFAULT)
            ),
            sample_rate_hz=int(
                os.environ.get("CAPTURE_SAMPLE_RATE_HZ", CAPTURE_SAMPLE_RATE_HZ)
            ),
            input_device=parse_device(os.environ.get("INPUT_DEVICE")),
            output_device=parse_device(os.environ.get("OUTPUT_DEVICE")),
            device_error_policy=DeviceErrorPolicy(
                os.environ.get("DEVICE_ERROR_POLICY", "continue").lower()
            ),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
