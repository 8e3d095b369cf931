"""
Connection state tracking for a call.

Connection lifecycle is tracked separately from the call state machine:
IDLE | CONNECTING | CONNECTED | DISCONNECTED | ENDED

The value is owned by the reducer snapshot and mirrored read-only to UI.
"""
from enum import Enum


class ConnectionState(str, Enum):
    """
    Transport connection lifecycle.

    Separate from and independent of CallState.
    DISCONNECTED is sticky: there is no automatic reconnect.
    """
    IDLE = "IDLE"                  # No connection attempted yet
    CONNECTING = "CONNECTING"      # Connection attempt in flight
    CONNECTED = "CONNECTED"        # Open WebSocket connection
    DISCONNECTED = "DISCONNECTED"  # Closed by server, network or failure
    ENDED = "ENDED"                # Closed by the local end of the call
