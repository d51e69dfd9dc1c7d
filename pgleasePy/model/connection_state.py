"""
Lifecycle states of a pooled connection.
"""

from enum import Enum


class ConnectionState(str, Enum):
    """Lifecycle states of a Connection."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CONNECTED = "connected"
    CLOSED = "closed"
    RECONNECT_FAILED = "reconnect_failed"
