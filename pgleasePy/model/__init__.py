"""
Model package for pgleasePy.

Contains the connection lifecycle states and the capability protocols.
"""

from .connection_state import ConnectionState
from .capability import Connector, Manager, Pool, RawDriver, SessionDriver

__all__ = [
    # Lifecycle
    "ConnectionState",
    # Capabilities
    "Connector",
    "Manager",
    "Pool",
    "RawDriver",
    "SessionDriver",
]
