"""Peer-side synchronization with the relay.

Provides:
- Relay connection with bounded reconnection (session.py)
- Online game driven by relay events (peer.py)
"""

from .peer import OnlinePeer
from .session import ConnectionUnavailable, RelaySession

__all__ = [
    "ConnectionUnavailable",
    "OnlinePeer",
    "RelaySession",
]
