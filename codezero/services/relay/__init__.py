"""
Relay store: the shared key-value tree used as the call signaling channel.
"""

from .base import RelayError, RelayStore, join_path, split_path
from .memory import RelayConnection, RelayHub

__all__ = [
    "RelayConnection",
    "RelayError",
    "RelayHub",
    "RelayStore",
    "join_path",
    "split_path",
]
