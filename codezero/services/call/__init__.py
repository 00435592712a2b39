"""
Peer-to-peer call signaling over the relay store.
"""

from .controller import CallSessionController
from .links import build_share_link, room_id_from_link
from .media import DeviceMediaProvider, LocalMedia, MediaProvider, SyntheticMediaProvider
from .models import (
    CallError,
    CallState,
    Creator,
    Joiner,
    MediaAcquisitionError,
    MediaPermissionDenied,
    MediaUnavailable,
    SignalingMessage,
)

__all__ = [
    "CallError",
    "CallSessionController",
    "CallState",
    "Creator",
    "DeviceMediaProvider",
    "Joiner",
    "LocalMedia",
    "MediaAcquisitionError",
    "MediaPermissionDenied",
    "MediaProvider",
    "MediaUnavailable",
    "SignalingMessage",
    "SyntheticMediaProvider",
    "build_share_link",
    "room_id_from_link",
]
