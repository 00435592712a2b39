"""
Types shared by the call signaling code.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..relay.base import join_path, split_path

ROOMS_ROOT = "rooms"


class CallError(Exception):
    """Base class for call failures reported to the caller."""


class MediaAcquisitionError(CallError):
    """Local camera/microphone could not be opened."""


class MediaPermissionDenied(MediaAcquisitionError):
    """The user or the OS refused access to the capture devices."""


class MediaUnavailable(MediaAcquisitionError):
    """A capture device is missing or busy."""


class CallState(str, Enum):
    IDLE = "idle"
    ACQUIRING_MEDIA = "acquiring-media"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    ENDING = "ending"
    FAILED = "failed"


@dataclass(frozen=True)
class Creator:
    """This peer opened the room and sends the offer."""


@dataclass(frozen=True)
class Joiner:
    """This peer arrived with a room id and answers the offer."""

    room_id: str


CallRole = Union[Creator, Joiner]


class SignalingMessage(BaseModel):
    type: Literal["offer", "answer"]
    sdp: str


class CandidatePayload(BaseModel):
    """Browser-style ICE candidate as stored under ``iceCandidates``."""

    candidate: str
    sdp_mid: Optional[str] = Field(default=None, alias="sdpMid")
    sdp_mline_index: Optional[int] = Field(default=None, alias="sdpMLineIndex")

    model_config = ConfigDict(populate_by_name=True)


def validate_room_id(room_id: str) -> str:
    room_id = str(room_id).strip()
    if len(split_path(room_id)) != 1:
        raise ValueError(f"Room id {room_id!r} must be a single path segment")
    return room_id


def room_path(room_id: str) -> str:
    return join_path(ROOMS_ROOT, room_id)


def signaling_path(room_id: str) -> str:
    return join_path(ROOMS_ROOT, room_id, "signaling")


def candidates_path(room_id: str) -> str:
    return join_path(ROOMS_ROOT, room_id, "iceCandidates")


def candidate_path(room_id: str, key: str) -> str:
    return join_path(ROOMS_ROOT, room_id, "iceCandidates", key)


__all__ = [
    "CallError",
    "CallRole",
    "CallState",
    "CandidatePayload",
    "Creator",
    "Joiner",
    "MediaAcquisitionError",
    "MediaPermissionDenied",
    "MediaUnavailable",
    "SignalingMessage",
    "candidate_path",
    "candidates_path",
    "room_path",
    "signaling_path",
    "validate_room_id",
]
