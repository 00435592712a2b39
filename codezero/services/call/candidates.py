"""
Conversion between browser-style ICE candidate payloads and aiortc objects.
"""

from __future__ import annotations

from typing import List

from aiortc import RTCIceCandidate
from aiortc.sdp import candidate_from_sdp

from .models import CandidatePayload


def parse_candidate(payload: dict) -> RTCIceCandidate:
    """
    Build the aiortc candidate for one entry of ``rooms/{id}/iceCandidates``.

    Entries are written by browsers (``RTCIceCandidate.toJSON()``) or by
    :func:`candidates_from_sdp`; older web clients used ``id``/``label`` for
    the media section, which is still read.
    """
    if not isinstance(payload, dict):
        raise ValueError("ICE candidate payload must be an object")
    mid = payload.get("sdpMid", payload.get("id"))
    stored = CandidatePayload.model_validate(
        {
            "candidate": payload.get("candidate") or "",
            "sdpMid": None if mid is None else str(mid),
            "sdpMLineIndex": payload.get("sdpMLineIndex", payload.get("label")),
        }
    )
    if not stored.candidate:
        raise ValueError("ICE candidate payload has no candidate line")
    # aiortc needs the section to pick a transport
    if stored.sdp_mid is None and stored.sdp_mline_index is None:
        raise ValueError("ICE candidate payload names no media section")

    line = stored.candidate
    if line.startswith("candidate:"):
        line = line[len("candidate:"):]
    candidate = candidate_from_sdp(line)
    candidate.sdpMid = stored.sdp_mid
    candidate.sdpMLineIndex = stored.sdp_mline_index
    return candidate


def candidates_from_sdp(sdp: str) -> List[dict]:
    """
    Collect the ``a=candidate`` lines of every media section, tagged with the
    section's mid and index. aiortc gathers before the local description is
    set, so this is where its candidates surface.
    """
    found: List[dict] = []
    mline_index = -1
    mid = None
    for line in sdp.splitlines():
        line = line.strip()
        if line.startswith("m="):
            mline_index += 1
            mid = None
        elif mline_index < 0:
            continue
        elif line.startswith("a=mid:"):
            mid = line[len("a=mid:"):]
            # The mid may follow candidates in the same section.
            for entry in found:
                if entry["sdpMLineIndex"] == mline_index:
                    entry["sdpMid"] = mid
        elif line.startswith("a=candidate:"):
            found.append(
                CandidatePayload(
                    candidate=line[len("a="):],
                    sdp_mid=mid,
                    sdp_mline_index=mline_index,
                ).model_dump(by_alias=True)
            )
    return found


__all__ = ["candidates_from_sdp", "parse_candidate"]
