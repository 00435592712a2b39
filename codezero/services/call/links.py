"""
Shareable call links: the page URL with a ``roomId`` query parameter.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .models import validate_room_id

ROOM_QUERY_PARAM = "roomId"


def build_share_link(base_url: str, room_id: str) -> str:
    parts = urlsplit(base_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != ROOM_QUERY_PARAM]
    query.append((ROOM_QUERY_PARAM, validate_room_id(room_id)))
    return urlunsplit(parts._replace(query=urlencode(query)))


def room_id_from_link(url: str) -> Optional[str]:
    for key, value in parse_qsl(urlsplit(url).query):
        if key == ROOM_QUERY_PARAM and value.strip():
            return validate_room_id(value)
    return None


__all__ = ["ROOM_QUERY_PARAM", "build_share_link", "room_id_from_link"]
