"""
Configuration helpers for the codezero service.

Values come from the environment (optionally a local .env file) and are
exposed as module constants so routes and services can import them directly.
"""

from __future__ import annotations

import os
import sys

from dotenv import load_dotenv

load_dotenv()


def _required(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing {name}. Create .env from .env.example and set it.")
    return value


def _optional(name: str, default: str = "") -> str:
    return os.getenv(name, default)


def _csv(name: str, default: str) -> list[str]:
    return [item.strip() for item in _optional(name, default).split(",") if item.strip()]


# Claude is only needed by the assistant routes; the relay and call peer run without it.
ANTHROPIC_API_KEY = _optional("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = _optional("ANTHROPIC_MODEL", "claude-sonnet-4-5-20250929")

CORS_ALLOW_ORIGINS = _csv("CORS_ALLOW_ORIGINS", "http://localhost:3000,http://localhost:9002") or ["*"]

# Call signaling
RELAY_URL = _optional("RELAY_URL", "ws://127.0.0.1:8000/api/relay/ws")
PUBLIC_BASE_URL = _optional("PUBLIC_BASE_URL", "http://localhost:9002/")
STUN_SERVERS = _csv("STUN_SERVERS", "stun:stun.l.google.com:19302")

# Local capture devices, in the formats ffmpeg/PyAV expect on each platform.
if sys.platform == "darwin":
    _video_device, _video_format = "default:none", "avfoundation"
    _audio_device, _audio_format = "none:default", "avfoundation"
elif sys.platform == "win32":
    _video_device, _video_format = "video=Integrated Camera", "dshow"
    _audio_device, _audio_format = "audio=Microphone", "dshow"
else:
    _video_device, _video_format = "/dev/video0", "v4l2"
    _audio_device, _audio_format = "default", "pulse"

MEDIA_VIDEO_DEVICE = _optional("MEDIA_VIDEO_DEVICE", _video_device)
MEDIA_VIDEO_FORMAT = _optional("MEDIA_VIDEO_FORMAT", _video_format)
MEDIA_VIDEO_SIZE = _optional("MEDIA_VIDEO_SIZE", "640x480")
MEDIA_AUDIO_DEVICE = _optional("MEDIA_AUDIO_DEVICE", _audio_device)
MEDIA_AUDIO_FORMAT = _optional("MEDIA_AUDIO_FORMAT", _audio_format)

LOG_LEVEL = _optional("LOG_LEVEL", "INFO").upper()
HOST = _optional("HOST", "0.0.0.0")
PORT = int(_optional("PORT", "8000"))


def require(name: str) -> str:
    """Return a setting that must be present, failing with the usual hint."""
    return _required(name)


__all__ = [
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_MODEL",
    "CORS_ALLOW_ORIGINS",
    "HOST",
    "LOG_LEVEL",
    "MEDIA_AUDIO_DEVICE",
    "MEDIA_AUDIO_FORMAT",
    "MEDIA_VIDEO_DEVICE",
    "MEDIA_VIDEO_FORMAT",
    "MEDIA_VIDEO_SIZE",
    "PORT",
    "PUBLIC_BASE_URL",
    "RELAY_URL",
    "STUN_SERVERS",
    "require",
]
