"""
Local camera/microphone acquisition.

Tracks handed to the peer connection are wrapped in :class:`ToggleableTrack`
so the camera and microphone can be muted without renegotiating: a disabled
track keeps producing frames, just black or silent ones.
"""

from __future__ import annotations

import abc
import asyncio
import errno
import logging
from typing import Dict, List, Optional

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer
from aiortc.mediastreams import AudioStreamTrack, VideoStreamTrack
from av import AudioFrame, VideoFrame

from ... import config
from .models import MediaPermissionDenied, MediaUnavailable

logger = logging.getLogger(__name__)


def _blank_video(frame: VideoFrame) -> VideoFrame:
    blank = VideoFrame(width=frame.width, height=frame.height, format="yuv420p")
    # Y=0, U=V=128 is black in yuv420p
    for index, plane in enumerate(blank.planes):
        fill = 0 if index == 0 else 128
        plane.update(bytes([fill]) * plane.buffer_size)
    blank.pts = frame.pts
    blank.time_base = frame.time_base
    return blank


def _silent_audio(frame: AudioFrame) -> AudioFrame:
    silent = AudioFrame(format=frame.format.name, layout=frame.layout.name, samples=frame.samples)
    for plane in silent.planes:
        plane.update(bytes(plane.buffer_size))
    silent.pts = frame.pts
    silent.sample_rate = frame.sample_rate
    silent.time_base = frame.time_base
    return silent


class ToggleableTrack(MediaStreamTrack):
    """Relays a source track, blanking its frames while disabled."""

    def __init__(self, source: MediaStreamTrack) -> None:
        super().__init__()
        self.kind = source.kind
        self.enabled = True
        self._source = source

    async def recv(self):
        frame = await self._source.recv()
        if self.enabled:
            return frame
        if isinstance(frame, VideoFrame):
            return _blank_video(frame)
        if isinstance(frame, AudioFrame):
            return _silent_audio(frame)
        return frame

    def stop(self) -> None:
        super().stop()
        self._source.stop()


class LocalMedia:
    """The local audio/video tracks owned by one call."""

    def __init__(self, audio: Optional[MediaStreamTrack] = None, video: Optional[MediaStreamTrack] = None) -> None:
        self._tracks: Dict[str, ToggleableTrack] = {}
        if audio is not None:
            self._tracks["audio"] = ToggleableTrack(audio)
        if video is not None:
            self._tracks["video"] = ToggleableTrack(video)
        self.stopped = False

    @property
    def tracks(self) -> List[ToggleableTrack]:
        return list(self._tracks.values())

    def track(self, kind: str) -> Optional[ToggleableTrack]:
        return self._tracks.get(kind)

    def is_enabled(self, kind: str) -> bool:
        track = self._tracks.get(kind)
        return bool(track and track.enabled)

    def toggle(self, kind: str) -> Optional[bool]:
        track = self._tracks.get(kind)
        if track is None:
            return None
        track.enabled = not track.enabled
        logger.info("Local %s %s", kind, "enabled" if track.enabled else "disabled")
        return track.enabled

    def stop(self) -> None:
        if self.stopped:
            return
        self.stopped = True
        for track in self._tracks.values():
            track.stop()


class MediaProvider(abc.ABC):
    @abc.abstractmethod
    async def acquire(self) -> LocalMedia:
        """Open camera and microphone, or raise a MediaAcquisitionError."""


class DeviceMediaProvider(MediaProvider):
    """Captures from local devices through ffmpeg (aiortc's MediaPlayer)."""

    def __init__(
        self,
        video_device: str = config.MEDIA_VIDEO_DEVICE,
        video_format: str = config.MEDIA_VIDEO_FORMAT,
        audio_device: str = config.MEDIA_AUDIO_DEVICE,
        audio_format: str = config.MEDIA_AUDIO_FORMAT,
        video_size: str = config.MEDIA_VIDEO_SIZE,
    ) -> None:
        self.video_device = video_device
        self.video_format = video_format
        self.audio_device = audio_device
        self.audio_format = audio_format
        self.video_size = video_size

    def _open(self, device: str, fmt: str, options: Optional[dict] = None) -> MediaPlayer:
        try:
            return MediaPlayer(device, format=fmt, options=options or {})
        except PermissionError as exc:
            raise MediaPermissionDenied(f"Access to {device} was denied") from exc
        except OSError as exc:
            if exc.errno in (errno.EACCES, errno.EPERM):
                raise MediaPermissionDenied(f"Access to {device} was denied") from exc
            raise MediaUnavailable(f"Could not open {device}: {exc}") from exc

    async def acquire(self) -> LocalMedia:
        if self.video_format == self.audio_format == "avfoundation":
            # avfoundation opens camera and microphone as a single input
            device = f"{self.video_device.split(':')[0]}:{self.audio_device.split(':')[-1]}"
            player = await asyncio.to_thread(
                self._open, device, self.video_format, {"video_size": self.video_size, "framerate": "30"}
            )
            return LocalMedia(audio=player.audio, video=player.video)

        video = await asyncio.to_thread(
            self._open, self.video_device, self.video_format, {"video_size": self.video_size}
        )
        try:
            audio = await asyncio.to_thread(self._open, self.audio_device, self.audio_format)
        except Exception:
            if video.video is not None:
                video.video.stop()
            raise
        return LocalMedia(audio=audio.audio, video=video.video)


class SyntheticMediaProvider(MediaProvider):
    """Silence and a generated picture; no devices needed."""

    async def acquire(self) -> LocalMedia:
        return LocalMedia(audio=AudioStreamTrack(), video=VideoStreamTrack())


__all__ = [
    "DeviceMediaProvider",
    "LocalMedia",
    "MediaProvider",
    "SyntheticMediaProvider",
    "ToggleableTrack",
]
