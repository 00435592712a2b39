"""
Peer-to-peer call driven through the relay store.

The creator mints a room, publishes an offer to ``rooms/{id}/signaling`` and
waits for the answer; the joiner waits for the offer and overwrites the slot
with its answer. ICE candidates from both sides are appended under
``rooms/{id}/iceCandidates``. Relay listeners receive the whole current value
on every change, so both ingestion paths must tolerate redelivery.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Set

from aiortc import MediaStreamTrack, RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription
from pydantic import ValidationError

from ... import config
from ..relay.base import RelayStore, Unsubscribe, ValueListener
from .candidates import candidates_from_sdp, parse_candidate
from .media import LocalMedia, MediaProvider
from .models import (
    CallRole,
    CallState,
    Creator,
    Joiner,
    MediaAcquisitionError,
    SignalingMessage,
    candidate_path,
    candidates_path,
    room_path,
    signaling_path,
    validate_room_id,
)

logger = logging.getLogger(__name__)


def default_peer_connection() -> RTCPeerConnection:
    servers = [RTCIceServer(urls=url) for url in config.STUN_SERVERS]
    return RTCPeerConnection(configuration=RTCConfiguration(iceServers=servers))


class CallSessionController:
    """Owns the local media and the peer connection of one call at a time."""

    def __init__(
        self,
        relay: RelayStore,
        media: MediaProvider,
        *,
        peer_factory: Callable[[], RTCPeerConnection] = default_peer_connection,
        clock: Callable[[], int] = time.time_ns,
        on_state_change: Optional[Callable[[CallState], None]] = None,
        on_remote_track: Optional[Callable[[MediaStreamTrack], None]] = None,
    ) -> None:
        self._relay = relay
        self._media = media
        self._peer_factory = peer_factory
        self._clock = clock
        self._on_state_change = on_state_change
        self._on_remote_track = on_remote_track
        self._peer_tag = uuid.uuid4().hex[:8]

        self._state = CallState.IDLE
        # Bumped on every start and end; callbacks from an older call see a
        # different value and drop out.
        self._generation = 0
        self._negotiation_lock = asyncio.Lock()
        self._reset()
        self.last_error: Optional[Exception] = None

    def _reset(self) -> None:
        self._role: Optional[CallRole] = None
        self._room_id: Optional[str] = None
        self._pc: Optional[RTCPeerConnection] = None
        self._local_media: Optional[LocalMedia] = None
        self._unsubscribers: List[Unsubscribe] = []
        self._applied_candidates: Set[str] = set()
        self._published_candidates: Set[str] = set()
        self._latest_candidates: Dict[str, Any] = {}
        self._candidate_seq = itertools.count()
        self.remote_tracks: Dict[str, MediaStreamTrack] = {}

    # --- read-only view -------------------------------------------------

    @property
    def state(self) -> CallState:
        return self._state

    @property
    def role(self) -> Optional[CallRole]:
        return self._role

    @property
    def room_id(self) -> Optional[str]:
        return self._room_id

    @property
    def peer_connection(self) -> Optional[RTCPeerConnection]:
        return self._pc

    @property
    def local_media(self) -> Optional[LocalMedia]:
        return self._local_media

    @property
    def is_active(self) -> bool:
        return self._state not in (CallState.IDLE, CallState.FAILED)

    @property
    def camera_enabled(self) -> bool:
        return self._local_media is not None and self._local_media.is_enabled("video")

    @property
    def mic_enabled(self) -> bool:
        return self._local_media is not None and self._local_media.is_enabled("audio")

    def _set_state(self, state: CallState) -> None:
        if state is self._state:
            return
        logger.info("Call %s: %s -> %s", self._room_id or "-", self._state.value, state.value)
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _current(self, generation: int) -> bool:
        return generation == self._generation and self._pc is not None

    # --- lifecycle ------------------------------------------------------

    async def start_or_join(self, room_id: Optional[str] = None) -> Optional[str]:
        """
        Start a call (no ``room_id``) or join one. When a call is already
        active this ends it instead and returns ``None``.
        """
        if self.is_active:
            await self.end()
            return None

        role: CallRole = Joiner(validate_room_id(room_id)) if room_id else Creator()
        self._generation += 1
        generation = self._generation
        self.last_error = None
        self._set_state(CallState.ACQUIRING_MEDIA)

        try:
            media = await self._media.acquire()
        except MediaAcquisitionError as exc:
            if generation == self._generation:
                logger.warning("Media acquisition failed: %s", exc)
                self.last_error = exc
                self._set_state(CallState.FAILED)
                self._set_state(CallState.IDLE)
            raise

        if generation != self._generation:
            logger.info("Call ended while media was being acquired; releasing devices")
            media.stop()
            return None

        self._local_media = media
        self._role = role
        self._room_id = role.room_id if isinstance(role, Joiner) else str(self._clock() // 1_000_000)
        try:
            await self._negotiate(generation)
        except Exception:
            if generation != self._generation:
                # end() closed the connection under us
                logger.debug("Call setup interrupted by end()", exc_info=True)
                return None
            logger.exception("Call %s failed to start", self._room_id)
            await self.end()
            raise
        return self._room_id if generation == self._generation else None

    async def _negotiate(self, generation: int) -> None:
        room_id = self._room_id
        pc = self._peer_factory()
        self._pc = pc
        for track in self._local_media.tracks:
            pc.addTrack(track)

        @pc.on("track")
        def on_track(track: MediaStreamTrack) -> None:
            if not self._current(generation):
                return
            logger.info("Call %s: remote %s track arrived", room_id, track.kind)
            self.remote_tracks[track.kind] = track
            if self._on_remote_track is not None:
                self._on_remote_track(track)

        @pc.on("connectionstatechange")
        async def on_connection_state() -> None:
            logger.info("Call %s: connection %s", room_id, pc.connectionState)

        self._set_state(CallState.NEGOTIATING)

        async def on_signaling(value: Any) -> None:
            await self._handle_signaling(generation, value)

        async def on_candidates(value: Any) -> None:
            await self._handle_candidates(generation, value)

        if not await self._subscribe(generation, signaling_path(room_id), on_signaling):
            return
        if not await self._subscribe(generation, candidates_path(room_id), on_candidates):
            return

        if not isinstance(self._role, Creator):
            logger.info("Joined room %s; waiting for an offer", room_id)
            return

        if not await self._publish(generation, room_path(room_id), {"createdAt": self._clock() // 1_000_000}):
            return
        await self._relay.remove_on_disconnect(room_path(room_id))
        if not self._current(generation):
            await self._discard_room(room_id)
            return
        async with self._negotiation_lock:
            if not self._current(generation):
                return
            offer = await pc.createOffer()
            await pc.setLocalDescription(offer)
            message = SignalingMessage(type="offer", sdp=pc.localDescription.sdp)
            if not await self._publish(generation, signaling_path(room_id), message.model_dump()):
                return
            logger.info("Room %s created; offer published", room_id)
            await self._publish_local_candidates(generation)

    async def _subscribe(self, generation: int, path: str, listener: ValueListener) -> bool:
        unsubscribe = await self._relay.subscribe(path, listener)
        if not self._current(generation):
            # end() ran while the subscription was being set up
            unsubscribe()
            return False
        self._unsubscribers.append(unsubscribe)
        return True

    async def _publish(self, generation: int, path: str, value: Any) -> bool:
        """
        Write ``value`` on behalf of call ``generation``. Returns False once that
        call has ended; a write that lands after end() removed the room is
        taken back out so the room does not reappear.
        """
        if not self._current(generation):
            return False
        room_id = self._room_id
        await self._relay.write(path, value)
        if self._current(generation):
            return True
        await self._discard_room(room_id)
        return False

    async def _discard_room(self, room_id: str) -> None:
        try:
            await self._relay.remove(room_path(room_id))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not remove room %s from the relay: %s", room_id, exc)

    async def end(self) -> None:
        """Tear the call down. Safe to call repeatedly and from any state."""
        if self._state in (CallState.IDLE, CallState.ENDING):
            return
        self._generation += 1
        self._set_state(CallState.ENDING)

        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()

        media, self._local_media = self._local_media, None
        if media is not None:
            media.stop()

        pc, self._pc = self._pc, None
        room_id = self._room_id
        try:
            if pc is not None:
                try:
                    await pc.close()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Closing peer connection for %s failed: %s", room_id, exc)
            if room_id is not None:
                await self._discard_room(room_id)
        finally:
            self._reset()
            self._set_state(CallState.IDLE)

    async def __aenter__(self) -> "CallSessionController":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.end()

    # --- local controls -------------------------------------------------

    def toggle_camera(self) -> Optional[bool]:
        if self._local_media is None:
            return None
        return self._local_media.toggle("video")

    def toggle_mic(self) -> Optional[bool]:
        if self._local_media is None:
            return None
        return self._local_media.toggle("audio")

    # --- relay ingestion ------------------------------------------------

    async def _handle_signaling(self, generation: int, value: Any) -> None:
        if value is None:
            return
        try:
            message = SignalingMessage.model_validate(value)
        except ValidationError as exc:
            logger.warning("Ignoring malformed signaling message in %s: %s", self._room_id, exc)
            return

        async with self._negotiation_lock:
            if not self._current(generation):
                return
            try:
                await self._apply_signaling(generation, message)
            except Exception:
                if self._current(generation):
                    raise
                logger.debug("Room %s: signaling interrupted by end()", self._room_id, exc_info=True)

    async def _apply_signaling(self, generation: int, message: SignalingMessage) -> None:
        pc = self._pc
        room_id = self._room_id
        if message.type == "offer" and isinstance(self._role, Joiner):
            if pc.remoteDescription is not None or pc.signalingState == "closed":
                logger.debug("Room %s: offer already handled", self._room_id)
                return
            await pc.setRemoteDescription(RTCSessionDescription(sdp=message.sdp, type="offer"))
            answer = await pc.createAnswer()
            await pc.setLocalDescription(answer)
            reply = SignalingMessage(type="answer", sdp=pc.localDescription.sdp)
            if not await self._publish(generation, signaling_path(room_id), reply.model_dump()):
                return
            logger.info("Room %s: answer published", self._room_id)
            self._set_state(CallState.CONNECTED)
            await self._publish_local_candidates(generation)
            await self._apply_candidates(generation)
        elif message.type == "answer" and isinstance(self._role, Creator):
            if pc.signalingState != "have-local-offer":
                logger.debug("Room %s: ignoring answer in state %s", self._room_id, pc.signalingState)
                return
            await pc.setRemoteDescription(RTCSessionDescription(sdp=message.sdp, type="answer"))
            logger.info("Room %s: answer applied", self._room_id)
            self._set_state(CallState.CONNECTED)
            await self._apply_candidates(generation)
        else:
            logger.debug("Room %s: ignoring %s for this role", self._room_id, message.type)

    async def _handle_candidates(self, generation: int, value: Any) -> None:
        if not self._current(generation):
            return
        self._latest_candidates = value if isinstance(value, dict) else {}
        await self._apply_candidates(generation)

    async def _apply_candidates(self, generation: int) -> None:
        snapshot = self._latest_candidates
        for key in sorted(snapshot):
            if not self._current(generation):
                return
            if key in self._applied_candidates:
                continue
            if key in self._published_candidates:
                self._applied_candidates.add(key)
                continue
            pc = self._pc
            if pc.signalingState == "closed":
                return
            if pc.remoteDescription is None:
                # Kept pending; drained once the remote description is set.
                return
            self._applied_candidates.add(key)
            try:
                await pc.addIceCandidate(parse_candidate(snapshot[key]))
            except Exception as exc:  # noqa: BLE001
                logger.warning("Room %s: candidate %s not applied: %s", self._room_id, key, exc)

    async def _publish_local_candidates(self, generation: int) -> None:
        pc = self._pc
        if pc is None or pc.localDescription is None:
            return
        room_id = self._room_id
        for payload in candidates_from_sdp(pc.localDescription.sdp):
            key = f"{self._clock():020d}-{self._peer_tag}-{next(self._candidate_seq)}"
            self._published_candidates.add(key)
            if not await self._publish(generation, candidate_path(room_id, key), payload):
                return


__all__ = ["CallSessionController", "default_peer_connection"]
