import asyncio
import itertools
import json

from aiortc import RTCSessionDescription
from aiortc.exceptions import InvalidStateError
from aiortc.mediastreams import AudioStreamTrack, VideoStreamTrack

from codezero.services.relay import RelayHub

_hosts = itertools.count(10)


class FakePeerConnection:
    """Follows aiortc's signaling state machine without touching the network."""

    def __init__(self):
        self.signalingState = "stable"
        self.connectionState = "new"
        self.localDescription = None
        self.remoteDescription = None
        self.local_tracks = []
        self.added_candidates = []
        self._handlers = {}
        self._host = next(_hosts)

    def on(self, event, f=None):
        def register(func):
            self._handlers.setdefault(event, []).append(func)
            return func

        return register(f) if f is not None else register

    def _emit(self, event, *args):
        for handler in self._handlers.get(event, []):
            handler(*args)

    def _check_open(self):
        if self.signalingState == "closed":
            raise InvalidStateError("RTCPeerConnection is closed")

    def _sdp(self):
        lines = ["v=0", "o=- 0 0 IN IP4 0.0.0.0", "s=-", "t=0 0"]
        for index, track in enumerate(self.local_tracks):
            lines += [
                f"m={track.kind} 9 UDP/TLS/RTP/SAVPF 96",
                f"a=candidate:{index + 1} 1 udp 2130706431 10.0.0.{self._host} {5000 + index} typ host",
                f"a=mid:{index}",
            ]
        return "\r\n".join(lines) + "\r\n"

    def addTrack(self, track):
        self._check_open()
        self.local_tracks.append(track)

    async def createOffer(self):
        self._check_open()
        return RTCSessionDescription(sdp=self._sdp(), type="offer")

    async def createAnswer(self):
        self._check_open()
        if self.signalingState != "have-remote-offer":
            raise InvalidStateError(f"Cannot create answer in signaling state {self.signalingState}")
        return RTCSessionDescription(sdp=self._sdp(), type="answer")

    async def setLocalDescription(self, description):
        self._check_open()
        if description.type == "offer":
            if self.signalingState not in ("stable", "have-local-offer"):
                raise InvalidStateError(f"Cannot set local offer in {self.signalingState}")
            self.signalingState = "have-local-offer"
        else:
            if self.signalingState != "have-remote-offer":
                raise InvalidStateError(f"Cannot set local answer in {self.signalingState}")
            self.signalingState = "stable"
            self.connectionState = "connected"
        self.localDescription = description

    async def setRemoteDescription(self, description):
        self._check_open()
        if description.type == "offer":
            if self.signalingState != "stable":
                raise InvalidStateError(f"Cannot set remote offer in {self.signalingState}")
            self.signalingState = "have-remote-offer"
        else:
            if self.signalingState != "have-local-offer":
                raise InvalidStateError(f"Cannot set remote answer in {self.signalingState}")
            self.signalingState = "stable"
            self.connectionState = "connected"
        self.remoteDescription = description
        for line in description.sdp.splitlines():
            if line.startswith("m=audio"):
                self._emit("track", AudioStreamTrack())
            elif line.startswith("m=video"):
                self._emit("track", VideoStreamTrack())

    async def addIceCandidate(self, candidate):
        self._check_open()
        self.added_candidates.append(candidate)

    async def close(self):
        self.signalingState = "closed"
        self.connectionState = "closed"


class FakeClaude:
    """Returns canned replies and records every prompt."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def create_text(self, user_text, system=None, max_tokens=1024):
        self.calls.append({"user_text": user_text, "system": system, "max_tokens": max_tokens})
        if not self.replies:
            raise AssertionError("FakeClaude ran out of replies")
        return self.replies.pop(0)


class LoopbackSocket:
    """Stands in for a `websockets` client connection, served by a RelayHub connection."""

    def __init__(self, hub: RelayHub):
        self.connection = hub.connect()
        self.inbox = asyncio.Queue()
        self.subscriptions = {}

    async def send(self, raw):
        message = json.loads(raw)
        op = message["op"]
        if op == "subscribe":
            request_id = message["id"]

            async def listener(value):
                self.inbox.put_nowait(json.dumps({"event": "value", "id": request_id, "value": value}))

            self.subscriptions[request_id] = await self.connection.subscribe(message["path"], listener)
        elif op == "unsubscribe":
            self.subscriptions.pop(message["target"])()
        elif op == "set":
            await self.connection.write(message["path"], message["value"])
        elif op == "remove":
            await self.connection.remove(message["path"])
        elif op == "onDisconnectRemove":
            await self.connection.remove_on_disconnect(message["path"])
        self.inbox.put_nowait(json.dumps({"event": "ack", "id": message["id"]}))

    def __aiter__(self):
        return self

    async def __anext__(self):
        raw = await self.inbox.get()
        if raw is None:
            raise StopAsyncIteration
        return raw

    async def close(self):
        self.inbox.put_nowait(None)
        await self.connection.disconnect()


async def eventually(predicate, timeout=2.0):
    """Poll until predicate() is true; fail the test after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class GatedRelay:
    """Wraps a relay connection; matching operations wait until ``gate`` is set."""

    def __init__(self, inner, op, path=None):
        self.inner = inner
        self.op = op
        self.path = path
        self.gate = asyncio.Event()
        self.reached = asyncio.Event()

    async def _hold(self, op, path):
        if op == self.op and (self.path is None or path == self.path):
            self.reached.set()
            await self.gate.wait()

    async def subscribe(self, path, listener):
        await self._hold("subscribe", path)
        return await self.inner.subscribe(path, listener)

    async def write(self, path, value):
        await self._hold("write", path)
        await self.inner.write(path, value)

    async def remove(self, path):
        await self._hold("remove", path)
        await self.inner.remove(path)

    async def remove_on_disconnect(self, path):
        await self._hold("remove_on_disconnect", path)
        await self.inner.remove_on_disconnect(path)
