"""
``codezero-call``: run a call peer from a terminal.

Starts a room (or joins one from ``--room`` / ``--link``) through a relay
server, prints the share link, and reads single-letter commands from stdin:
``c`` toggles the camera, ``m`` the microphone, ``q`` hangs up.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import threading
from typing import Optional

from . import config
from .services.call import (
    CallSessionController,
    DeviceMediaProvider,
    MediaAcquisitionError,
    SyntheticMediaProvider,
    build_share_link,
    room_id_from_link,
)
from .services.relay.websocket_client import WebSocketRelayStore

LOG = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="codezero peer-to-peer call")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--room", help="room id to join")
    target.add_argument("--link", help="share link containing a roomId parameter")
    parser.add_argument("--relay", default=config.RELAY_URL, help="relay websocket URL")
    parser.add_argument("--base-url", default=config.PUBLIC_BASE_URL, help="page URL used for share links")
    parser.add_argument("--synthetic", action="store_true", help="send generated audio/video instead of devices")
    return parser.parse_args(argv)


def _stdin_lines(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> None:
    for line in sys.stdin:
        loop.call_soon_threadsafe(queue.put_nowait, line)
    loop.call_soon_threadsafe(queue.put_nowait, "")


async def _read_commands(controller: CallSessionController, done: asyncio.Event) -> None:
    queue: asyncio.Queue = asyncio.Queue()
    # A daemon thread, so a pending readline never blocks interpreter exit.
    threading.Thread(target=_stdin_lines, args=(asyncio.get_running_loop(), queue), daemon=True).start()
    while not done.is_set():
        line = await queue.get()
        if not line:
            break
        command = line.strip().lower()
        if command == "c":
            print(f"camera {'on' if controller.toggle_camera() else 'off'}")
        elif command == "m":
            print(f"microphone {'on' if controller.toggle_mic() else 'off'}")
        elif command == "q":
            break
    done.set()


async def call(args: argparse.Namespace) -> int:
    room_id = args.room or (room_id_from_link(args.link) if args.link else None)
    media = SyntheticMediaProvider() if args.synthetic else DeviceMediaProvider()
    done = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signame in ("SIGINT", "SIGTERM"):
        try:
            loop.add_signal_handler(getattr(signal, signame), done.set)
        except (NotImplementedError, AttributeError):
            pass

    async with WebSocketRelayStore(args.relay) as relay:
        async with CallSessionController(relay, media) as controller:
            try:
                started = await controller.start_or_join(room_id)
            except MediaAcquisitionError as exc:
                LOG.error("Cannot start the call: %s", exc)
                return 1
            if started is None:
                return 1
            if room_id is None:
                print(f"Room {started} created. Share: {build_share_link(args.base_url, started)}")
            else:
                print(f"Joined room {started}.")
            print("Commands: c = camera, m = microphone, q = hang up")
            reader = asyncio.create_task(_read_commands(controller, done))
            await done.wait()
            reader.cancel()
    return 0


def run(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        code = asyncio.run(call(args))
    except KeyboardInterrupt:
        LOG.info("Call interrupted by user.")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    run()
