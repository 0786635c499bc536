#!/usr/bin/env python3
"""
Print now-playing events from the host bridge.

Binds the listener and keeps accepting: if the player restarts, the host
reconnects and the next connection is picked up without re-binding.

Run:  python -m nowplaying_bridge.listen [--port 19532] [--interval 250]
"""

import argparse
import asyncio
import logging
import sys

from .lib.codec import DecodeError
from .lib.config import cfg
from .lib.events import ProgressChanged, StateChanged, TrackChanged
from .lib.listener import DEFAULT_PORT, AddressInUseError, BridgeListener

logger = logging.getLogger(__name__)


def describe(event) -> str:
    if isinstance(event, TrackChanged):
        return f"Changed track to {event.track.title}"
    if isinstance(event, StateChanged):
        return f"Changed state to {event.state}"
    if isinstance(event, ProgressChanged):
        return f"Changed progress to {event.progress}"
    return repr(event)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print now-playing bridge events")
    parser.add_argument(
        "--port",
        type=int,
        default=cfg("bridge", "port", default=DEFAULT_PORT),
        help="Loopback port to listen on (defaults to bridge.port or 19532)",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Ask the host for progress updates every N milliseconds",
    )
    return parser.parse_args(argv)


async def serve(listener: BridgeListener, interval: int | None = None, out=print):
    """Accept connections until the listener closes, printing every event."""
    async for connection in listener:
        logger.info("Host connected from %s", connection.remote_address)
        if interval:
            await connection.send_cadence(interval)
        try:
            async for event in connection:
                out(describe(event))
        except DecodeError as e:
            logger.warning("Connection dropped after bad frame: %s", e)


async def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logging.getLogger("websockets").setLevel(logging.WARNING)
    args = parse_args(argv)

    try:
        listener = await BridgeListener.bind_local(args.port)
    except AddressInUseError as e:
        print(f"Cannot listen on port {args.port}: {e.strerror} "
              "(is another instance running?)", file=sys.stderr)
        return 1

    async with listener:
        await serve(listener, args.interval)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass
