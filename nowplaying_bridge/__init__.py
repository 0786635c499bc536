"""
Now-playing bridge — relays a media player's now-playing state to a local
consumer application over a loopback WebSocket.

Consumer side:
    from nowplaying_bridge import BridgeListener, TrackChanged

    listener = await BridgeListener.bind_default()
    async for connection in listener:
        async for event in connection:
            ...

Host side: see nowplaying_bridge.host.
"""

from .lib.client import BridgeClient, ClientState
from .lib.codec import DecodeError
from .lib.events import (
    Event,
    PlaybackState,
    ProgressChanged,
    StateChanged,
    Track,
    TrackChanged,
)
from .lib.listener import AddressInUseError, BridgeListener, Connection

__version__ = "0.3.0"

__all__ = [
    "AddressInUseError",
    "BridgeClient",
    "BridgeListener",
    "ClientState",
    "Connection",
    "DecodeError",
    "Event",
    "PlaybackState",
    "ProgressChanged",
    "StateChanged",
    "Track",
    "TrackChanged",
]
