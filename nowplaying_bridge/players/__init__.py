"""
Players — adapters for the host playback device.

A player does NOT talk to the consumer.  It watches a playback device and
hands raw snapshots to the host bridge, which runs change detection and
forwards events over the bridge connection.

Each host bridge runs ONE configured player (``player.type`` in config):
  bluesound  — BluOS speaker, long-polled over HTTP
  push       — the embedding host calls PushPlayer.push(raw) itself
"""

from ..lib.config import cfg
from .base import HostPlayer, PushPlayer
from .bluesound import BluesoundPlayer

PLAYER_TYPES = {
    BluesoundPlayer.id: BluesoundPlayer,
    PushPlayer.id: PushPlayer,
}


def create_player(player_type: str | None = None) -> HostPlayer:
    """Instantiate the configured player.  Raises ValueError for unknown types."""
    player_type = player_type or cfg("player", "type", default=BluesoundPlayer.id)
    try:
        return PLAYER_TYPES[player_type]()
    except KeyError:
        raise ValueError(f"Unknown player type: {player_type!r}") from None


__all__ = ["BluesoundPlayer", "HostPlayer", "PushPlayer", "create_player"]
