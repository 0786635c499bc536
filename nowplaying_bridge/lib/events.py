# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Event model shared by both ends of the bridge.

    Track            — what is playing (identity: uid, uri)
    PlaybackState    — Stopped / Paused / Playing
    TrackChanged     — a new uid was observed
    StateChanged     — same track, new playback state
    ProgressChanged  — position as a fraction between 0 and 1
"""

from dataclasses import dataclass
from enum import IntEnum


class PlaybackState(IntEnum):
    STOPPED = 0
    PAUSED = 1
    PLAYING = 2

    @classmethod
    def from_code(cls, code) -> "PlaybackState":
        """2 → Playing, 1 → Paused, anything else → Stopped."""
        try:
            code = int(code)
        except (TypeError, ValueError):
            return cls.STOPPED
        if code == cls.PLAYING:
            return cls.PLAYING
        if code == cls.PAUSED:
            return cls.PAUSED
        return cls.STOPPED

    def __str__(self) -> str:
        return self.name.capitalize()

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass(frozen=True)
class Track:
    uid: str
    uri: str = ""
    state: PlaybackState = PlaybackState.STOPPED
    title: str = ""
    album: str = ""
    artist: str = ""
    duration: int | None = None  # milliseconds
    cover_url: str | None = None
    background_url: str | None = None

    def same_track(self, other: "Track | None") -> bool:
        """True when *other* is the same play of the same track (state ignored)."""
        return other is not None and self.uid == other.uid


@dataclass(frozen=True)
class TrackChanged:
    track: Track


@dataclass(frozen=True)
class StateChanged:
    state: PlaybackState


@dataclass(frozen=True)
class ProgressChanged:
    progress: float


Event = TrackChanged | StateChanged | ProgressChanged
