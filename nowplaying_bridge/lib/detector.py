# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Change detection — turns raw player snapshots into bridge events.

A raw snapshot is the dict a host player hands us:

    {
        "track": {
            "uid": "...", "uri": "spotify:track:...",
            "metadata": {"title": ..., "album_title": ..., "artist_name": ...,
                         "artist_uri": ..., "image_xlarge_url": ..., "duration": ...},
        },
        "is_playing": True,     # a track is loaded
        "is_paused": False,
        "progress": 0.25,       # or "position" + "duration" in ms
    }

Only ``uid`` and the playback state drive events; everything else rides
along in TrackChanged.
"""

import logging
import math
from dataclasses import dataclass, replace

from .enrichment import BackgroundLookup, resolve_cover_url
from .events import (
    Event,
    PlaybackState,
    ProgressChanged,
    StateChanged,
    Track,
    TrackChanged,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    track: Track
    state: PlaybackState


def resolve_state(raw: dict) -> PlaybackState:
    if not raw.get("is_playing", True):
        return PlaybackState.STOPPED
    if raw.get("is_paused"):
        return PlaybackState.PAUSED
    return PlaybackState.PLAYING


def progress_fraction(raw: dict | None) -> float:
    """Current position as a fraction in [0, 1]; 0 when unknown."""
    if not raw:
        return 0.0
    value = raw.get("progress")
    if value is None:
        position = raw.get("position")
        duration = raw.get("duration")
        if duration is None:
            duration = (((raw.get("track") or {}).get("metadata") or {}).get("duration"))
        try:
            value = float(position) / float(duration)
        except (TypeError, ValueError, ZeroDivisionError):
            return 0.0
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def _duration_ms(metadata: dict) -> int | None:
    try:
        return int(float(metadata["duration"]))
    except (KeyError, TypeError, ValueError):
        return None


def build_candidate(raw: dict | None) -> Track | None:
    """Build the Track a raw snapshot describes, or None when it carries no
    usable metadata.  ``background_url`` is left for the lookup."""
    if not isinstance(raw, dict):
        return None
    track = raw.get("track")
    if not isinstance(track, dict):
        return None
    metadata = track.get("metadata")
    uid = track.get("uid")
    if not isinstance(metadata, dict) or not uid:
        return None

    return Track(
        uid=str(uid),
        uri=str(track.get("uri") or ""),
        state=resolve_state(raw),
        title=metadata.get("title") or "",
        album=metadata.get("album_title") or "",
        artist=metadata.get("artist_name") or "",
        duration=_duration_ms(metadata),
        cover_url=resolve_cover_url(metadata.get("image_xlarge_url")),
    )


def diff(previous: Snapshot | None, candidate: Track,
         progress: float = 0.0) -> tuple[Snapshot, list[Event]]:
    """Compare *candidate* with the stored snapshot.

    Returns the snapshot to keep and the events to emit.  A new uid wins over
    any state change; a state change away from Playing is followed by one
    progress update since the ticker goes quiet.
    """
    state = candidate.state
    if previous is None or not candidate.same_track(previous.track):
        return Snapshot(candidate, state), [TrackChanged(candidate)]

    if state == previous.state:
        return previous, []

    events: list[Event] = [StateChanged(state)]
    if state != PlaybackState.PLAYING:
        events.append(ProgressChanged(progress))
    return Snapshot(replace(previous.track, state=state), state), events


class ChangeDetector:
    """Holds the last snapshot and feeds raw player updates through diff()."""

    def __init__(self, background: BackgroundLookup | None = None):
        self.background = background
        self.snapshot: Snapshot | None = None

    @property
    def state(self) -> PlaybackState:
        return self.snapshot.state if self.snapshot else PlaybackState.STOPPED

    @property
    def track(self) -> Track | None:
        return self.snapshot.track if self.snapshot else None

    async def feed(self, raw: dict | None) -> list[Event]:
        candidate = build_candidate(raw)
        if candidate is None:
            return []

        if not candidate.same_track(self.track):
            candidate = replace(candidate, background_url=await self._lookup_background(raw))

        self.snapshot, events = diff(self.snapshot, candidate, progress_fraction(raw))
        for event in events:
            log.debug("Detected %s", event)
        return events

    async def _lookup_background(self, raw: dict) -> str | None:
        if self.background is None:
            return None
        artist_uri = raw["track"]["metadata"].get("artist_uri")
        try:
            return await self.background.lookup(artist_uri)
        except Exception as e:
            log.warning("Background lookup raised: %s", e)
            return None

    def reset(self):
        self.snapshot = None
