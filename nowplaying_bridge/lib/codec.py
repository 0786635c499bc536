# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Wire format for the bridge.

Every WebSocket text frame carries one JSON object:

    host → consumer
        {"type": "TrackChanged",    "data": {"uid": ..., "title": ..., ...}}
        {"type": "StateChanged",    "data": {"state": 2}}
        {"type": "ProgressChanged", "data": {"progress": 0.42}}

    consumer → host
        {"type": "SetProgressInterval", "data": {"interval": 500}}

Older host scripts sent ``TRACK_CHANGED;uid;uri;...`` lines instead.  Those
are still understood by decode_event() but never produced.
"""

import json
import math

from .events import (
    Event,
    PlaybackState,
    ProgressChanged,
    StateChanged,
    Track,
    TrackChanged,
)


TRACK_CHANGED = "TrackChanged"
STATE_CHANGED = "StateChanged"
PROGRESS_CHANGED = "ProgressChanged"
SET_PROGRESS_INTERVAL = "SetProgressInterval"

LEGACY_SEPARATOR = ";"
LEGACY_NONE = "NONE"


class DecodeError(ValueError):
    """A frame could not be turned into an Event."""


# ── Events ──

def _track_to_dict(track: Track) -> dict:
    return {
        "uid": track.uid,
        "uri": track.uri,
        "state": int(track.state),
        "title": track.title,
        "album": track.album,
        "artist": track.artist,
        "duration": track.duration,
        "coverUrl": track.cover_url,
        "backgroundUrl": track.background_url,
    }


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) and value else None


def _track_from_dict(data: dict) -> Track:
    uid = data.get("uid")
    if not isinstance(uid, str) or not uid:
        raise DecodeError("TrackChanged without uid")
    duration = data.get("duration")
    if duration is not None:
        try:
            duration = int(duration)
        except (TypeError, ValueError):
            raise DecodeError(f"Invalid track duration: {duration!r}")
    return Track(
        uid=uid,
        uri=str(data.get("uri") or ""),
        state=PlaybackState.from_code(data.get("state")),
        title=str(data.get("title") or ""),
        album=str(data.get("album") or ""),
        artist=str(data.get("artist") or ""),
        duration=duration,
        cover_url=_optional_str(data, "coverUrl"),
        background_url=_optional_str(data, "backgroundUrl"),
    )


def encode_event(event: Event) -> str:
    """Serialize an Event to a JSON text frame."""
    if isinstance(event, TrackChanged):
        message = {"type": TRACK_CHANGED, "data": _track_to_dict(event.track)}
    elif isinstance(event, StateChanged):
        message = {"type": STATE_CHANGED, "data": {"state": int(event.state)}}
    elif isinstance(event, ProgressChanged):
        message = {"type": PROGRESS_CHANGED, "data": {"progress": float(event.progress)}}
    else:
        raise TypeError(f"Not a bridge event: {event!r}")
    return json.dumps(message)


def decode_event(frame) -> Event:
    """Parse one text frame into an Event.  Raises DecodeError."""
    if not isinstance(frame, str):
        raise DecodeError("Unsupported message type, only text frames are accepted")

    stripped = frame.lstrip()
    if not stripped.startswith("{"):
        return decode_legacy(frame)

    try:
        message = json.loads(frame)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON: {e}") from e
    if not isinstance(message, dict):
        raise DecodeError("Message is not a JSON object")

    kind = message.get("type")
    data = message.get("data")
    if not isinstance(data, dict):
        raise DecodeError(f"Message {kind!r} has no data object")

    if kind == TRACK_CHANGED:
        return TrackChanged(_track_from_dict(data))
    if kind == STATE_CHANGED:
        if "state" not in data:
            raise DecodeError("StateChanged without state")
        return StateChanged(PlaybackState.from_code(data["state"]))
    if kind == PROGRESS_CHANGED:
        progress = data.get("progress")
        if (isinstance(progress, bool) or not isinstance(progress, (int, float))
                or not math.isfinite(progress)):
            raise DecodeError(f"Invalid progress: {progress!r}")
        return ProgressChanged(float(progress))
    raise DecodeError(f"Unknown message type: {kind!r}")


# ── Legacy plain-text form ──

def _legacy_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def _legacy_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _legacy_url(value: str) -> str | None:
    return None if not value or LEGACY_NONE in value else value


def decode_legacy(frame: str) -> Event:
    """Parse a ``TAG;field;field...`` line from an older host script.

    The legacy form has no escaping, so a separator inside a title shifts
    every following field.  Kept for compatibility only.
    """
    tag, _, rest = frame.strip().partition(LEGACY_SEPARATOR)
    fields = rest.split(LEGACY_SEPARATOR) if rest else []

    if tag == "TRACK_CHANGED" and len(fields) >= 9:
        uid, uri, state, duration, title, album, artist, cover, background = fields[:9]
        return TrackChanged(Track(
            uid=uid,
            uri=uri,
            state=PlaybackState.from_code(_legacy_int(state)),
            title=title,
            album=album,
            artist=artist,
            duration=_legacy_int(duration),
            cover_url=_legacy_url(cover),
            background_url=_legacy_url(background),
        ))
    if tag == "STATE_CHANGED" and fields:
        return StateChanged(PlaybackState.from_code(_legacy_int(fields[0])))
    if tag == "PROGRESS_CHANGED" and fields:
        return ProgressChanged(_legacy_float(fields[0]))
    raise DecodeError(f"Invalid data: {frame[:64]!r}")


# ── Control messages ──

def encode_cadence(interval_ms: int) -> str:
    return json.dumps({"type": SET_PROGRESS_INTERVAL, "data": {"interval": int(interval_ms)}})


def decode_cadence(frame) -> int | None:
    """Return the requested progress interval in ms, or None if *frame* is not
    a usable SetProgressInterval message."""
    if not isinstance(frame, str):
        return None
    try:
        message = json.loads(frame)
    except json.JSONDecodeError:
        return None
    if not isinstance(message, dict) or message.get("type") != SET_PROGRESS_INTERVAL:
        return None
    data = message.get("data")
    if not isinstance(data, dict):
        return None
    interval = data.get("interval")
    if isinstance(interval, bool) or not isinstance(interval, (int, float)):
        return None
    interval = int(interval)
    return interval if interval > 0 else None
