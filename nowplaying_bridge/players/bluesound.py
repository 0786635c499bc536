# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
BlueSound host player — reports a BluOS speaker's now-playing state.

BluOS HTTP API (port 11000, XML responses):
  GET /Status?etag=X&timeout=T  — long-poll for state changes

BluOS has no per-play identifier, so the uid is built from the queue
position plus title/artist/album.  /Status only answers when something
changes, so progress between answers is extrapolated from the clock.
"""

import asyncio
import logging
import time
from xml.etree import ElementTree

import aiohttp

from ..lib.config import cfg
from .base import HostPlayer

logger = logging.getLogger(__name__)

BLUOS_PORT = 11000
LONG_POLL_TIMEOUT = 60   # seconds, BluOS answers on change or after this


def _xml_text(root: ElementTree.Element, tag: str, default: str = "") -> str:
    """Get text content of a child element."""
    el = root.find(tag)
    return el.text if el is not None and el.text else default


def _seconds(value: str) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class BluesoundPlayer(HostPlayer):
    """BlueSound speaker monitored through the BluOS HTTP/XML API."""

    id = "bluesound"
    name = "BlueSound"

    def __init__(self, ip: str | None = None, *, port: int = BLUOS_PORT,
                 poll_timeout: int | None = None):
        super().__init__()
        self.ip = ip if ip is not None else cfg("player", "ip", default="")
        self.base_url = f"http://{self.ip}:{port}"
        self.poll_timeout = poll_timeout or cfg("player", "poll_timeout", default=LONG_POLL_TIMEOUT)
        self._etag = ""
        self._polled_at = time.monotonic()

    # ── BluOS HTTP helpers ──

    async def _bluos_get(self, path: str, timeout: float = 10) -> ElementTree.Element | None:
        """GET a BluOS endpoint, parse XML response. Returns root Element or None."""
        url = f"{self.base_url}{path}"
        try:
            async with self._http_session.get(
                url, timeout=aiohttp.ClientTimeout(total=timeout)
            ) as resp:
                resp.raise_for_status()
                text = await resp.text()
                return ElementTree.fromstring(text)
        except asyncio.TimeoutError:
            return None
        except Exception as e:
            logger.warning("BluOS request failed (%s): %s", path, e)
            return None

    # ── Status → raw snapshot ──

    def status_to_snapshot(self, root: ElementTree.Element) -> dict:
        raw_state = _xml_text(root, "state", "stop")
        title = _xml_text(root, "name") or _xml_text(root, "title1")
        artist = _xml_text(root, "artist") or _xml_text(root, "title2")
        album = _xml_text(root, "album") or _xml_text(root, "title3")
        song_index = _xml_text(root, "song")
        image_url = _xml_text(root, "image")
        if image_url.startswith("/"):
            image_url = f"{self.base_url}{image_url}"

        secs = _seconds(_xml_text(root, "secs"))
        totlen = _seconds(_xml_text(root, "totlen"))
        duration_ms = int(totlen * 1000) if totlen else None

        snapshot = {
            "track": None,
            "is_playing": raw_state in ("play", "stream", "pause"),
            "is_paused": raw_state == "pause",
            "position": int(secs * 1000) if secs is not None else None,
            "duration": duration_ms,
        }
        if title:
            snapshot["track"] = {
                "uid": f"{song_index}:{title}|{artist}|{album}",
                "uri": f"bluos:{song_index}" if song_index else "",
                "metadata": {
                    "title": title,
                    "album_title": album,
                    "artist_name": artist,
                    "artist_uri": None,
                    "image_xlarge_url": image_url or None,
                    "duration": duration_ms,
                },
            }
        return snapshot

    async def progress(self) -> float:
        raw = self._last_raw
        if not raw or not raw.get("duration") or raw.get("position") is None:
            return 0.0
        position = raw["position"]
        if raw.get("is_playing") and not raw.get("is_paused"):
            position += (time.monotonic() - self._polled_at) * 1000
        return min(max(position / raw["duration"], 0.0), 1.0)

    # ── Monitoring (long-poll loop) ──

    async def on_start(self):
        if not self.ip:
            logger.error("No BlueSound IP configured (set player.ip in config)")
        else:
            logger.info("Starting BlueSound player for %s", self.base_url)

    async def monitor(self, handler):
        """Long-poll /Status and report every answer."""
        logger.info("Starting BluOS monitoring for %s", self.base_url)

        while self.running:
            try:
                path = f"/Status?timeout={self.poll_timeout}"
                if self._etag:
                    path += f"&etag={self._etag}"

                root = await self._bluos_get(path, timeout=self.poll_timeout + 10)
                if root is None:
                    await asyncio.sleep(1)
                    continue

                self._etag = root.get("etag", self._etag)
                self._polled_at = time.monotonic()
                await self._report(handler, self.status_to_snapshot(root))

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in BluOS monitoring: %s", e)
                await asyncio.sleep(2)
