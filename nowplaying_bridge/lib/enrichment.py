# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Track enrichment — best-effort artwork URLs for a Track.

Cover art comes from the player as an asset reference and is rewritten into
a public URL.  The artist background image is looked up on an external
metadata endpoint; that lookup may fail at any time and a failure only ever
means "no background".
"""

import asyncio
import logging
from collections import OrderedDict

import aiohttp

from .config import cfg

log = logging.getLogger(__name__)

SPOTIFY_IMAGE_URL = "https://i.scdn.co/image/"
LOCAL_FILE_MARKER = "localfile"

_MISSING = object()


def resolve_cover_url(reference: str | None) -> str | None:
    """Turn a player artwork reference into a public URL.

    ``spotify:image:ab67616d...`` → ``https://i.scdn.co/image/ab67616d...``
    Local files have no public URL and resolve to None.
    """
    if not reference or LOCAL_FILE_MARKER in reference:
        return None
    if reference.startswith(("http://", "https://")):
        return reference
    if ":" in reference:
        image_id = reference[reference.rfind(":") + 1:]
        return SPOTIFY_IMAGE_URL + image_id if image_id else None
    return None


def artist_id_from_uri(artist_uri: str | None) -> str | None:
    """``spotify:artist:0OdUWJ0sBjDrqHygGUXeCF`` → ``0OdUWJ0sBjDrqHygGUXeCF``."""
    if not artist_uri:
        return None
    artist_id = artist_uri.rsplit(":", 1)[-1]
    return artist_id or None


class LookupCache:
    """Simple LRU cache for lookup results (artist id -> URL or None)."""

    def __init__(self, max_size=100):
        self.max_size = max_size
        self._cache: OrderedDict[str, str | None] = OrderedDict()

    def get(self, key: str, default=None):
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]
        return default

    def put(self, key: str, value: str | None):
        if key in self._cache:
            self._cache.move_to_end(key)
        elif len(self._cache) >= self.max_size:
            self._cache.popitem(last=False)
        self._cache[key] = value

    def __contains__(self, key: str):
        return key in self._cache

    def __len__(self):
        return len(self._cache)


def _extract_background(payload) -> str | None:
    if not isinstance(payload, dict):
        return None
    header = payload.get("header_image")
    if isinstance(header, dict) and isinstance(header.get("image"), str):
        return header["image"]
    if isinstance(payload.get("background_url"), str):
        return payload["background_url"]
    images = payload.get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict):
        url = images[0].get("url")
        if isinstance(url, str):
            return url
    return None


class BackgroundLookup:
    """Look up an artist background image URL.

    ``url_template`` contains an ``{artist_id}`` placeholder; an empty
    template disables lookups.  Results, misses included, are cached so a
    repeating artist does not hit the endpoint again.
    """

    def __init__(self, url_template: str | None = None, *,
                 timeout: float | None = None, cache_size: int | None = None,
                 session: aiohttp.ClientSession | None = None):
        if url_template is None:
            url_template = cfg("background", "url", default="")
        self.url_template = url_template or ""
        self.timeout = timeout if timeout is not None else cfg("background", "timeout", default=5)
        self._cache = LookupCache(max_size=cache_size or cfg("background", "cache_size", default=100))
        self._session = session

    @property
    def enabled(self) -> bool:
        return bool(self.url_template)

    async def lookup(self, artist_uri: str | None) -> str | None:
        """Return the background URL for *artist_uri*, or None.  Never raises."""
        artist_id = artist_id_from_uri(artist_uri)
        if not self.enabled or not artist_id:
            return None

        cached = self._cache.get(artist_id, _MISSING)
        if cached is not _MISSING:
            log.debug("Background cache hit for %s", artist_id)
            return cached

        url = self.url_template.format(artist_id=artist_id)
        close_session = False
        session = self._session
        if session is None:
            session = aiohttp.ClientSession()
            close_session = True
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as resp:
                resp.raise_for_status()
                payload = await resp.json(content_type=None)
            result = _extract_background(payload)
            if result is None:
                log.debug("No background image for artist %s", artist_id)
            self._cache.put(artist_id, result)
            return result
        except asyncio.TimeoutError:
            log.warning("Background lookup timed out for %s", artist_id)
            return None
        except aiohttp.ClientError as e:
            log.warning("Background lookup failed for %s: %s", artist_id, e)
            return None
        except Exception as e:
            log.warning("Error processing background for %s: %s", artist_id, e)
            return None
        finally:
            if close_session:
                await session.close()

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None
