# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
HostPlayer — shared plumbing for host player adapters.

A host player watches a playback device and reports raw snapshots (see
nowplaying_bridge.lib.detector for the dict layout) to a handler.  It does
not decide what changed; that is the detector's job.

Subclass contract:

    class MyPlayer(HostPlayer):
        id   = "myplayer"
        name = "My Player"

        async def monitor(self, handler): ...   # call `await handler(raw)` per update

Built-in (no override needed):
    snapshot()   — last raw snapshot seen
    progress()   — position fraction of the last snapshot
    start()/stop() — HTTP session lifecycle, on_start()/on_stop() hooks
"""

import asyncio
import logging

import aiohttp

from ..lib.detector import progress_fraction

log = logging.getLogger(__name__)


class HostPlayer:
    # ── Subclass must set these ──
    id: str = ""
    name: str = ""

    def __init__(self):
        self.running: bool = False
        self._http_session: aiohttp.ClientSession | None = None
        self._last_raw: dict | None = None

    async def snapshot(self) -> dict | None:
        return self._last_raw

    async def progress(self) -> float:
        return progress_fraction(self._last_raw)

    async def monitor(self, handler):
        """Report raw snapshots to *handler* until stopped."""
        raise NotImplementedError

    async def _report(self, handler, raw: dict | None):
        self._last_raw = raw
        try:
            await handler(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("%s: snapshot handler failed: %s", self.name or self.id, e)

    async def start(self):
        self.running = True
        self._http_session = aiohttp.ClientSession()
        await self.on_start()

    async def stop(self):
        self.running = False
        await self.on_stop()
        if self._http_session:
            await self._http_session.close()
            self._http_session = None

    # ── Subclass hooks ──

    async def on_start(self):
        """Called after the HTTP session is up."""

    async def on_stop(self):
        """Called during shutdown (before the session closes)."""


class PushPlayer(HostPlayer):
    """For hosts that call us: every ``push(raw)`` goes straight to the handler."""

    id = "push"
    name = "Push"

    def __init__(self):
        super().__init__()
        self._handler = None
        self._stopped = asyncio.Event()

    async def monitor(self, handler):
        self._handler = handler
        if self._last_raw is not None:
            await self._report(handler, self._last_raw)
        await self._stopped.wait()

    async def push(self, raw: dict | None):
        if self._handler is None:
            self._last_raw = raw
            log.debug("No handler yet, keeping snapshot for later")
            return
        await self._report(self._handler, raw)

    async def on_stop(self):
        self._stopped.set()
