#!/usr/bin/env python3
# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Now-Playing Bridge host service (nowplaying-bridge-host)

Watches the configured player, turns its updates into bridge events and
pushes them to whichever consumer application is listening on the loopback
port (19532 by default):

    player ──raw──▶ ChangeDetector ──events──▶ BridgeClient ──ws──▶ listener
                                    ProgressTicker ──┘   ▲
                                                         └── SetProgressInterval

Run:  python -m nowplaying_bridge.host
"""

import asyncio
import logging
import signal

from .lib.client import BridgeClient, ClientState
from .lib.detector import ChangeDetector
from .lib.enrichment import BackgroundLookup
from .lib.events import PlaybackState
from .lib.ticker import CadenceConfig, ProgressTicker
from .lib.watchdog import sd_notify, watchdog_loop
from .players import HostPlayer, create_player

logger = logging.getLogger(__name__)


class HostBridge:
    """Owns the detector, client and ticker for one host player."""

    def __init__(self, player: HostPlayer, *, client: BridgeClient | None = None,
                 detector: ChangeDetector | None = None):
        self.player = player
        self.detector = detector or ChangeDetector(BackgroundLookup())
        self.client = client or BridgeClient(cadence=CadenceConfig(),
                                             on_state_change=self._report_state)
        self.ticker = ProgressTicker(
            self.client.cadence,
            is_active=self._ticking,
            progress=player.progress,
            emit=self.client.publish,
        )
        self._monitor_task: asyncio.Task | None = None
        self._watchdog_task: asyncio.Task | None = None

    def _ticking(self) -> bool:
        return self.detector.state is PlaybackState.PLAYING and self.client.connected

    @staticmethod
    def _report_state(state: ClientState):
        sd_notify(f"STATUS=Listener {state.value}")

    async def on_player_update(self, raw: dict | None):
        """Single entry point for player updates, polled or pushed."""
        for event in await self.detector.feed(raw):
            await self.client.publish(event)

    def _monitor_alive(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    async def start(self):
        await self.player.start()
        self.client.start()
        self.ticker.start()
        self._monitor_task = asyncio.create_task(self.player.monitor(self.on_player_update))
        self._watchdog_task = asyncio.create_task(watchdog_loop(alive=self._monitor_alive))
        logger.info("Host bridge running for player %s", self.player.name or self.player.id)

    async def run(self):
        """Convenience entry-point: start + wait for signal + shutdown."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self):
        sd_notify("STOPPING=1")
        await self.ticker.stop()

        for task in (self._watchdog_task, self._monitor_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._watchdog_task = None
        self._monitor_task = None

        await self.client.stop()
        await self.player.stop()
        if self.detector.background is not None:
            await self.detector.background.close()
        logger.info("Host bridge stopped")


async def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logging.getLogger("websockets").setLevel(logging.WARNING)

    bridge = HostBridge(create_player())
    await bridge.run()


if __name__ == "__main__":
    asyncio.run(main())
