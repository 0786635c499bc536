# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
BridgeClient — host-side end of the bridge.

Keeps one WebSocket connection to the consumer's listener and forwards
events over it.  The listener belongs to a local application that may start
after us or restart at any time, so the client reconnects forever with a
fixed delay:

    DISCONNECTED → CONNECTING → CONNECTED → DISCONNECTED → ...

On every (re)connect the last known track goes out first, so a late-joining
consumer always knows what is playing.  The consumer can send back a
SetProgressInterval message, which is applied to the CadenceConfig.

Usage:
    client = BridgeClient()
    client.start()
    await client.publish(TrackChanged(track))
    await client.stop()
"""

import asyncio
import enum
import logging
from dataclasses import replace

import websockets

from .codec import decode_cadence, encode_event
from .config import cfg
from .events import Event, StateChanged, Track, TrackChanged
from .ticker import CadenceConfig

log = logging.getLogger(__name__)

DEFAULT_PORT = 19532
DEFAULT_BACKOFF_MS = 1000


class ClientState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def default_url() -> str:
    host = cfg("bridge", "host", default="127.0.0.1")
    port = cfg("bridge", "port", default=DEFAULT_PORT)
    return f"ws://{host}:{port}"


async def _websocket_connect(url: str):
    return await websockets.connect(url, open_timeout=5, max_size=2 ** 20)


class BridgeClient:
    """Unified event sender with its own reconnect loop.

    *connect* is an async callable ``(url) -> connection``; the connection
    needs ``send(str)``, ``close()`` and async iteration over incoming frames.
    It defaults to a real WebSocket connection.
    """

    def __init__(self, url: str | None = None, *, backoff_ms: float | None = None,
                 cadence: CadenceConfig | None = None, connect=None,
                 on_state_change=None):
        self.url = url or default_url()
        if backoff_ms is None:
            backoff_ms = cfg("bridge", "backoff_ms", default=DEFAULT_BACKOFF_MS)
        self.backoff = backoff_ms / 1000
        self.cadence = cadence or CadenceConfig()
        self._connect = connect or _websocket_connect
        self._on_state_change = on_state_change

        self._state = ClientState.DISCONNECTED
        self._state_events = {state: asyncio.Event() for state in ClientState}
        self._state_events[self._state].set()
        self._ws = None
        self._send_lock = asyncio.Lock()
        self._last_track: Track | None = None
        self._running = False
        self._task: asyncio.Task | None = None

    # ── State ──

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ClientState.CONNECTED

    @property
    def last_track(self) -> Track | None:
        return self._last_track

    def _set_state(self, state: ClientState):
        if state is self._state:
            return
        log.debug("Bridge client %s -> %s", self._state.value, state.value)
        self._state_events[self._state].clear()
        self._state = state
        self._state_events[state].set()
        if self._on_state_change:
            self._on_state_change(state)

    async def wait_for_state(self, state: ClientState):
        """Suspend until the client enters (or is already in) *state*."""
        await self._state_events[state].wait()

    # ── Lifecycle ──

    def start(self):
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        log.info("Bridge client started -> %s", self.url)

    async def stop(self):
        """Close the connection without reconnecting."""
        self._running = False

        ws = self._ws
        if ws is not None:
            await self._close_quietly(ws)

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._ws = None
        self._set_state(ClientState.DISCONNECTED)
        log.info("Bridge client stopped")

    async def _run(self):
        while self._running:
            self._set_state(ClientState.CONNECTING)
            try:
                ws = await self._connect(self.url)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.debug("Listener not reachable at %s: %s", self.url, e)
                self._set_state(ClientState.DISCONNECTED)
                await asyncio.sleep(self.backoff)
                continue

            try:
                await self._on_connected(ws)
                async for message in ws:
                    self._handle_control(message)
                log.info("Listener closed the connection")
            except asyncio.CancelledError:
                self._ws = None
                await asyncio.shield(self._close_quietly(ws))
                raise
            except Exception as e:
                log.warning("Bridge connection lost (%s)", e)
            finally:
                self._ws = None

            await self._close_quietly(ws)
            self._set_state(ClientState.DISCONNECTED)
            if self._running:
                log.info("Reconnecting to %s in %.1fs", self.url, self.backoff)
                await asyncio.sleep(self.backoff)

    async def _on_connected(self, ws):
        # Holding the send lock keeps publish() from slipping an event in
        # ahead of the resent track.
        async with self._send_lock:
            self._ws = ws
            if self._last_track is not None:
                await ws.send(encode_event(TrackChanged(self._last_track)))
            self._set_state(ClientState.CONNECTED)
        log.info("Connected to listener at %s", self.url)

    @staticmethod
    async def _close_quietly(ws):
        try:
            await ws.close()
        except Exception as e:
            log.debug("Error closing bridge connection: %s", e)

    # ── Outbound ──

    def _remember(self, event: Event):
        if isinstance(event, TrackChanged):
            self._last_track = event.track
        elif isinstance(event, StateChanged) and self._last_track is not None:
            self._last_track = replace(self._last_track, state=event.state)

    async def publish(self, event: Event) -> bool:
        """Send *event* if connected.  Returns True when it went out.

        A failed send drops the connection; the run loop reconnects.
        """
        self._remember(event)
        if not self.connected:
            log.debug("Not connected, dropping %s", type(event).__name__)
            return False

        async with self._send_lock:
            ws = self._ws
            if ws is None or not self.connected:
                return False
            try:
                await ws.send(encode_event(event))
                return True
            except Exception as e:
                log.warning("Send failed (%s), dropping connection", e)
                self._set_state(ClientState.DISCONNECTED)
                await self._close_quietly(ws)
                return False

    # ── Inbound ──

    def _handle_control(self, message):
        interval = decode_cadence(message)
        if interval is None:
            log.debug("Ignoring control message: %.64r", message)
            return
        self.cadence.set_progress_interval(interval)
