# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
BridgeListener — consumer-side end of the bridge.

A consumer application binds the listener once and then accepts host
connections for the rest of its life; the host side reconnects whenever the
player restarts.  Only one connection is served at a time, extra attempts
are turned away with close code 1013 and retried by the host.

Usage:
    listener = await BridgeListener.bind_default()
    while (connection := await listener.accept_next()) is not None:
        try:
            async for event in connection:
                handle(event)
        except DecodeError as e:
            log.warning("Bad frame, waiting for next connection: %s", e)
"""

import asyncio
import errno
import logging

import websockets
from websockets.exceptions import ConnectionClosed

from .codec import DecodeError, decode_event, encode_cadence
from .config import cfg
from .events import Event

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 19532

CLOSE_UNSUPPORTED_DATA = 1003
CLOSE_INVALID_PAYLOAD = 1007
CLOSE_TRY_AGAIN_LATER = 1013

_ADDRESS_IN_USE = {errno.EADDRINUSE, 10048}  # 10048: WSAEADDRINUSE


class AddressInUseError(OSError):
    """The listener port is taken, usually by another running instance."""


class Connection:
    """One accepted host connection, read as a finite sequence of Events."""

    def __init__(self, ws, done: asyncio.Event):
        self._ws = ws
        self._done = done
        self._finished = False
        self.remote_address = getattr(ws, "remote_address", None)

    @property
    def closed(self) -> bool:
        return self._finished

    def __aiter__(self):
        return self

    async def __anext__(self) -> Event:
        event = await self.next_event()
        if event is None:
            raise StopAsyncIteration
        return event

    async def next_event(self) -> Event | None:
        """Next decoded Event, or None once the peer has gone.

        Raises DecodeError for a malformed frame; the connection is closed
        and every later call returns None.
        """
        if self._finished:
            return None
        try:
            frame = await self._ws.recv()
        except ConnectionClosed as e:
            log.info("Host disconnected (%s)", e)
            self._finish()
            return None

        try:
            return decode_event(frame)
        except DecodeError as e:
            log.warning("Dropping connection after bad frame: %s", e)
            code = CLOSE_INVALID_PAYLOAD if isinstance(frame, str) else CLOSE_UNSUPPORTED_DATA
            await self.close(code, "bad frame")
            raise

    async def send_cadence(self, interval_ms: int) -> bool:
        """Ask the host for progress updates every *interval_ms*.  Best effort."""
        if self._finished:
            return False
        try:
            await self._ws.send(encode_cadence(interval_ms))
            log.info("Requested progress interval %d ms", interval_ms)
            return True
        except Exception as e:
            log.debug("Could not send cadence request: %s", e)
            return False

    async def close(self, code: int = 1000, reason: str = ""):
        if self._finished:
            return
        self._finish()
        try:
            await self._ws.close(code, reason)
        except Exception as e:
            log.debug("Error closing connection: %s", e)

    def _finish(self):
        self._finished = True
        self._done.set()


class BridgeListener:
    """Bound listener handing out one Connection at a time."""

    def __init__(self):
        self._server = None
        self._pending: asyncio.Queue[Connection | None] = asyncio.Queue()
        self._active: Connection | None = None
        self._closed = False

    # ── Binding ──

    @classmethod
    async def bind(cls, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> "BridgeListener":
        """Bind *host*:*port*.  Raises AddressInUseError if it is taken."""
        listener = cls()
        try:
            listener._server = await websockets.serve(
                listener._handle_ws, host, port, max_size=2 ** 20)
        except OSError as e:
            if e.errno in _ADDRESS_IN_USE:
                raise AddressInUseError(
                    e.errno, f"Address {host}:{port} is already in use") from e
            raise
        log.info("Bridge listener on ws://%s:%d", host, listener.port)
        return listener

    @classmethod
    async def bind_local(cls, port: int) -> "BridgeListener":
        return await cls.bind(DEFAULT_HOST, port)

    @classmethod
    async def bind_default(cls) -> "BridgeListener":
        """Bind the configured endpoint (127.0.0.1:19532 unless overridden)."""
        return await cls.bind(cfg("bridge", "host", default=DEFAULT_HOST),
                              cfg("bridge", "port", default=DEFAULT_PORT))

    @property
    def port(self) -> int:
        sock = next(iter(self._server.sockets))
        return sock.getsockname()[1]

    @property
    def closed(self) -> bool:
        return self._closed

    # ── Accepting ──

    async def _handle_ws(self, ws):
        peer = getattr(ws, "remote_address", None)
        if self._closed:
            await ws.close(1001, "listener closing")
            return
        if self._active is not None:
            log.warning("Rejecting connection from %s: already serving a host", peer)
            await ws.close(CLOSE_TRY_AGAIN_LATER, "busy")
            return

        done = asyncio.Event()
        connection = Connection(ws, done)
        self._active = connection
        log.info("Host connected: %s", peer)
        try:
            await self._pending.put(connection)
            # Returning would close the socket, so hold it until the
            # consumer has finished with the connection or the host is gone.
            # Frames that already arrived stay readable after a drop.
            finished = asyncio.ensure_future(done.wait())
            dropped = asyncio.ensure_future(ws.wait_closed())
            try:
                await asyncio.wait({finished, dropped}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                finished.cancel()
                dropped.cancel()
            if dropped.done() and not connection.closed:
                log.info("Host %s went away before the connection was read out", peer)
        finally:
            if self._active is connection:
                self._active = None

    async def accept_next(self) -> Connection | None:
        """Wait for the next host connection.  None once the listener is closed."""
        if self._closed:
            return None
        connection = await self._pending.get()
        if connection is None:
            # Leave the marker for any other waiter.
            self._pending.put_nowait(None)
        return connection

    def __aiter__(self):
        return self._connections()

    async def _connections(self):
        while (connection := await self.accept_next()) is not None:
            yield connection

    async def send_cadence(self, interval_ms: int) -> bool:
        """Forward a cadence request to the active connection, if any."""
        if self._active is None:
            return False
        return await self._active.send_cadence(interval_ms)

    # ── Shutdown ──

    async def close(self):
        """Stop listening; pending accept/read calls return end-of-sequence."""
        if self._closed:
            return
        self._closed = True

        if self._active is not None:
            await self._active.close(1001, "listener closing")
        while not self._pending.empty():
            connection = self._pending.get_nowait()
            if connection is not None:
                await connection.close(1001, "listener closing")
        self._pending.put_nowait(None)

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
        log.info("Bridge listener closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()
