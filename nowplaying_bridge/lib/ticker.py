# Now-Playing Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Progress ticker — periodic ProgressChanged while the player is playing.

The interval lives in a CadenceConfig that the bridge client updates when
the consumer asks for a different rate.  The ticker re-reads it before every
sleep, so a change applies from the next tick on.
"""

import asyncio
import logging
import math
import threading

from .config import cfg
from .events import ProgressChanged

log = logging.getLogger(__name__)

DEFAULT_PROGRESS_INTERVAL_MS = 1000
MIN_PROGRESS_INTERVAL_MS = 50


class CadenceConfig:
    """Progress interval in milliseconds, safe to read from any thread."""

    def __init__(self, progress_interval_ms: int | None = None):
        if progress_interval_ms is None:
            progress_interval_ms = cfg("bridge", "progress_interval_ms",
                                       default=DEFAULT_PROGRESS_INTERVAL_MS)
        self._lock = threading.Lock()
        self._interval_ms = max(int(progress_interval_ms), MIN_PROGRESS_INTERVAL_MS)

    @property
    def progress_interval_ms(self) -> int:
        with self._lock:
            return self._interval_ms

    def set_progress_interval(self, interval_ms: int) -> int:
        """Apply a requested interval (clamped to the minimum); returns it."""
        interval_ms = max(int(interval_ms), MIN_PROGRESS_INTERVAL_MS)
        with self._lock:
            self._interval_ms = interval_ms
        log.info("Progress interval set to %d ms", interval_ms)
        return interval_ms


class ProgressTicker:
    """Emit ProgressChanged every cadence interval while *is_active()* holds.

    is_active  — () -> bool, playing and connected
    progress   — async () -> float, current position fraction
    emit       — async (event) -> None
    """

    def __init__(self, cadence: CadenceConfig, *, is_active, progress, emit):
        self.cadence = cadence
        self._is_active = is_active
        self._progress = progress
        self._emit = emit
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self):
        log.info("Progress ticker started (%d ms)", self.cadence.progress_interval_ms)
        while True:
            await asyncio.sleep(self.cadence.progress_interval_ms / 1000)
            await self.tick()

    async def tick(self) -> bool:
        """One firing.  Returns True when an event was emitted."""
        if not self._is_active():
            return False
        try:
            fraction = await self._progress()
            fraction = float(fraction)
            if not math.isfinite(fraction):
                raise ValueError(f"non-finite progress {fraction!r}")
            fraction = min(max(fraction, 0.0), 1.0)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.debug("Progress unavailable, skipping tick: %s", e)
            return False
        await self._emit(ProgressChanged(fraction))
        return True
