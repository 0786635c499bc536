"""Systemd notify support for the host bridge service.

Sends READY/WATCHDOG/STATUS/STOPPING to the systemd notify socket.  Silently
no-ops when NOTIFY_SOCKET is unset (macOS / dev mode / tests).

Usage:
    from nowplaying_bridge.lib.watchdog import sd_notify, watchdog_loop
    asyncio.create_task(watchdog_loop(alive=lambda: not monitor.done()))
    sd_notify("STATUS=Connected to listener")
"""

import asyncio
import logging
import os
import socket

logger = logging.getLogger(__name__)


def _notify_address() -> str | None:
    addr = os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return None
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    return addr


def sd_notify(msg: str) -> bool:
    """Send a notification message to the systemd notify socket.

    Returns False when there is no socket to talk to or the send failed.
    """
    addr = _notify_address()
    if not addr:
        return False
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
        return True
    except OSError as e:
        logger.debug("sd_notify(%s) failed: %s", msg.split("=", 1)[0], e)
        return False
    finally:
        sock.close()


async def watchdog_loop(interval: float = 20, alive=None):
    """Send READY=1 once, then WATCHDOG=1 every *interval* seconds.

    *alive* is an optional ``() -> bool``; when it turns False the heartbeat
    stops so systemd restarts the service.
    """
    sd_notify("READY=1")
    logger.info("Watchdog started (interval=%ss)", interval)
    while alive is None or alive():
        sd_notify("WATCHDOG=1")
        await asyncio.sleep(interval)
    logger.error("Player monitor is no longer running — stopping watchdog heartbeat")
