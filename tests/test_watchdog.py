import asyncio
import os
import socket
import tempfile
import unittest
from unittest import mock

from nowplaying_bridge.lib.watchdog import sd_notify, watchdog_loop


class SdNotifyTests(unittest.TestCase):
    def test_without_socket_is_a_no_op(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertFalse(sd_notify("READY=1"))

    def test_sends_datagram(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "notify")
            receiver = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
            receiver.bind(path)
            try:
                with mock.patch.dict(os.environ, {"NOTIFY_SOCKET": path}):
                    self.assertTrue(sd_notify("STATUS=Listener connected"))
                receiver.settimeout(1)
                self.assertEqual(receiver.recv(64), b"STATUS=Listener connected")
            finally:
                receiver.close()

    def test_unreachable_socket_returns_false(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch.dict(os.environ, {"NOTIFY_SOCKET": os.path.join(tmp, "gone")}):
                self.assertFalse(sd_notify("WATCHDOG=1"))


class WatchdogLoopTests(unittest.IsolatedAsyncioTestCase):
    async def test_heartbeat_stops_when_monitor_dies(self) -> None:
        beats = []
        alive = iter([True, True, False])

        with mock.patch("nowplaying_bridge.lib.watchdog.sd_notify", side_effect=beats.append):
            with self.assertLogs("nowplaying_bridge.lib.watchdog", level="ERROR"):
                await asyncio.wait_for(watchdog_loop(interval=0.01, alive=lambda: next(alive)), 2)

        self.assertEqual(beats, ["READY=1", "WATCHDOG=1", "WATCHDOG=1"])


if __name__ == "__main__":
    unittest.main()
