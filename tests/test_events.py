import unittest

from nowplaying_bridge.lib.events import (
    PlaybackState,
    ProgressChanged,
    StateChanged,
    Track,
    TrackChanged,
)


class PlaybackStateTests(unittest.TestCase):
    def test_from_code_maps_known_codes(self) -> None:
        self.assertIs(PlaybackState.from_code(2), PlaybackState.PLAYING)
        self.assertIs(PlaybackState.from_code(1), PlaybackState.PAUSED)
        self.assertIs(PlaybackState.from_code(0), PlaybackState.STOPPED)

    def test_from_code_falls_back_to_stopped(self) -> None:
        for code in (7, -1, None, "abc"):
            self.assertIs(PlaybackState.from_code(code), PlaybackState.STOPPED)

    def test_from_code_accepts_numeric_strings(self) -> None:
        self.assertIs(PlaybackState.from_code("2"), PlaybackState.PLAYING)

    def test_str_is_display_name(self) -> None:
        self.assertEqual(str(PlaybackState.PLAYING), "Playing")
        self.assertEqual(str(PlaybackState.PAUSED), "Paused")
        self.assertEqual(str(PlaybackState.STOPPED), "Stopped")
        self.assertEqual(f"{PlaybackState.PAUSED}", "Paused")


class TrackTests(unittest.TestCase):
    def test_same_track_compares_uid_only(self) -> None:
        a = Track(uid="a", title="One", state=PlaybackState.PLAYING)
        also_a = Track(uid="a", title="Renamed", state=PlaybackState.PAUSED)
        b = Track(uid="b", title="One", state=PlaybackState.PLAYING)

        self.assertTrue(a.same_track(also_a))
        self.assertFalse(a.same_track(b))
        self.assertFalse(a.same_track(None))

    def test_defaults(self) -> None:
        track = Track(uid="a")
        self.assertIs(track.state, PlaybackState.STOPPED)
        self.assertIsNone(track.cover_url)
        self.assertIsNone(track.background_url)
        self.assertIsNone(track.duration)

    def test_events_compare_by_value(self) -> None:
        self.assertEqual(TrackChanged(Track(uid="a")), TrackChanged(Track(uid="a")))
        self.assertEqual(StateChanged(PlaybackState.PAUSED), StateChanged(PlaybackState.PAUSED))
        self.assertNotEqual(ProgressChanged(0.1), ProgressChanged(0.2))


if __name__ == "__main__":
    unittest.main()
