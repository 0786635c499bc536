import unittest

from nowplaying_bridge.lib.detector import (
    ChangeDetector,
    Snapshot,
    build_candidate,
    diff,
    progress_fraction,
)
from nowplaying_bridge.lib.events import (
    PlaybackState,
    ProgressChanged,
    StateChanged,
    Track,
    TrackChanged,
)


def _raw(uid: str, *, playing: bool = True, paused: bool = False, title: str = "Title",
         progress: float = 0.5, artist_uri: str | None = "spotify:artist:abc",
         image: str | None = "spotify:image:cafe") -> dict:
    return {
        "track": {
            "uid": uid,
            "uri": f"spotify:track:{uid}",
            "metadata": {
                "title": title,
                "album_title": "Album",
                "artist_name": "Artist",
                "artist_uri": artist_uri,
                "image_xlarge_url": image,
                "duration": "200000",
            },
        },
        "is_playing": playing,
        "is_paused": paused,
        "progress": progress,
    }


class _FakeLookup:
    def __init__(self, result: str | None = "https://bg/1", error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[str | None] = []

    async def lookup(self, artist_uri: str | None) -> str | None:
        self.calls.append(artist_uri)
        if self.error:
            raise self.error
        return self.result


class BuildCandidateTests(unittest.TestCase):
    def test_builds_track_from_raw_snapshot(self) -> None:
        track = build_candidate(_raw("a", title="X"))
        self.assertEqual(track.uid, "a")
        self.assertEqual(track.uri, "spotify:track:a")
        self.assertEqual(track.title, "X")
        self.assertEqual(track.album, "Album")
        self.assertEqual(track.artist, "Artist")
        self.assertEqual(track.duration, 200000)
        self.assertEqual(track.cover_url, "https://i.scdn.co/image/cafe")
        self.assertIs(track.state, PlaybackState.PLAYING)

    def test_states(self) -> None:
        self.assertIs(build_candidate(_raw("a", paused=True)).state, PlaybackState.PAUSED)
        self.assertIs(build_candidate(_raw("a", playing=False)).state, PlaybackState.STOPPED)

    def test_local_file_has_no_cover(self) -> None:
        track = build_candidate(_raw("a", image="spotify:localfileimage:/music/a.mp3"))
        self.assertIsNone(track.cover_url)

    def test_snapshots_without_metadata_are_ignored(self) -> None:
        for raw in (None, {}, {"track": None}, {"track": {"uid": "a"}},
                    {"track": {"uid": "", "metadata": {}}}, "not a dict"):
            with self.subTest(raw=raw):
                self.assertIsNone(build_candidate(raw))


class ProgressFractionTests(unittest.TestCase):
    def test_explicit_progress_is_clamped(self) -> None:
        self.assertEqual(progress_fraction({"progress": 0.25}), 0.25)
        self.assertEqual(progress_fraction({"progress": 1.5}), 1.0)
        self.assertEqual(progress_fraction({"progress": -1}), 0.0)

    def test_position_over_duration(self) -> None:
        self.assertEqual(progress_fraction({"position": 50000, "duration": 200000}), 0.25)

    def test_falls_back_to_metadata_duration(self) -> None:
        raw = _raw("a")
        del raw["progress"]
        raw["position"] = 100000
        self.assertEqual(progress_fraction(raw), 0.5)

    def test_unknown_progress_is_zero(self) -> None:
        self.assertEqual(progress_fraction(None), 0.0)
        self.assertEqual(progress_fraction({"position": 10, "duration": 0}), 0.0)
        self.assertEqual(progress_fraction({"progress": "soon"}), 0.0)

    def test_non_finite_progress_is_zero(self) -> None:
        self.assertEqual(progress_fraction({"progress": "nan"}), 0.0)
        self.assertEqual(progress_fraction({"progress": float("inf")}), 0.0)
        self.assertEqual(progress_fraction({"position": float("nan"), "duration": 1000}), 0.0)
        self.assertEqual(progress_fraction({"position": 10, "duration": float("inf")}), 0.0)


class DiffTests(unittest.TestCase):
    def test_first_candidate_is_a_track_change(self) -> None:
        track = Track(uid="a", state=PlaybackState.PLAYING)
        snapshot, events = diff(None, track)
        self.assertEqual(events, [TrackChanged(track)])
        self.assertEqual(snapshot, Snapshot(track, PlaybackState.PLAYING))

    def test_new_uid_subsumes_state_change(self) -> None:
        previous = Snapshot(Track(uid="a", state=PlaybackState.PLAYING), PlaybackState.PLAYING)
        candidate = Track(uid="b", state=PlaybackState.PAUSED)
        snapshot, events = diff(previous, candidate, 0.3)
        self.assertEqual(events, [TrackChanged(candidate)])
        self.assertIs(snapshot.state, PlaybackState.PAUSED)

    def test_resume_emits_state_only(self) -> None:
        previous = Snapshot(Track(uid="a", state=PlaybackState.PAUSED), PlaybackState.PAUSED)
        snapshot, events = diff(previous, Track(uid="a", state=PlaybackState.PLAYING), 0.3)
        self.assertEqual(events, [StateChanged(PlaybackState.PLAYING)])
        self.assertIs(snapshot.track.state, PlaybackState.PLAYING)

    def test_duplicate_keeps_previous_snapshot(self) -> None:
        previous = Snapshot(Track(uid="a", title="X", state=PlaybackState.PLAYING), PlaybackState.PLAYING)
        snapshot, events = diff(previous, Track(uid="a", title="Y", state=PlaybackState.PLAYING))
        self.assertEqual(events, [])
        self.assertIs(snapshot, previous)


class ChangeDetectorTests(unittest.IsolatedAsyncioTestCase):
    async def test_repeated_snapshots_emit_nothing_after_first(self) -> None:
        detector = ChangeDetector()
        first = await detector.feed(_raw("a"))
        self.assertEqual(len(first), 1)
        for _ in range(5):
            self.assertEqual(await detector.feed(_raw("a", progress=0.9)), [])

    async def test_metadata_changes_without_uid_change_are_ignored(self) -> None:
        detector = ChangeDetector()
        await detector.feed(_raw("a", title="X"))
        self.assertEqual(await detector.feed(_raw("a", title="Other", image=None)), [])

    async def test_uid_change_emits_single_track_changed(self) -> None:
        detector = ChangeDetector()
        await detector.feed(_raw("a"))
        events = await detector.feed(_raw("b", paused=True))
        self.assertEqual(len(events), 1)
        self.assertIsInstance(events[0], TrackChanged)
        self.assertEqual(events[0].track.uid, "b")
        self.assertIs(events[0].track.state, PlaybackState.PAUSED)

    async def test_pause_emits_state_then_progress(self) -> None:
        detector = ChangeDetector()
        await detector.feed(_raw("a"))
        events = await detector.feed(_raw("a", paused=True, progress=0.4))
        self.assertEqual(events, [StateChanged(PlaybackState.PAUSED), ProgressChanged(0.4)])
        self.assertIs(detector.state, PlaybackState.PAUSED)

    async def test_example_stream(self) -> None:
        detector = ChangeDetector()
        stream = [
            _raw("a", title="X"),
            _raw("a", paused=True, progress=0.6),
            _raw("b", title="Y"),
        ]
        events = []
        for raw in stream:
            events.extend(await detector.feed(raw))

        self.assertEqual(len(events), 4)
        self.assertEqual((events[0].track.uid, events[0].track.title), ("a", "X"))
        self.assertEqual(events[1], StateChanged(PlaybackState.PAUSED))
        self.assertEqual(events[2], ProgressChanged(0.6))
        self.assertEqual((events[3].track.uid, events[3].track.title), ("b", "Y"))

    async def test_empty_snapshot_does_not_disturb_state(self) -> None:
        detector = ChangeDetector()
        await detector.feed(_raw("a"))
        self.assertEqual(await detector.feed({"track": None}), [])
        self.assertEqual(detector.track.uid, "a")

    async def test_background_is_looked_up_once_per_track(self) -> None:
        lookup = _FakeLookup()
        detector = ChangeDetector(lookup)
        events = await detector.feed(_raw("a"))
        await detector.feed(_raw("a", paused=True))
        await detector.feed(_raw("a"))

        self.assertEqual(events[0].track.background_url, "https://bg/1")
        self.assertEqual(lookup.calls, ["spotify:artist:abc"])

    async def test_background_failure_resolves_to_absent(self) -> None:
        detector = ChangeDetector(_FakeLookup(error=RuntimeError("boom")))
        events = await detector.feed(_raw("a"))
        self.assertEqual(len(events), 1)
        self.assertIsNone(events[0].track.background_url)

    async def test_reset_forgets_snapshot(self) -> None:
        detector = ChangeDetector()
        await detector.feed(_raw("a"))
        detector.reset()
        self.assertIsNone(detector.track)
        self.assertIs(detector.state, PlaybackState.STOPPED)
        self.assertEqual(len(await detector.feed(_raw("a"))), 1)


if __name__ == "__main__":
    unittest.main()
