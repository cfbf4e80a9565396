from __future__ import annotations

import http.client
import json
from pathlib import Path
import tempfile
import unittest
import urllib.error

from rs_scene_switcher.errors import TelemetryDecodeError, TelemetryFetchError
from rs_scene_switcher.telemetry import ReplaySource, SnifferClient, decode_reading


def _payload(stage: str = "las_game", timer: float = 12.5) -> dict[str, object]:
    return {
        "MemoryReadout": {
            "SongId": "CherubRock",
            "ArrangementId": "ARR1",
            "GameStage": stage,
            "SongTimer": timer,
            "NoteData": {
                "Accuracy": 83.3,
                "TotalNotes": 18,
                "TotalNotesHit": 15,
                "TotalNotesMissed": 3,
                "CurrentHitStreak": 4,
                "CurrentMissStreak": 0,
                "HighestHitStreak": 9,
            },
        },
        "SongDetails": {
            "SongName": "Cherub Rock",
            "ArtistName": "The Smashing Pumpkins",
            "AlbumName": "Siamese Dream",
            "AlbumYear": 1993,
            "SongLength": 298.4,
            "Arrangements": [
                {
                    "ArrangementID": "ARR1",
                    "Name": "Lead",
                    "type": "Lead",
                    "Tuning": {"TuningName": "Eb Standard"},
                    "Sections": [
                        {"Name": "Intro", "StartTime": 0.0, "EndTime": 14.2},
                        {"Name": "SoloRiff", "StartTime": 14.2, "EndTime": 40.0},
                    ],
                }
            ],
        },
    }


class DecodeReadingTests(unittest.TestCase):
    def test_full_payload(self) -> None:
        reading = decode_reading(json.dumps(_payload()).encode("utf-8"))
        snap = reading.snapshot
        self.assertEqual(snap.song_id, "CherubRock")
        self.assertEqual(snap.game_stage_tag, "las_game")
        self.assertAlmostEqual(snap.song_timer, 12.5)
        self.assertEqual(snap.note_stats.total_notes_hit, 15)
        self.assertEqual(snap.note_stats.highest_hit_streak, 9)

        details = reading.song_details
        self.assertIsNotNone(details)
        assert details is not None
        self.assertEqual(details.album_year, 1993)
        arrangement = details.arrangements[0]
        self.assertEqual(arrangement.tuning_name, "Eb Standard")
        self.assertEqual([s.name for s in arrangement.sections], ["Intro", "SoloRiff"])
        self.assertEqual(reading.summary()["arrangements"], ["ARR1"])

    def test_optional_parts_default(self) -> None:
        payload = {"MemoryReadout": {"SongId": "", "ArrangementId": "", "GameStage": "MainMenu"}}
        reading = decode_reading(payload)
        self.assertEqual(reading.snapshot.song_timer, 0.0)
        self.assertEqual(reading.snapshot.note_stats.total_notes, 0)
        self.assertIsNone(reading.song_details)

    def test_missing_required_field_is_named(self) -> None:
        payload = _payload()
        del payload["MemoryReadout"]["GameStage"]  # type: ignore[attr-defined]
        with self.assertRaises(TelemetryDecodeError) as ctx:
            decode_reading(payload)
        self.assertIn("GameStage", str(ctx.exception))

    def test_missing_readout(self) -> None:
        with self.assertRaises(TelemetryDecodeError) as ctx:
            decode_reading(b'{"SongDetails": {}}')
        self.assertIn("MemoryReadout", str(ctx.exception))

    def test_bad_json_and_bad_types(self) -> None:
        with self.assertRaises(TelemetryDecodeError):
            decode_reading(b"{not json")
        with self.assertRaises(TelemetryDecodeError):
            decode_reading(b"[1, 2, 3]")

        payload = _payload()
        payload["MemoryReadout"]["SongTimer"] = "soon"  # type: ignore[index]
        with self.assertRaises(TelemetryDecodeError):
            decode_reading(payload)

        payload = _payload()
        payload["SongDetails"] = ["not", "an", "object"]
        with self.assertRaises(TelemetryDecodeError):
            decode_reading(payload)

    def test_non_finite_numbers_are_decode_errors(self) -> None:
        readout = '"SongId": "S", "ArrangementId": "A", "GameStage": "las_game"'
        rows = [
            '{"MemoryReadout": {' + readout + ', "NoteData": {"TotalNotes": 1e400}}}',
            '{"MemoryReadout": {' + readout + ', "SongTimer": NaN}}',
            '{"MemoryReadout": {' + readout + '}, "SongDetails": {"SongLength": Infinity}}',
            '{"MemoryReadout": {' + readout + '}, "SongDetails": {"AlbumYear": -Infinity}}',
        ]
        for raw in rows:
            with self.subTest(raw=raw):
                with self.assertRaises(TelemetryDecodeError):
                    decode_reading(raw.encode("utf-8"))

    def test_decode_error_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            decode_reading("")


class SnifferClientTests(unittest.TestCase):
    def test_fetch_uses_configured_endpoint(self) -> None:
        seen: list[tuple[str, float]] = []

        def fake_fetch(url: str, timeout_s: float) -> bytes:
            seen.append((url, timeout_s))
            return b"{}"

        client = SnifferClient(host="10.0.0.5", port=9938, timeout_seconds=1.5, fetch_bytes=fake_fetch)
        self.assertEqual(client.fetch(), b"{}")
        self.assertEqual(seen, [("http://10.0.0.5:9938/", 1.5)])

    def test_transport_errors_become_fetch_errors(self) -> None:
        def refused(url: str, timeout_s: float) -> bytes:
            raise urllib.error.URLError("connection refused")

        def server_error(url: str, timeout_s: float) -> bytes:
            raise urllib.error.HTTPError(url, 503, "unavailable", None, None)  # type: ignore[arg-type]

        def timed_out(url: str, timeout_s: float) -> bytes:
            raise TimeoutError("timed out")

        def truncated(url: str, timeout_s: float) -> bytes:
            raise http.client.IncompleteRead(b"{\"MemoryRead")

        def garbled(url: str, timeout_s: float) -> bytes:
            raise http.client.BadStatusLine("RSNIFF 0.1")

        for fetch in [refused, server_error, timed_out, truncated, garbled]:
            with self.subTest(fetch=fetch.__name__):
                client = SnifferClient(host="127.0.0.1", port=9938, fetch_bytes=fetch)
                with self.assertRaises(TelemetryFetchError):
                    client.fetch()


class ReplaySourceTests(unittest.TestCase):
    def test_replays_lines_then_exhausts(self) -> None:
        with tempfile.TemporaryDirectory(prefix="rs-switcher-replay-") as td:
            path = Path(td) / "recording.jsonl"
            rows = [json.dumps(_payload(timer=1.0)), "", json.dumps(_payload(timer=2.0))]
            path.write_text("\n".join(rows) + "\n", encoding="utf-8")

            source = ReplaySource(path)
            self.assertEqual(source.remaining, 2)
            self.assertAlmostEqual(decode_reading(source.fetch()).snapshot.song_timer, 1.0)
            self.assertAlmostEqual(decode_reading(source.fetch()).snapshot.song_timer, 2.0)
            self.assertEqual(source.remaining, 0)
            with self.assertRaises(TelemetryFetchError):
                source.fetch()


if __name__ == "__main__":
    unittest.main()
