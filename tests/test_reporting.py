from __future__ import annotations

import json
from pathlib import Path
import tempfile
import unittest

from rs_scene_switcher.reporting import EventLog, JsonFileSink, read_json, write_json_atomic


class EventLogTests(unittest.TestCase):
    def test_append_and_read(self) -> None:
        with tempfile.TemporaryDirectory(prefix="rs-switcher-events-") as td:
            log = EventLog(Path(td) / "events" / "switcher_events.jsonl")
            self.assertEqual(log.read(), [])
            log.append(phase="telemetry", event_type="fetch_failed", severity="warning", payload={"error": "x"})
            log.append(phase="session", event_type="session_reset", severity="error", payload={"error": "y"})
            with log.path.open("a", encoding="utf-8") as fh:
                fh.write("not json\n")

            rows = log.read()
            self.assertEqual([row["event_type"] for row in rows], ["fetch_failed", "session_reset"])
            self.assertEqual(rows[1]["severity"], "error")
            self.assertIn("ts", rows[0])


class JsonFileSinkTests(unittest.TestCase):
    def test_merges_and_skips_unchanged(self) -> None:
        with tempfile.TemporaryDirectory(prefix="rs-switcher-vars-") as td:
            path = Path(td) / "live" / "variables.json"
            sink = JsonFileSink(path)

            sink.publish({"SongName": "Cherub Rock", "GameStage": "InSong"})
            sink.publish({"Accuracy": 91.5})
            payload = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(
                payload["variables"],
                {"SongName": "Cherub Rock", "GameStage": "InSong", "Accuracy": 91.5},
            )

            path.unlink()
            sink.publish({"GameStage": "InSong"})
            self.assertFalse(path.exists())

            sink.publish({"GameStage": "Menu"})
            self.assertEqual(read_json(path)["variables"]["GameStage"], "Menu")

    def test_read_json_tolerates_garbage(self) -> None:
        with tempfile.TemporaryDirectory(prefix="rs-switcher-json-") as td:
            path = Path(td) / "status.json"
            self.assertEqual(read_json(path), {})
            path.write_text("[1, 2]", encoding="utf-8")
            self.assertEqual(read_json(path), {})
            write_json_atomic(path, {"ok": True})
            self.assertEqual(read_json(path), {"ok": True})


if __name__ == "__main__":
    unittest.main()
