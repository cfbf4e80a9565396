from __future__ import annotations

import unittest

from rs_scene_switcher.models import NoteStats
from rs_scene_switcher.stats import SessionStats, accumulate_note_stats, note_deltas


class StatsAggregatorTests(unittest.TestCase):
    def test_first_reading_uses_absolute_values(self) -> None:
        first = NoteStats(total_notes=12, total_notes_hit=10, total_notes_missed=2)
        second = NoteStats(total_notes=18, total_notes_hit=15, total_notes_missed=3)

        stats = accumulate_note_stats(SessionStats(), None, first)
        stats = accumulate_note_stats(stats, first, second)

        self.assertEqual(stats.total_notes_hit, 15)
        self.assertEqual(stats.total_notes_missed, 3)
        self.assertEqual(stats.total_notes, 18)
        self.assertAlmostEqual(stats.accuracy, 100.0 * 15 / 18)

    def test_counter_reset_counts_as_restart(self) -> None:
        previous = NoteStats(total_notes=55, total_notes_hit=50, total_notes_missed=5)
        current = NoteStats(total_notes=4, total_notes_hit=3, total_notes_missed=1)
        self.assertEqual(note_deltas(previous, current), (3, 1, 4))

    def test_accuracy_without_notes_is_zero(self) -> None:
        stats = accumulate_note_stats(SessionStats(), None, NoteStats())
        self.assertEqual(stats.total_notes, 0)
        self.assertEqual(stats.accuracy, 0.0)
        self.assertEqual(stats.to_variables()["AccuracySinceLaunch"], 0.0)

    def test_highest_streak_is_session_maximum(self) -> None:
        stats = accumulate_note_stats(SessionStats(), None, NoteStats(highest_hit_streak=40))
        stats = accumulate_note_stats(stats, None, NoteStats(highest_hit_streak=12))
        self.assertEqual(stats.highest_hit_streak, 40)


if __name__ == "__main__":
    unittest.main()
