from __future__ import annotations

import unittest

from rs_scene_switcher.pause import evaluate_pause


class PauseDetectorTests(unittest.TestCase):
    def _run(self, timers: list[float], *, song_length: float = 200.0, debounce: int = 3) -> list[tuple[bool, int, str]]:
        out: list[tuple[bool, int, str]] = []
        last: float | None = None
        count = 0
        for timer in timers:
            paused, count, reason = evaluate_pause(
                song_timer=timer,
                last_song_timer=last,
                song_length=song_length,
                same_timer_count=count,
                debounce_cycles=debounce,
            )
            out.append((paused, count, reason))
            last = timer
        return out

    def test_increasing_timer_never_pauses(self) -> None:
        rows = self._run([0.0, 0.5, 1.0, 50.0, 120.3, 199.8, 199.9, 200.0])
        self.assertFalse(any(paused for paused, _, _ in rows))
        self.assertTrue(all(count == 0 for _, count, _ in rows))

    def test_mid_song_stall_pauses_immediately(self) -> None:
        rows = self._run([49.0, 50.0, 50.0])
        self.assertEqual(rows[2], (True, 1, "mid_song_stall"))

    def test_just_outside_end_tolerance_is_mid_song(self) -> None:
        rows = self._run([199.0, 199.7, 199.7])
        self.assertTrue(rows[2][0])

    def test_zero_timer_needs_debounce(self) -> None:
        rows = self._run([0.0, 0.0, 0.0, 0.0], debounce=3)
        self.assertEqual([paused for paused, _, _ in rows], [False, False, False, True])
        self.assertEqual(rows[1][2], "boundary_debouncing")
        self.assertEqual(rows[3], (True, 3, "boundary_stall"))

    def test_song_end_tail_needs_debounce(self) -> None:
        rows = self._run([150.0, 199.9, 199.9, 199.9, 199.9], debounce=3)
        self.assertEqual([paused for paused, _, _ in rows], [False, False, False, False, True])

    def test_timer_change_resets_counter(self) -> None:
        rows = self._run([0.0, 0.0, 0.0, 1.0, 1.0])
        self.assertEqual(rows[3][1], 0)
        self.assertEqual(rows[4], (True, 1, "mid_song_stall"))

    def test_unknown_song_length_has_no_end_tail(self) -> None:
        rows = self._run([10.0, 12.0, 12.0], song_length=0.0)
        self.assertTrue(rows[2][0])


if __name__ == "__main__":
    unittest.main()
