from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any

from .models import NoteStats


@dataclass(frozen=True)
class SessionStats:
    total_notes: int = 0
    total_notes_hit: int = 0
    total_notes_missed: int = 0
    highest_hit_streak: int = 0

    @property
    def accuracy(self) -> float:
        if self.total_notes <= 0:
            return 0.0
        return 100.0 * float(self.total_notes_hit) / float(self.total_notes)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["accuracy"] = self.accuracy
        return payload

    def to_variables(self) -> dict[str, Any]:
        return {
            "TotalNotesSinceLaunch": int(self.total_notes),
            "TotalNotesHitSinceLaunch": int(self.total_notes_hit),
            "TotalNotesMissedSinceLaunch": int(self.total_notes_missed),
            "AccuracySinceLaunch": float(self.accuracy),
            "HighestHitStreakSinceLaunch": int(self.highest_hit_streak),
        }


def note_deltas(previous: NoteStats | None, current: NoteStats) -> tuple[int, int, int]:
    """Return (hit, missed, total) deltas between two readings of the same song.

    Without a previous reading the absolute counters are the delta. A negative
    difference means the game reset its counters (song restarted), so the
    absolute counters are used again.
    """
    absolute = (current.total_notes_hit, current.total_notes_missed, current.total_notes)
    if previous is None:
        return absolute
    diff = (
        current.total_notes_hit - previous.total_notes_hit,
        current.total_notes_missed - previous.total_notes_missed,
        current.total_notes - previous.total_notes,
    )
    if min(diff) < 0:
        return absolute
    return diff


def accumulate_note_stats(stats: SessionStats, previous: NoteStats | None, current: NoteStats) -> SessionStats:
    hit, missed, total = note_deltas(previous, current)
    return SessionStats(
        total_notes=stats.total_notes + total,
        total_notes_hit=stats.total_notes_hit + hit,
        total_notes_missed=stats.total_notes_missed + missed,
        highest_hit_streak=max(stats.highest_hit_streak, int(current.highest_hit_streak)),
    )
