from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
import math
from typing import Any

from .errors import TelemetryDecodeError


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_float(payload: dict[str, Any], key: str, default: float = 0.0) -> float:
    raw = payload.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool):
        raise TelemetryDecodeError(f"field {key} is not a number: {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise TelemetryDecodeError(f"field {key} is not a number: {raw!r}") from exc
    # json.loads accepts NaN, Infinity and 1e400.
    if not math.isfinite(value):
        raise TelemetryDecodeError(f"field {key} is not finite: {raw!r}")
    return value


def _as_int(payload: dict[str, Any], key: str, default: int = 0) -> int:
    return int(_as_float(payload, key, float(default)))


def _as_str(payload: dict[str, Any], key: str, default: str = "") -> str:
    raw = payload.get(key)
    if raw is None:
        return default
    return str(raw)


def _as_dict(payload: dict[str, Any], key: str) -> dict[str, Any]:
    raw = payload.get(key)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise TelemetryDecodeError(f"field {key} is not an object")
    return raw


def _as_list(payload: dict[str, Any], key: str) -> list[Any]:
    raw = payload.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise TelemetryDecodeError(f"field {key} is not a list")
    return raw


@dataclass(frozen=True)
class NoteStats:
    accuracy: float = 0.0
    total_notes: int = 0
    total_notes_hit: int = 0
    total_notes_missed: int = 0
    current_hit_streak: int = 0
    current_miss_streak: int = 0
    highest_hit_streak: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_variables(self) -> dict[str, Any]:
        return {
            "Accuracy": float(self.accuracy),
            "CurrentHitStreak": int(self.current_hit_streak),
            "CurrentMissStreak": int(self.current_miss_streak),
            "TotalNotes": int(self.total_notes),
            "TotalNotesHit": int(self.total_notes_hit),
            "TotalNotesMissed": int(self.total_notes_missed),
            "HighestHitStreak": int(self.highest_hit_streak),
        }

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> "NoteStats":
        return NoteStats(
            accuracy=_as_float(payload, "Accuracy"),
            total_notes=_as_int(payload, "TotalNotes"),
            total_notes_hit=_as_int(payload, "TotalNotesHit"),
            total_notes_missed=_as_int(payload, "TotalNotesMissed"),
            current_hit_streak=_as_int(payload, "CurrentHitStreak"),
            current_miss_streak=_as_int(payload, "CurrentMissStreak"),
            highest_hit_streak=_as_int(payload, "HighestHitStreak"),
        )


@dataclass(frozen=True)
class Section:
    name: str
    start_time: float
    end_time: float

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> "Section":
        if not isinstance(payload, dict):
            raise TelemetryDecodeError("section entry is not an object")
        return Section(
            name=_as_str(payload, "Name"),
            start_time=_as_float(payload, "StartTime"),
            end_time=_as_float(payload, "EndTime"),
        )


@dataclass(frozen=True)
class Arrangement:
    id: str
    name: str
    type: str
    tuning_name: str
    sections: tuple[Section, ...] = ()

    def to_variables(self) -> dict[str, Any]:
        return {
            "ArrangementName": self.name,
            "ArrangementType": self.type,
            "Tuning": self.tuning_name,
        }

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> "Arrangement":
        if not isinstance(payload, dict):
            raise TelemetryDecodeError("arrangement entry is not an object")
        tuning = _as_dict(payload, "Tuning")
        return Arrangement(
            id=_as_str(payload, "ArrangementID"),
            name=_as_str(payload, "Name"),
            type=_as_str(payload, "type"),
            tuning_name=_as_str(tuning, "TuningName"),
            sections=tuple(Section.from_dict(row) for row in _as_list(payload, "Sections")),
        )


@dataclass(frozen=True)
class SongDetails:
    name: str = ""
    artist: str = ""
    album: str = ""
    album_year: int = 0
    length_seconds: float = 0.0
    arrangements: tuple[Arrangement, ...] = ()

    def to_variables(self) -> dict[str, Any]:
        return {
            "SongName": self.name,
            "ArtistName": self.artist,
            "AlbumName": self.album,
            "AlbumYear": int(self.album_year),
            "SongLength": float(self.length_seconds),
        }

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> "SongDetails":
        return SongDetails(
            name=_as_str(payload, "SongName"),
            artist=_as_str(payload, "ArtistName"),
            album=_as_str(payload, "AlbumName"),
            album_year=_as_int(payload, "AlbumYear"),
            length_seconds=_as_float(payload, "SongLength"),
            arrangements=tuple(Arrangement.from_dict(row) for row in _as_list(payload, "Arrangements")),
        )


SNAPSHOT_REQUIRED_FIELDS = ("SongId", "ArrangementId", "GameStage")


@dataclass(frozen=True)
class Snapshot:
    song_id: str
    arrangement_id: str
    game_stage_tag: str
    song_timer: float = 0.0
    note_stats: NoteStats = field(default_factory=NoteStats)

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> "Snapshot":
        missing = [key for key in SNAPSHOT_REQUIRED_FIELDS if payload.get(key) is None]
        if missing:
            raise TelemetryDecodeError(f"missing required field(s): {', '.join(missing)}")
        return Snapshot(
            song_id=_as_str(payload, "SongId"),
            arrangement_id=_as_str(payload, "ArrangementId"),
            game_stage_tag=_as_str(payload, "GameStage"),
            song_timer=_as_float(payload, "SongTimer"),
            note_stats=NoteStats.from_dict(_as_dict(payload, "NoteData")),
        )


@dataclass(frozen=True)
class Reading:
    snapshot: Snapshot
    song_details: SongDetails | None

    def summary(self) -> dict[str, Any]:
        details = self.song_details
        return {
            "song_id": self.snapshot.song_id,
            "arrangement_id": self.snapshot.arrangement_id,
            "game_stage": self.snapshot.game_stage_tag,
            "song_timer": self.snapshot.song_timer,
            "note_stats": self.snapshot.note_stats.to_dict(),
            "song_name": details.name if details is not None else None,
            "artist": details.artist if details is not None else None,
            "song_length": details.length_seconds if details is not None else None,
            "arrangements": [arr.id for arr in details.arrangements] if details is not None else [],
        }
