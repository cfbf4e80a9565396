from __future__ import annotations

from enum import Enum
from typing import Sequence

from .models import Arrangement, Section, SongDetails


class SectionCategory(str, Enum):
    DEFAULT = "Default"
    RIFF = "Riff"
    SOLO = "Solo"
    VERSE = "Verse"
    CHORUS = "Chorus"
    BRIDGE = "Bridge"
    BREAKDOWN = "Breakdown"
    NO_GUITAR = "NoGuitar"


# Order matters: section names often carry several keywords ("SoloRiff" is a solo).
SECTION_RULES: tuple[tuple[str, SectionCategory], ...] = (
    ("solo", SectionCategory.SOLO),
    ("noguitar", SectionCategory.NO_GUITAR),
    ("no guitar", SectionCategory.NO_GUITAR),
    ("riff", SectionCategory.RIFF),
    ("bridge", SectionCategory.BRIDGE),
    ("breakdown", SectionCategory.BREAKDOWN),
    ("chorus", SectionCategory.CHORUS),
    ("verse", SectionCategory.VERSE),
)


def resolve_arrangement(song_details: SongDetails | None, arrangement_id: str) -> Arrangement | None:
    """Return the first arrangement whose id matches exactly, or None.

    A miss is not an error: the song simply has no section tracking until a
    matching arrangement shows up.
    """
    if song_details is None:
        return None
    for arrangement in song_details.arrangements:
        if arrangement.id == arrangement_id:
            return arrangement
    return None


def classify_section(name: str) -> SectionCategory:
    token = str(name or "").lower()
    for keyword, category in SECTION_RULES:
        if keyword in token:
            return category
    return SectionCategory.DEFAULT


def next_section_index(sections: Sequence[Section], index: int, song_timer: float) -> int:
    """Advance at most one section per call.

    -1 means no section entered yet. The last section is never advanced past.
    """
    if not sections:
        return -1
    if index < 0:
        return 0 if song_timer >= sections[0].start_time else -1
    if index >= len(sections) - 1:
        return index
    if song_timer >= sections[index].end_time:
        return index + 1
    return index
