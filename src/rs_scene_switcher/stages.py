from __future__ import annotations

from enum import Enum


class GameStage(str, Enum):
    MENU = "Menu"
    IN_SONG = "InSong"
    IN_TUNER = "InTuner"


# Other tags seen in the wild: MainMenu, las_SongList, las_SongOptions, sa_SongList.
IN_SONG_STAGE_TAGS = {"las_game", "sa_game"}
TUNER_STAGE_MARKER = "tuner"


def classify_game_stage(tag: str) -> GameStage:
    token = str(tag or "").strip()
    if token in IN_SONG_STAGE_TAGS:
        return GameStage.IN_SONG
    if TUNER_STAGE_MARKER in token.lower():
        return GameStage.IN_TUNER
    # Unknown tags fall back to menu.
    return GameStage.MENU
