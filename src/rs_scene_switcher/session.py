from __future__ import annotations

from dataclasses import dataclass, asdict, field, replace
from typing import Any

from .config import SessionConfig
from .errors import SessionInconsistencyError
from .models import Arrangement, NoteStats, Snapshot, SongDetails
from .pause import evaluate_pause
from .relevance import is_relevant_scene
from .sections import SectionCategory, classify_section, next_section_index, resolve_arrangement
from .stages import GameStage, classify_game_stage
from .stats import SessionStats, accumulate_note_stats


COMMAND_SWITCH_SCENE = "switch_scene"
COMMAND_RUN_ACTION = "run_action"

ACTION_ENTER_TUNER = "enterTuner"
ACTION_LEAVE_TUNER = "leaveTuner"
ACTION_SONG_START = "songStart"
ACTION_SONG_END = "songEnd"
ACTION_ENTER_PAUSE = "enterPause"
ACTION_LEAVE_PAUSE = "leavePause"
ACTION_ARRANGEMENT_AVAILABLE = "ArrangementAvailable"
ACTION_NO_ARRANGEMENT_AVAILABLE = "NoArrangementAvailable"


def enter_section_action(category: SectionCategory) -> str:
    return f"enter{category.value}"


def leave_section_action(category: SectionCategory) -> str:
    return f"leave{category.value}"


@dataclass(frozen=True)
class Command:
    kind: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "name": self.name}


@dataclass
class SessionState:
    current_stage: GameStage = GameStage.MENU
    previous_stage: GameStage = GameStage.MENU
    current_section_category: SectionCategory = SectionCategory.DEFAULT
    previous_section_category: SectionCategory = SectionCategory.DEFAULT
    current_song_id: str = ""
    current_arrangement: Arrangement | None = None
    current_section_index: int = -1
    arrangement_identified: bool = False
    metadata_published: bool = False
    last_song_timer: float | None = None
    same_timer_count: int = 0
    paused: bool = False
    last_scene_switch_mono: float | None = None
    last_note_stats: NoteStats | None = None
    stats: SessionStats = field(default_factory=SessionStats)
    last_known_scene: str = ""
    cycles: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_stage": self.current_stage.value,
            "previous_stage": self.previous_stage.value,
            "current_section_category": self.current_section_category.value,
            "previous_section_category": self.previous_section_category.value,
            "current_song_id": self.current_song_id,
            "current_arrangement_id": self.current_arrangement.id if self.current_arrangement is not None else None,
            "current_section_index": self.current_section_index,
            "arrangement_identified": self.arrangement_identified,
            "last_song_timer": self.last_song_timer,
            "same_timer_count": self.same_timer_count,
            "paused": self.paused,
            "last_known_scene": self.last_known_scene,
            "cycles": self.cycles,
            "stats": self.stats.to_dict(),
        }


@dataclass
class CycleResult:
    relevant: bool
    commands: list[Command] = field(default_factory=list)
    variables: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    pause_reason: str = ""

    @property
    def actions(self) -> list[str]:
        return [cmd.name for cmd in self.commands if cmd.kind == COMMAND_RUN_ACTION]

    @property
    def scene_switches(self) -> list[str]:
        return [cmd.name for cmd in self.commands if cmd.kind == COMMAND_SWITCH_SCENE]

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["commands"] = [cmd.to_dict() for cmd in self.commands]
        return payload


class SceneSession:
    """Telemetry-to-scene state machine for one game session.

    ``process`` is called once per poll cycle. It classifies the game stage,
    tracks arrangement sections and pauses, and returns the commands the
    caller should send to the actuator, in order, plus the variables to
    publish. The session state is only replaced once a cycle has been fully
    evaluated, so an exception leaves the previous state intact.
    """

    def __init__(self, cfg: SessionConfig) -> None:
        self.cfg = cfg
        self.state = SessionState()

    def reset(self) -> None:
        self.state = SessionState()

    def is_relevant(self, scene: str | None) -> bool:
        return is_relevant_scene(
            scene,
            policy=self.cfg.relevance_policy,
            menu_scene=self.cfg.menu_scene,
            song_scenes=self.cfg.song_scenes,
            pause_scene=self.cfg.pause_scene,
            deny_scenes=self.cfg.deny_scenes,
        )

    def observe_scene(self, scene: str | None) -> bool:
        """Gate a cycle on the current scene. Irrelevant scenes only update the last known scene."""
        relevant = self.is_relevant(scene)
        if not relevant:
            self.state.last_known_scene = str(scene or "")
        return relevant

    def _check_invariants(self) -> None:
        state = self.state
        arrangement = state.current_arrangement
        if arrangement is None:
            if state.current_section_index != -1:
                raise SessionInconsistencyError(
                    f"section index {state.current_section_index} set without an arrangement"
                )
            return
        if state.current_stage != GameStage.IN_SONG:
            raise SessionInconsistencyError(f"arrangement {arrangement.id} held outside a song")
        if not -1 <= state.current_section_index < len(arrangement.sections):
            raise SessionInconsistencyError(
                f"section index {state.current_section_index} out of range for arrangement {arrangement.id}"
            )

    def _switch_allowed(self, draft: SessionState, now_mono: float) -> bool:
        if draft.last_scene_switch_mono is None:
            return True
        return (now_mono - draft.last_scene_switch_mono) >= float(self.cfg.min_switch_interval_seconds)

    def _switch_scene(
        self,
        draft: SessionState,
        result: CycleResult,
        *,
        target: str,
        current_scene: str,
        now_mono: float,
    ) -> bool:
        if not self.cfg.scene_switching_enabled or not target or target == current_scene:
            return False
        if not self._switch_allowed(draft, now_mono):
            return False
        result.commands.append(Command(COMMAND_SWITCH_SCENE, target))
        draft.last_scene_switch_mono = now_mono
        return True

    def _run_action(self, result: CycleResult, name: str) -> None:
        result.commands.append(Command(COMMAND_RUN_ACTION, name))

    def _resolve_arrangement(
        self,
        draft: SessionState,
        result: CycleResult,
        snapshot: Snapshot,
        song_details: SongDetails | None,
    ) -> None:
        try:
            arrangement = resolve_arrangement(song_details, snapshot.arrangement_id)
        except Exception as exc:  # noqa: BLE001
            result.warnings.append(f"arrangement_resolution_error:{exc}")
            arrangement = None

        if arrangement is not None:
            draft.current_arrangement = arrangement
            draft.current_section_index = -1
            result.variables.update(arrangement.to_variables())
            self._run_action(result, ACTION_ARRANGEMENT_AVAILABLE)
        elif not draft.arrangement_identified:
            self._run_action(result, ACTION_NO_ARRANGEMENT_AVAILABLE)
        draft.arrangement_identified = True

    def _leave_song(self, draft: SessionState, result: CycleResult) -> None:
        if self.cfg.section_reactions_enabled and draft.current_section_category != SectionCategory.DEFAULT:
            self._run_action(result, leave_section_action(draft.current_section_category))
            self._run_action(result, enter_section_action(SectionCategory.DEFAULT))
        draft.current_section_category = SectionCategory.DEFAULT
        draft.current_arrangement = None
        draft.current_section_index = -1
        draft.arrangement_identified = False
        draft.metadata_published = False
        draft.paused = False
        draft.same_timer_count = 0

    def _in_song(
        self,
        draft: SessionState,
        result: CycleResult,
        *,
        snapshot: Snapshot,
        song_details: SongDetails | None,
        entering: bool,
        current_scene: str,
        now_mono: float,
    ) -> None:
        if entering:
            self._run_action(result, ACTION_SONG_START)
            draft.current_song_id = snapshot.song_id
        elif snapshot.song_id != draft.current_song_id:
            # Song changed without passing through the menu.
            draft.current_song_id = snapshot.song_id
            draft.current_arrangement = None
            draft.current_section_index = -1
            draft.arrangement_identified = False
            draft.metadata_published = False

        if draft.current_arrangement is None:
            self._resolve_arrangement(draft, result, snapshot, song_details)

        if not draft.metadata_published and song_details is not None:
            result.variables.update(song_details.to_variables())
            draft.metadata_published = True

        timer = snapshot.song_timer
        timer_advanced = draft.last_song_timer is not None and timer != draft.last_song_timer
        song_length = song_details.length_seconds if song_details is not None else 0.0
        paused_now, draft.same_timer_count, result.pause_reason = evaluate_pause(
            song_timer=timer,
            last_song_timer=draft.last_song_timer,
            song_length=song_length,
            same_timer_count=draft.same_timer_count,
            debounce_cycles=self.cfg.pause_debounce_cycles,
            end_tolerance_seconds=self.cfg.pause_end_tolerance_seconds,
        )

        if current_scene in self.cfg.song_scenes:
            if paused_now:
                if not draft.paused:
                    self._run_action(result, ACTION_ENTER_PAUSE)
                    draft.paused = True
                self._switch_scene(
                    draft,
                    result,
                    target=self.cfg.pause_scene,
                    current_scene=current_scene,
                    now_mono=now_mono,
                )
            elif draft.paused and timer_advanced:
                self._run_action(result, ACTION_LEAVE_PAUSE)
                draft.paused = False
            return

        if not timer_advanced:
            return
        if draft.paused:
            self._run_action(result, ACTION_LEAVE_PAUSE)
            draft.paused = False
        self._switch_scene(
            draft,
            result,
            target=self.cfg.song_scene,
            current_scene=current_scene,
            now_mono=now_mono,
        )

    def _in_menu(
        self,
        draft: SessionState,
        result: CycleResult,
        *,
        previous_stage: GameStage,
        current_scene: str,
        now_mono: float,
    ) -> None:
        self._switch_scene(
            draft,
            result,
            target=self.cfg.menu_scene,
            current_scene=current_scene,
            now_mono=now_mono,
        )
        if previous_stage == GameStage.IN_SONG:
            draft.arrangement_identified = False
            draft.last_note_stats = None
            self._run_action(result, ACTION_SONG_END)

    def _track_sections(self, draft: SessionState, result: CycleResult, song_timer: float) -> None:
        arrangement = draft.current_arrangement
        if arrangement is None:
            return
        try:
            index = next_section_index(arrangement.sections, draft.current_section_index, song_timer)
            if index == draft.current_section_index:
                return
            section = arrangement.sections[index]
            category = classify_section(section.name)
        except Exception as exc:  # noqa: BLE001
            result.warnings.append(f"section_tracking_error:{exc}")
            return

        draft.current_section_index = index
        draft.current_section_category = category
        result.variables["SectionName"] = section.name
        if category != draft.previous_section_category:
            self._run_action(result, leave_section_action(draft.previous_section_category))
            self._run_action(result, enter_section_action(category))

    def _accumulate_stats(self, draft: SessionState, result: CycleResult, note_stats: NoteStats) -> None:
        if note_stats == draft.last_note_stats:
            return
        draft.stats = accumulate_note_stats(draft.stats, draft.last_note_stats, note_stats)
        draft.last_note_stats = note_stats
        result.variables.update(note_stats.to_variables())
        result.variables.update(draft.stats.to_variables())

    def process(
        self,
        snapshot: Snapshot,
        song_details: SongDetails | None,
        *,
        current_scene: str,
        now_mono: float,
    ) -> CycleResult:
        self._check_invariants()
        if not self.observe_scene(current_scene):
            return CycleResult(relevant=False)

        draft = replace(self.state)
        result = CycleResult(relevant=True)
        stage = classify_game_stage(snapshot.game_stage_tag)
        previous_stage = draft.current_stage

        # Tuner edges are checked on their own, before any menu/song handling.
        if stage == GameStage.IN_TUNER and previous_stage != GameStage.IN_TUNER:
            self._run_action(result, ACTION_ENTER_TUNER)
        elif previous_stage == GameStage.IN_TUNER and stage != GameStage.IN_TUNER:
            self._run_action(result, ACTION_LEAVE_TUNER)

        if previous_stage == GameStage.IN_SONG and stage != GameStage.IN_SONG:
            self._leave_song(draft, result)

        if stage == GameStage.IN_SONG:
            self._in_song(
                draft,
                result,
                snapshot=snapshot,
                song_details=song_details,
                entering=previous_stage != GameStage.IN_SONG,
                current_scene=current_scene,
                now_mono=now_mono,
            )
            if self.cfg.section_reactions_enabled:
                self._track_sections(draft, result, snapshot.song_timer)
            self._accumulate_stats(draft, result, snapshot.note_stats)
        elif stage == GameStage.MENU:
            self._in_menu(
                draft,
                result,
                previous_stage=previous_stage,
                current_scene=current_scene,
                now_mono=now_mono,
            )

        if stage != GameStage.IN_SONG:
            draft.same_timer_count = 0
            draft.paused = False

        result.variables["GameStage"] = stage.value
        draft.previous_stage = previous_stage
        draft.current_stage = stage
        draft.last_song_timer = snapshot.song_timer
        draft.previous_section_category = draft.current_section_category
        draft.last_known_scene = current_scene
        draft.cycles += 1
        self.state = draft
        return result
