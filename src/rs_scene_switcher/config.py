from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import tomllib

from .pause import DEFAULT_END_TOLERANCE_SECONDS, DEFAULT_PAUSE_DEBOUNCE_CYCLES
from .relevance import normalize_policy


@dataclass(frozen=True)
class RuntimeConfig:
    events_file: str
    status_file: str
    poll_interval_seconds: float
    verbose_events: bool


@dataclass(frozen=True)
class SnifferConfig:
    host: str
    port: int
    request_timeout_seconds: float

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"


@dataclass(frozen=True)
class SessionConfig:
    menu_scene: str
    song_scenes: list[str]
    pause_scene: str
    relevance_policy: str = "allow_list"
    deny_scenes: list[str] = field(default_factory=list)
    min_switch_interval_seconds: float = 3.0
    scene_switching_enabled: bool = True
    section_reactions_enabled: bool = False
    pause_debounce_cycles: int = DEFAULT_PAUSE_DEBOUNCE_CYCLES
    pause_end_tolerance_seconds: float = DEFAULT_END_TOLERANCE_SECONDS

    @property
    def song_scene(self) -> str:
        return self.song_scenes[0] if self.song_scenes else ""


@dataclass(frozen=True)
class ActuatorConfig:
    backend: str
    base_url: str
    scene_path: str
    action_path: str
    request_timeout_seconds: float
    initial_scene: str


@dataclass(frozen=True)
class VariablesConfig:
    output_file: str


@dataclass(frozen=True)
class SafetyConfig:
    reset_loop_limit: int
    reset_loop_window_minutes: int
    backoff_seconds: list[int]


@dataclass(frozen=True)
class AppConfig:
    project_root: Path
    runtime: RuntimeConfig
    sniffer: SnifferConfig
    session: SessionConfig
    actuator: ActuatorConfig
    variables: VariablesConfig
    safety: SafetyConfig

    def resolve(self, rel_or_abs: str) -> Path:
        expanded = os.path.expandvars(str(rel_or_abs))
        path = Path(expanded).expanduser()
        if path.is_absolute():
            return path
        return (self.project_root / path).resolve()


def _int_list(raw: object) -> list[int]:
    if not isinstance(raw, list):
        return [2, 5, 15, 45, 120]
    out: list[int] = []
    for item in raw:
        try:
            out.append(int(item))
        except (TypeError, ValueError):
            continue
    return out or [2, 5, 15, 45, 120]


def _scene_list(raw: object, *, default: list[str]) -> list[str]:
    # Scene names are matched exactly, so only surrounding whitespace is trimmed.
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return list(default)
    out: list[str] = []
    for item in raw:
        token = str(item).strip()
        if token and token not in out:
            out.append(token)
    return out or list(default)


def _detect_project_root(cfg_path: Path) -> Path:
    direct_parent = cfg_path.parent
    if direct_parent.name == "config":
        return direct_parent.parent.resolve()

    for candidate in [direct_parent, *direct_parent.parents]:
        if (candidate / "src" / "rs_scene_switcher").exists():
            return candidate.resolve()
    return direct_parent.resolve()


def load_config(path: str | Path) -> AppConfig:
    cfg_path = Path(path).expanduser().resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("rb") as fh:
        payload = tomllib.load(fh)

    runtime = payload.get("runtime", {})
    sniffer = payload.get("sniffer", {})
    session = payload.get("session", {})
    actuator = payload.get("actuator", {})
    variables = payload.get("variables", {})
    safety = payload.get("safety", {})

    project_root = _detect_project_root(cfg_path)
    menu_scene = str(session.get("menu_scene", "RocksmithMenu")).strip()

    return AppConfig(
        project_root=project_root,
        runtime=RuntimeConfig(
            events_file=str(runtime.get("events_file", "runtime/events/switcher_events.jsonl")),
            status_file=str(runtime.get("status_file", "runtime/live/switcher_status.json")),
            poll_interval_seconds=max(0.2, float(runtime.get("poll_interval_seconds", 1.0))),
            verbose_events=bool(runtime.get("verbose_events", False)),
        ),
        sniffer=SnifferConfig(
            host=str(sniffer.get("host", "127.0.0.1")).replace('"', " ").strip() or "127.0.0.1",
            port=max(1, min(65535, int(sniffer.get("port", 9938)))),
            request_timeout_seconds=max(0.2, float(sniffer.get("request_timeout_seconds", 2.0))),
        ),
        session=SessionConfig(
            menu_scene=menu_scene,
            song_scenes=_scene_list(session.get("song_scenes", ["RocksmithSong"]), default=["RocksmithSong"]),
            pause_scene=str(session.get("pause_scene", menu_scene)).strip(),
            relevance_policy=normalize_policy(str(session.get("relevance_policy", "allow_list"))),
            deny_scenes=_scene_list(session.get("deny_scenes", []), default=[]),
            min_switch_interval_seconds=max(0.0, float(session.get("min_switch_interval_seconds", 3.0))),
            scene_switching_enabled=bool(session.get("scene_switching_enabled", True)),
            section_reactions_enabled=bool(session.get("section_reactions_enabled", False)),
            pause_debounce_cycles=max(1, int(session.get("pause_debounce_cycles", DEFAULT_PAUSE_DEBOUNCE_CYCLES))),
            pause_end_tolerance_seconds=max(
                0.0, float(session.get("pause_end_tolerance_seconds", DEFAULT_END_TOLERANCE_SECONDS))
            ),
        ),
        actuator=ActuatorConfig(
            backend=str(actuator.get("backend", "console")).strip().lower() or "console",
            base_url=str(actuator.get("base_url", "http://127.0.0.1:7474")).rstrip("/"),
            scene_path=str(actuator.get("scene_path", "/scene")),
            action_path=str(actuator.get("action_path", "/DoAction")),
            request_timeout_seconds=max(0.2, float(actuator.get("request_timeout_seconds", 2.0))),
            initial_scene=str(actuator.get("initial_scene", menu_scene)),
        ),
        variables=VariablesConfig(
            output_file=str(variables.get("output_file", "runtime/live/variables.json")),
        ),
        safety=SafetyConfig(
            reset_loop_limit=max(1, int(safety.get("reset_loop_limit", 6))),
            reset_loop_window_minutes=max(1, int(safety.get("reset_loop_window_minutes", 10))),
            backoff_seconds=_int_list(safety.get("backoff_seconds", [2, 5, 15, 45, 120])),
        ),
    )
