from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import time
from typing import Any, Callable

from .actuator import Actuator, ConsoleActuator, build_actuator
from .config import AppConfig
from .errors import SessionInconsistencyError, TelemetryDecodeError, TelemetryFetchError
from .models import utc_now_iso
from .reporting import EventLog, JsonFileSink, MemorySink, VariableSink, write_json_atomic
from .safety import SafetyManager
from .session import COMMAND_SWITCH_SCENE, Command, CycleResult, SceneSession
from .telemetry import ReplaySource, SnifferClient, TelemetrySource, decode_reading


@dataclass
class TickResult:
    ok: bool
    reason: str
    payload: dict[str, Any]


class SceneSwitcherDaemon:
    def __init__(
        self,
        cfg: AppConfig,
        *,
        source: TelemetrySource | None = None,
        actuator: Actuator | None = None,
        sink: VariableSink | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
        events_file_override: str = "",
        status_output_override: str = "",
        interval_override: float | None = None,
    ) -> None:
        self.cfg = cfg
        self.source = source if source is not None else SnifferClient.from_config(cfg)
        self.actuator = actuator if actuator is not None else build_actuator(cfg)
        self.sink = sink if sink is not None else JsonFileSink(cfg.resolve(cfg.variables.output_file))
        self.clock = clock or time.monotonic
        self.sleep = sleep or time.sleep
        self.events = EventLog(cfg.resolve(events_file_override or cfg.runtime.events_file))
        self.status_file = cfg.resolve(status_output_override or cfg.runtime.status_file)
        self.poll_interval_seconds = (
            max(0.2, float(interval_override))
            if interval_override is not None and interval_override > 0.0
            else max(0.2, float(cfg.runtime.poll_interval_seconds))
        )
        self.verbose_events = bool(cfg.runtime.verbose_events)
        self.session = SceneSession(cfg.session)
        self.safety = SafetyManager(cfg.safety)

        self._started_at = utc_now_iso()
        self._ticks = 0
        self._resets = 0
        self._last_scene = ""
        self._last_commands: list[dict[str, str]] = []
        self._last_error = ""
        self._last_error_at = ""

    def _log(self, *, phase: str, event_type: str, severity: str, payload: dict[str, Any]) -> None:
        self.events.append(phase=phase, event_type=event_type, severity=severity, payload=payload)

    def _record_error(self, *, phase: str, event_type: str, error: str, severity: str = "warning") -> None:
        self._last_error = f"{event_type}:{error}"
        self._last_error_at = utc_now_iso()
        self._log(phase=phase, event_type=event_type, severity=severity, payload={"error": error})

    def _current_scene(self) -> str | None:
        try:
            return str(self.actuator.get_current_scene())
        except Exception as exc:  # noqa: BLE001
            self._record_error(phase="actuator", event_type="get_scene_failed", error=str(exc))
            return None

    def _apply_commands(self, commands: list[Command]) -> list[dict[str, str]]:
        applied: list[dict[str, str]] = []
        for command in commands:
            row = command.to_dict()
            try:
                if command.kind == COMMAND_SWITCH_SCENE:
                    self.actuator.switch_to_scene(command.name)
                else:
                    self.actuator.run_action(command.name)
                row["status"] = "sent"
                self._log(phase="actuator", event_type=command.kind, severity="info", payload={"name": command.name})
            except Exception as exc:  # noqa: BLE001
                # No retry: the session already recorded the command.
                row["status"] = "failed"
                self._record_error(phase="actuator", event_type=f"{command.kind}_failed", error=f"{command.name}:{exc}")
            applied.append(row)
        return applied

    def _publish(self, variables: dict[str, Any]) -> None:
        if not variables:
            return
        try:
            self.sink.publish(variables)
        except Exception as exc:  # noqa: BLE001
            self._record_error(phase="variables", event_type="publish_failed", error=str(exc))

    def reset_session(self, reason: str) -> None:
        self.session.reset()
        self.safety.record_reset()
        self._resets += 1
        self._record_error(phase="session", event_type="session_reset", error=reason, severity="error")

    def _finish(self, *, ok: bool, reason: str, result: CycleResult | None = None) -> TickResult:
        payload: dict[str, Any] = {
            "generated_at": utc_now_iso(),
            "started_at": self._started_at,
            "ok": ok,
            "reason": reason,
            "tick": self._ticks,
            "scene": self._last_scene,
            "sniffer_url": str(getattr(self.source, "url", "")),
            "session": self.session.state.to_dict(),
            "commands": list(self._last_commands) if result is not None else [],
            "variables": dict(result.variables) if result is not None else {},
            "warnings": list(result.warnings) if result is not None else [],
            "pause_reason": result.pause_reason if result is not None else "",
            "resets": self._resets,
            "resets_window": self.safety.reset_count(),
            "reset_streak": self.safety.streak,
            "last_error": self._last_error,
            "last_error_at": self._last_error_at,
        }
        write_json_atomic(self.status_file, payload)
        if self.verbose_events:
            self._log(phase="tick", event_type=reason, severity="debug", payload={"tick": self._ticks, "ok": ok})
        return TickResult(ok=ok, reason=reason, payload=payload)

    def tick(self) -> TickResult:
        self._ticks += 1
        now_mono = float(self.clock())

        scene = self._current_scene()
        if scene is None:
            return self._finish(ok=False, reason="scene_unavailable")
        self._last_scene = scene
        if not self.session.observe_scene(scene):
            return self._finish(ok=True, reason="scene_not_relevant")

        # Ticks run back to back on one thread, so at most one fetch is ever in flight.
        try:
            reading = decode_reading(self.source.fetch())
        except TelemetryFetchError as exc:
            self._record_error(phase="telemetry", event_type="fetch_failed", error=str(exc))
            return self._finish(ok=False, reason="fetch_failed")
        except TelemetryDecodeError as exc:
            self._record_error(phase="telemetry", event_type="decode_failed", error=str(exc))
            return self._finish(ok=False, reason="decode_failed")

        try:
            result = self.session.process(
                reading.snapshot,
                reading.song_details,
                current_scene=scene,
                now_mono=now_mono,
            )
        except SessionInconsistencyError as exc:
            self.reset_session(str(exc))
            return self._finish(ok=False, reason="session_reset")

        self.safety.record_clean_cycle()
        for warning in result.warnings:
            self._log(phase="session", event_type="resolution_warning", severity="warning", payload={"warning": warning})
        self._last_commands = self._apply_commands(result.commands)
        self._publish(result.variables)
        return self._finish(ok=True, reason="processed", result=result)

    def run_forever(self, *, max_ticks: int = 0) -> None:
        self._log(
            phase="runtime",
            event_type="started",
            severity="info",
            payload={"sniffer_url": str(getattr(self.source, "url", "")), "interval_s": self.poll_interval_seconds},
        )
        while True:
            _ = self.tick()
            if max_ticks > 0 and self._ticks >= max_ticks:
                return
            self.sleep(self.safety.next_delay(self.poll_interval_seconds))


def run_once(cfg: AppConfig, *, status_output_override: str = "") -> TickResult:
    daemon = SceneSwitcherDaemon(cfg, status_output_override=status_output_override)
    return daemon.tick()


def run_daemon(cfg: AppConfig, *, interval_override: float | None = None) -> None:
    daemon = SceneSwitcherDaemon(cfg, interval_override=interval_override)
    daemon.run_forever()


def replay_file(cfg: AppConfig, path: Path, *, step_seconds: float = 1.0) -> dict[str, Any]:
    """Feed recorded sniffer responses through a fresh session on a synthetic clock."""
    source = ReplaySource(path)
    actuator = ConsoleActuator(cfg.actuator.initial_scene, echo=False)
    sink = MemorySink()
    clock_state = {"now": 0.0}

    def clock() -> float:
        clock_state["now"] += max(0.0, float(step_seconds))
        return clock_state["now"]

    daemon = SceneSwitcherDaemon(
        cfg,
        source=source,
        actuator=actuator,
        sink=sink,
        clock=clock,
        events_file_override="runtime/replay/replay_events.jsonl",
        status_output_override="runtime/replay/replay_status.json",
    )
    ticks: list[dict[str, Any]] = []
    while source.remaining > 0:
        before = source.remaining
        result = daemon.tick()
        ticks.append(
            {
                "tick": result.payload["tick"],
                "reason": result.reason,
                "scene": result.payload["scene"],
                "stage": result.payload["session"]["current_stage"],
                "commands": result.payload["commands"],
            }
        )
        if source.remaining == before:
            # Scene gated the cycle.
            break
    return {
        "ok": True,
        "source": str(path),
        "ticks": ticks,
        "final_scene": actuator.scene,
        "variables": dict(sink.values),
        "session": daemon.session.state.to_dict(),
    }
