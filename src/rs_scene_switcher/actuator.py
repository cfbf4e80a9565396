from __future__ import annotations

import http.client
import json
from typing import Any, Callable, Protocol
import urllib.error
import urllib.request

from .config import AppConfig
from .errors import ActuatorError


RequestJson = Callable[[str, str, dict[str, Any] | None, float], dict[str, Any]]


class Actuator(Protocol):
    def get_current_scene(self) -> str: ...

    def switch_to_scene(self, name: str) -> None: ...

    def run_action(self, name: str) -> None: ...


class ConsoleActuator:
    """Dry-run backend: keeps the scene in memory and echoes every call."""

    def __init__(self, initial_scene: str = "", *, echo: bool = True) -> None:
        self.scene = initial_scene
        self.echo = echo
        self.calls: list[tuple[str, str]] = []

    def _echo(self, line: str) -> None:
        if self.echo:
            print(line)

    def get_current_scene(self) -> str:
        return self.scene

    def switch_to_scene(self, name: str) -> None:
        self.calls.append(("switch_scene", name))
        self.scene = name
        self._echo(f"Setting scene: {name}")

    def run_action(self, name: str) -> None:
        self.calls.append(("run_action", name))
        self._echo(f"Running action: {name}")


def _default_request_json(method: str, url: str, payload: dict[str, Any] | None, timeout_s: float) -> dict[str, Any]:
    data = None
    headers = {"Accept": "application/json"}
    if payload is not None:
        data = json.dumps(payload, ensure_ascii=True).encode("utf-8")
        headers["Content-Type"] = "application/json"
    req = urllib.request.Request(url=url, data=data, method=method, headers=headers)
    with urllib.request.urlopen(req, timeout=timeout_s) as resp:  # noqa: S310
        body = resp.read().decode("utf-8").strip()
    if not body:
        return {}
    parsed = json.loads(body)
    return parsed if isinstance(parsed, dict) else {}


class HttpActuator:
    """JSON-over-HTTP bridge to the presentation tool.

    ``GET scene_path`` answers ``{"scene": name}``, ``POST scene_path`` switches,
    and actions go to ``action_path`` in the Streamer.bot ``DoAction`` shape.
    """

    def __init__(
        self,
        *,
        base_url: str,
        scene_path: str = "/scene",
        action_path: str = "/DoAction",
        timeout_seconds: float = 2.0,
        request_json: RequestJson | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.scene_url = self.base_url + "/" + scene_path.lstrip("/")
        self.action_url = self.base_url + "/" + action_path.lstrip("/")
        self.timeout_seconds = max(0.2, float(timeout_seconds))
        self._request_json = request_json or _default_request_json

    def _call(self, method: str, url: str, payload: dict[str, Any] | None) -> dict[str, Any]:
        try:
            return self._request_json(method, url, payload, self.timeout_seconds)
        except (urllib.error.URLError, OSError, ValueError, http.client.HTTPException) as exc:
            raise ActuatorError(f"{method} {url} failed: {exc}") from exc

    def get_current_scene(self) -> str:
        payload = self._call("GET", self.scene_url, None)
        scene = payload.get("scene")
        if scene is None:
            raise ActuatorError(f"GET {self.scene_url} returned no scene")
        return str(scene)

    def switch_to_scene(self, name: str) -> None:
        self._call("POST", self.scene_url, {"scene": name})

    def run_action(self, name: str) -> None:
        self._call("POST", self.action_url, {"action": {"name": name}, "args": {}})


def build_actuator(cfg: AppConfig) -> Actuator:
    backend = cfg.actuator.backend
    if backend == "http":
        return HttpActuator(
            base_url=cfg.actuator.base_url,
            scene_path=cfg.actuator.scene_path,
            action_path=cfg.actuator.action_path,
            timeout_seconds=cfg.actuator.request_timeout_seconds,
        )
    if backend != "console":
        raise ValueError(f"unknown actuator backend {backend}")
    return ConsoleActuator(cfg.actuator.initial_scene)
