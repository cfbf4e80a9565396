from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

from .models import utc_now_iso


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
    tmp.replace(path)


def read_json(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    if not isinstance(payload, dict):
        return {}
    return payload


class EventLog:
    def __init__(self, path: Path) -> None:
        self.path = path

    def append(self, *, phase: str, event_type: str, severity: str, payload: dict[str, Any]) -> None:
        row = {
            "ts": utc_now_iso(),
            "phase": phase,
            "event_type": event_type,
            "severity": severity,
            "payload": payload,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(row, ensure_ascii=True) + "\n")

    def read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        rows: list[dict[str, Any]] = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                row = json.loads(line)
            except ValueError:
                continue
            if isinstance(row, dict):
                rows.append(row)
        return rows


class VariableSink(Protocol):
    def publish(self, values: dict[str, Any]) -> None: ...


class JsonFileSink:
    """Keeps the derived variables in one JSON document for overlays to read."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.values: dict[str, Any] = {}
        self._written = False

    def publish(self, values: dict[str, Any]) -> None:
        changed = {key: value for key, value in values.items() if self.values.get(key) != value}
        if not changed and self._written:
            return
        self.values.update(changed)
        self._written = True
        write_json_atomic(self.path, {"updated_at": utc_now_iso(), "variables": dict(self.values)})


class MemorySink:
    def __init__(self) -> None:
        self.values: dict[str, Any] = {}

    def publish(self, values: dict[str, Any]) -> None:
        self.values.update(values)
