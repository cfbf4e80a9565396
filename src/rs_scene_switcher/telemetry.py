from __future__ import annotations

import http.client
import json
from pathlib import Path
from typing import Any, Callable, Protocol
import urllib.error
import urllib.request

from .config import AppConfig
from .errors import TelemetryDecodeError, TelemetryFetchError
from .models import Reading, Snapshot, SongDetails


FetchBytes = Callable[[str, float], bytes]


class TelemetrySource(Protocol):
    def fetch(self) -> bytes: ...


def _default_fetch_bytes(url: str, timeout_s: float) -> bytes:
    request = urllib.request.Request(url=url, headers={"User-Agent": "rs-scene-switcher/0.1"})
    with urllib.request.urlopen(request, timeout=timeout_s) as response:  # noqa: S310
        status = int(getattr(response, "status", 200))
        if status < 200 or status >= 300:
            raise TelemetryFetchError(f"sniffer_http_status:{status}")
        return response.read()


class SnifferClient:
    """Polls the RockSniffer HTTP endpoint for the latest memory readout."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        timeout_seconds: float = 2.0,
        fetch_bytes: FetchBytes | None = None,
    ) -> None:
        self.url = f"http://{host}:{int(port)}/"
        self.timeout_seconds = max(0.2, float(timeout_seconds))
        self._fetch_bytes = fetch_bytes or _default_fetch_bytes

    @classmethod
    def from_config(cls, cfg: AppConfig, *, fetch_bytes: FetchBytes | None = None) -> "SnifferClient":
        return cls(
            host=cfg.sniffer.host,
            port=cfg.sniffer.port,
            timeout_seconds=cfg.sniffer.request_timeout_seconds,
            fetch_bytes=fetch_bytes,
        )

    def fetch(self) -> bytes:
        try:
            return self._fetch_bytes(self.url, self.timeout_seconds)
        except TelemetryFetchError:
            raise
        except urllib.error.HTTPError as exc:
            raise TelemetryFetchError(f"sniffer_http_status:{exc.code}") from exc
        except (urllib.error.URLError, OSError) as exc:
            raise TelemetryFetchError(f"sniffer_unreachable:{exc}") from exc
        except http.client.HTTPException as exc:
            raise TelemetryFetchError(f"sniffer_bad_response:{exc!r}") from exc


class ReplaySource:
    """Replays recorded sniffer responses, one JSON document per line."""

    def __init__(self, path: Path) -> None:
        self.path = path
        lines = path.read_text(encoding="utf-8").splitlines()
        self._rows = [line.strip() for line in lines if line.strip()]
        self._cursor = 0

    @property
    def remaining(self) -> int:
        return max(0, len(self._rows) - self._cursor)

    def fetch(self) -> bytes:
        if self._cursor >= len(self._rows):
            raise TelemetryFetchError(f"replay_exhausted:{self.path}")
        row = self._rows[self._cursor]
        self._cursor += 1
        return row.encode("utf-8")


def decode_reading(raw: bytes | str | dict[str, Any]) -> Reading:
    if isinstance(raw, dict):
        payload: Any = raw
    else:
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TelemetryDecodeError(f"json_decode_error:{exc}") from exc

    if not isinstance(payload, dict):
        raise TelemetryDecodeError("invalid_payload_type")
    readout = payload.get("MemoryReadout")
    if not isinstance(readout, dict):
        raise TelemetryDecodeError("missing required object: MemoryReadout")

    snapshot = Snapshot.from_dict(readout)
    details_raw = payload.get("SongDetails")
    if details_raw is None:
        song_details = None
    elif isinstance(details_raw, dict):
        song_details = SongDetails.from_dict(details_raw)
    else:
        raise TelemetryDecodeError("field SongDetails is not an object")
    return Reading(snapshot=snapshot, song_details=song_details)
