from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta, timezone

from .config import SafetyConfig


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SafetyManager:
    """Decides how long the daemon waits after session resets.

    ``streak`` counts resets since the last cleanly processed cycle and picks
    the backoff step. The sliding window decides whether resets are frequent
    enough to back off at all; a single reset after a long quiet run keeps the
    normal poll cadence.
    """

    def __init__(self, cfg: SafetyConfig) -> None:
        self.cfg = cfg
        self.streak = 0
        self._reset_times: deque[datetime] = deque()

    def record_reset(self, at: datetime | None = None) -> None:
        now = at or utc_now()
        self._reset_times.append(now)
        self._trim(now)
        self.streak += 1

    def record_clean_cycle(self) -> None:
        self.streak = 0

    def _trim(self, now: datetime) -> None:
        cutoff = now - timedelta(minutes=max(1, int(self.cfg.reset_loop_window_minutes)))
        while self._reset_times and self._reset_times[0] < cutoff:
            self._reset_times.popleft()

    def reset_count(self) -> int:
        self._trim(utc_now())
        return len(self._reset_times)

    def reset_loop_triggered(self) -> bool:
        if self.streak <= 0:
            return False
        return self.reset_count() >= max(1, int(self.cfg.reset_loop_limit))

    def backoff_seconds(self) -> int:
        schedule = list(self.cfg.backoff_seconds) or [2, 5, 15, 45, 120]
        idx = min(max(0, self.streak - 1), len(schedule) - 1)
        return int(schedule[idx])

    def next_delay(self, poll_interval_seconds: float) -> float:
        if self.reset_loop_triggered():
            return float(self.backoff_seconds())
        return float(poll_interval_seconds)
