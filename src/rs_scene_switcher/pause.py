from __future__ import annotations


DEFAULT_PAUSE_DEBOUNCE_CYCLES = 3
DEFAULT_END_TOLERANCE_SECONDS = 0.25


def at_song_boundary(*, song_timer: float, song_length: float, end_tolerance_seconds: float) -> bool:
    if song_timer == 0.0:
        return True
    if song_length <= 0.0:
        return False
    return song_timer >= song_length - max(0.0, float(end_tolerance_seconds))


def evaluate_pause(
    *,
    song_timer: float,
    last_song_timer: float | None,
    song_length: float,
    same_timer_count: int,
    debounce_cycles: int,
    end_tolerance_seconds: float = DEFAULT_END_TOLERANCE_SECONDS,
) -> tuple[bool, int, str]:
    """Return (paused, updated same-timer count, reason).

    A timer that stops mid-song is a pause right away. A timer stuck at 0 or in
    the last moments of the song must stay frozen for ``debounce_cycles``
    consecutive cycles first, since the game briefly freezes there on its own.
    """
    if last_song_timer is None or song_timer != last_song_timer:
        return (False, 0, "timer_advancing")

    count = max(0, int(same_timer_count)) + 1
    if at_song_boundary(
        song_timer=song_timer,
        song_length=song_length,
        end_tolerance_seconds=end_tolerance_seconds,
    ):
        if count >= max(1, int(debounce_cycles)):
            return (True, count, "boundary_stall")
        return (False, count, "boundary_debouncing")
    return (True, count, "mid_song_stall")
