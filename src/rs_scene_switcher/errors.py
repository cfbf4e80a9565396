from __future__ import annotations


class SceneSwitcherError(Exception):
    pass


class TelemetryFetchError(SceneSwitcherError):
    """Sniffer unreachable or answered with a non-success status. Retry next cycle."""


class TelemetryDecodeError(SceneSwitcherError, ValueError):
    """Payload was malformed or missing a required field. Retry next cycle."""


class ActuatorError(SceneSwitcherError):
    pass


class SessionInconsistencyError(SceneSwitcherError):
    """Session state no longer matches its own invariants; the session must be reset."""
