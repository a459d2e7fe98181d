"""Runtime configuration normalization helpers.

These keep CLI flag interpretation identical across the TUI and headless
entrypoints.
"""

from __future__ import annotations

from playhead.services.remote_backend import POLL_INTERVAL_MAX_S, POLL_INTERVAL_MIN_S

BACKEND_NAMES = ("fake", "vlc")
DEFAULT_BACKEND = "vlc"


def resolve_log_level(*, verbose: bool, quiet: bool) -> str:
    """Resolve effective log level from CLI flags.

    Precedence is deterministic: --quiet overrides --verbose.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return "INFO"


def normalize_backend_name(value: str | None) -> str:
    if value is None:
        return DEFAULT_BACKEND
    normalized = value.strip().lower()
    if normalized in BACKEND_NAMES:
        return normalized
    return DEFAULT_BACKEND


def clamp_poll_interval(value: float) -> float:
    """Clamp a remote poll interval to the supported cadence window."""
    return max(POLL_INTERVAL_MIN_S, min(POLL_INTERVAL_MAX_S, float(value)))
