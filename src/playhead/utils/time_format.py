"""Clock-style rendering of playback positions in seconds."""

from __future__ import annotations

import math

_HOUR_S = 3600
_UNKNOWN = "--:--"
_UNKNOWN_LONG = "--:--:--"


def format_time_s(seconds: float) -> str:
    """Render seconds as ``MM:SS``, switching to ``H:MM:SS`` past an hour."""
    return _clock(_whole_seconds(seconds), long_form=False)


def format_time_pair_s(position_s: float, duration_s: float) -> tuple[str, str]:
    """Render position and duration so both share one layout.

    A non-positive duration renders as a placeholder of matching width.
    """
    position = _whole_seconds(position_s)
    duration = _whole_seconds(duration_s)
    long_form = max(position, duration) >= _HOUR_S
    if duration == 0:
        return _clock(position, long_form=long_form), (
            _UNKNOWN_LONG if long_form else _UNKNOWN
        )
    return _clock(position, long_form=long_form), _clock(duration, long_form=long_form)


def _clock(total: int, *, long_form: bool) -> str:
    hours, remainder = divmod(total, _HOUR_S)
    minutes, secs = divmod(remainder, 60)
    if hours or long_form:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def _whole_seconds(value: float) -> int:
    # Negative, NaN and non-numeric inputs all collapse to zero.
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(numeric) or numeric <= 0:
        return 0
    if math.isinf(numeric):
        return 0
    return int(numeric)
