"""Parser for line-oriented `[mm:ss.xx]text` lyric markup."""

from __future__ import annotations

import re
from dataclasses import dataclass

_LINE_RE = re.compile(r"^\[(\d+):(\d+)(?:\.(\d{1,3}))?\](.*)$")


@dataclass(frozen=True)
class LyricLine:
    """One display row with its start time in seconds."""

    time_s: float
    text: str


def parse_lrc(lrc_text: str) -> list[LyricLine]:
    """Parse timestamped lyric markup in source order.

    Lines without a leading timestamp (metadata tags, garbage) are dropped.
    Lines with an empty text after the timestamp are kept as blank rows so
    intro and instrumental markers still occupy a slot.
    """
    parsed: list[LyricLine] = []
    for raw in lrc_text.splitlines():
        match = _LINE_RE.match(raw.strip())
        if match is None:
            continue
        minutes = int(match.group(1))
        seconds = int(match.group(2))
        millis = int((match.group(3) or "0").ljust(3, "0"))
        time_s = round(minutes * 60 + seconds + millis / 1000, 3)
        parsed.append(LyricLine(time_s=time_s, text=match.group(4).strip()))
    return parsed


def plain_lyrics(text: str) -> list[LyricLine]:
    """Wrap an unsynced lyric block as a single row at time zero."""
    block = text.strip()
    if not block:
        return []
    return [LyricLine(time_s=0.0, text=block)]
