"""Maps playhead time to the active lyric line."""

from __future__ import annotations

from collections.abc import Sequence

from playhead.services.lyrics_parser import LyricLine


class LyricSync:
    """Holds the current track's lyric rows and resolves the highlighted one."""

    def __init__(self, lines: Sequence[LyricLine] = (), *, synced: bool = True) -> None:
        self._lines: tuple[LyricLine, ...] = tuple(lines)
        self._synced = synced

    @property
    def lines(self) -> tuple[LyricLine, ...]:
        return self._lines

    @property
    def synced(self) -> bool:
        return self._synced

    def replace(self, lines: Sequence[LyricLine], *, synced: bool) -> None:
        """Swap in a new sequence wholesale (used on track change)."""
        self._lines = tuple(lines)
        self._synced = synced

    def clear(self) -> None:
        self.replace((), synced=False)

    def active_index(self, time_s: float) -> int:
        """Return the greatest index whose time is <= `time_s`, else -1.

        Scans backward over source order so duplicate timestamps resolve to
        the later row.
        """
        if not self._synced:
            return -1
        for index in range(len(self._lines) - 1, -1, -1):
            if time_s >= self._lines[index].time_s:
                return index
        return -1
