"""Tests for lyric line tracking against playhead time."""

from __future__ import annotations

from playhead.services.lyric_sync import LyricSync
from playhead.services.lyrics_parser import LyricLine


def _lines(*times: float) -> list[LyricLine]:
    return [LyricLine(t, f"line {i}") for i, t in enumerate(times)]


def test_active_index_picks_latest_started_line() -> None:
    sync = LyricSync(_lines(0, 10, 15, 20, 25, 30, 35))
    assert sync.active_index(22) == 3


def test_active_index_before_first_line_is_minus_one() -> None:
    sync = LyricSync(_lines(5, 10))
    assert sync.active_index(4.99) == -1
    assert sync.active_index(5.0) == 0


def test_active_index_is_non_decreasing_over_time() -> None:
    sync = LyricSync(_lines(0, 2.5, 2.5, 7, 11, 11.2))
    previous = -1
    for step in range(0, 150):
        index = sync.active_index(step / 10)
        assert index >= previous
        previous = index


def test_duplicate_timestamps_resolve_to_later_row() -> None:
    sync = LyricSync(_lines(1, 3, 3, 5))
    assert sync.active_index(3.0) == 2


def test_unsynced_lyrics_never_highlight() -> None:
    sync = LyricSync([LyricLine(0.0, "all the words")], synced=False)
    assert sync.active_index(100.0) == -1


def test_replace_swaps_lines_wholesale() -> None:
    sync = LyricSync(_lines(0, 1))
    sync.replace(_lines(10), synced=True)
    assert len(sync.lines) == 1
    assert sync.active_index(5) == -1
    sync.clear()
    assert sync.lines == ()
    assert sync.synced is False
