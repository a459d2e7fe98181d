"""Tests for timestamped lyric parsing."""

from __future__ import annotations

from playhead.services.lyrics_parser import LyricLine, parse_lrc, plain_lyrics


def test_parse_drops_untimed_lines_and_normalizes_fractions() -> None:
    text = "[00:10.00] line one\n[00:15.5]line two\ngarbage\n[01:00.000]last"
    lines = parse_lrc(text)
    assert [line.time_s for line in lines] == [10.0, 15.5, 60.0]
    assert [line.text for line in lines] == ["line one", "line two", "last"]


def test_parse_keeps_empty_text_rows() -> None:
    lines = parse_lrc("[00:01.00]\n[00:02.00]words")
    assert lines == [LyricLine(1.0, ""), LyricLine(2.0, "words")]


def test_parse_accepts_missing_fraction_and_two_digit_centiseconds() -> None:
    lines = parse_lrc("[02:03]a\n[00:00.07]b")
    assert lines[0].time_s == 123.0
    assert lines[1].time_s == 0.07


def test_parse_ignores_metadata_tags_and_preserves_order() -> None:
    text = "[ar:Someone]\n[ti:Song]\n[00:20.00]second\n[00:05.00]first"
    lines = parse_lrc(text)
    assert [line.text for line in lines] == ["second", "first"]


def test_parse_handles_windows_newlines() -> None:
    lines = parse_lrc("[00:01.00]a\r\n[00:02.00]b\r\n")
    assert [line.text for line in lines] == ["a", "b"]


def test_plain_lyrics_wrap_as_single_row() -> None:
    assert plain_lyrics("  verse\nchorus  ") == [LyricLine(0.0, "verse\nchorus")]
    assert plain_lyrics("   ") == []
