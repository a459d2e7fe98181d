"""Lyrics pane highlighting the active synced line."""

from __future__ import annotations

from collections.abc import Sequence

from rich.text import Text
from textual.containers import VerticalScroll
from textual.widgets import Static

from playhead.services.lyrics_parser import LyricLine

ACTIVE_STYLE = "bold #F2C94C"
CONTEXT_LINES = 6


class LyricsPane(VerticalScroll):
    """Shows lyrics; synced lyrics are windowed around the active line."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._body = Static("", id="lyrics-body")
        self._lines: tuple[LyricLine, ...] = ()
        self._synced = False
        self._status: str | None = None
        self._active_index = -1
        self._rendered = Text()

    def compose(self):
        yield self._body

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def rendered_text(self) -> str:
        return self._rendered.plain

    def set_lyrics(
        self, lines: Sequence[LyricLine], *, synced: bool, status: str | None
    ) -> None:
        self._lines = tuple(lines)
        self._synced = synced
        self._status = status
        self._active_index = -1
        self._render_body()

    def set_active_index(self, index: int) -> None:
        if index == self._active_index:
            return
        self._active_index = index
        self._render_body()

    def _render_body(self) -> None:
        self._rendered = render_lyrics(
            self._lines, self._active_index, synced=self._synced, status=self._status
        )
        self._body.update(self._rendered)


def render_lyrics(
    lines: Sequence[LyricLine], active_index: int, *, synced: bool, status: str | None
) -> Text:
    if status:
        return Text(status, style="dim")
    if not lines:
        return Text("Loading lyrics...", style="dim")
    if not synced:
        return Text("\n".join(line.text for line in lines))
    start = max(0, active_index - CONTEXT_LINES)
    end = min(len(lines), max(active_index, 0) + CONTEXT_LINES + 1)
    text = Text()
    for index in range(start, end):
        if index > start:
            text.append("\n")
        line_text = lines[index].text or "..."
        if index == active_index:
            text.append(f"> {line_text}", style=ACTIVE_STYLE)
        else:
            text.append(f"  {line_text}", style="dim" if index < active_index else None)
    return text
