"""Transport status pane rendered as rich text lines."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.widget import Widget
from textual.widgets import Static

from playhead.services.playback_backend import LoopRegion
from playhead.services.transport_controller import PlaybackState
from playhead.utils.time_format import format_time_pair_s, format_time_s

LABEL_STYLE = "bold #F2C94C"
NOTICE_STYLE = "bold #FF5A36"
BAR_WIDTH = 30


class StatusPane(Widget):
    DEFAULT_CSS = """
    StatusPane {
        height: auto;
    }

    #time-line, #status-line, #notice-line {
        height: 1;
        width: 1fr;
        overflow: hidden;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._time_line = Static("", id="time-line")
        self._status_line = Static("", id="status-line")
        self._notice_line = Static("", id="notice-line")
        self._state: PlaybackState | None = None
        self._region: LoopRegion | None = None
        self._notice: str | None = None
        self._rendered_status = Text()

    def compose(self) -> ComposeResult:
        yield self._time_line
        yield self._status_line
        yield self._notice_line

    @property
    def status_text(self) -> str:
        return self._rendered_status.plain

    def update_state(self, state: PlaybackState) -> None:
        self._state = state
        self._refresh()

    def set_region(self, region: LoopRegion | None) -> None:
        self._region = region
        self._refresh()

    def set_notice(self, notice: str | None) -> None:
        self._notice = notice.strip() if notice else None
        self._refresh()

    def _refresh(self) -> None:
        state = self._state
        if state is None:
            return
        self._time_line.update(render_time_line(state, self._region))
        self._rendered_status = render_status_line(state, self._region)
        self._status_line.update(self._rendered_status)
        notice = Text()
        if state.status == "error" and state.error:
            notice.append("Error: ", style=NOTICE_STYLE)
            notice.append(state.error.splitlines()[0])
        elif self._notice:
            notice.append("Notice: ", style=NOTICE_STYLE)
            notice.append(self._notice)
        self._notice_line.update(notice)


def render_time_line(state: PlaybackState, region: LoopRegion | None) -> Text:
    pos_text, dur_text = format_time_pair_s(state.current_time_s, state.duration_s)
    text = Text()
    text.append(f"{pos_text}/{dur_text} ")
    text.append_text(_progress_bar(state, region))
    return text


def render_status_line(state: PlaybackState, region: LoopRegion | None) -> Text:
    text = Text()
    for label, value in (
        ("Status", state.status),
        ("Loop", state.loop_mode),
        ("Vol", f"{round(state.volume * 100)}%"),
    ):
        text.append(f"{label}: ", style=LABEL_STYLE)
        text.append(value)
        text.append(" | ")
    text.append("Speed: ", style=LABEL_STYLE)
    rate = f"{state.playback_rate:.2f}x" if state.backend_kind == "local" else "n/a"
    text.append(rate)
    if region is not None:
        text.append(" | ")
        text.append("A-B: ", style=LABEL_STYLE)
        text.append(f"{format_time_s(region.start_s)}-{format_time_s(region.end_s)}")
    if state.backend_kind is not None:
        text.append(" | ")
        text.append(state.backend_kind, style="dim")
    return text


def _progress_bar(state: PlaybackState, region: LoopRegion | None) -> Text:
    bar = Text()
    if state.duration_s <= 0:
        bar.append("-" * BAR_WIDTH, style="dim")
        return bar
    head = _cell(state.current_time_s, state.duration_s)
    span = range(0)
    if region is not None:
        span = range(
            _cell(region.start_s, state.duration_s),
            _cell(region.end_s, state.duration_s) + 1,
        )
    for cell in range(BAR_WIDTH):
        char = "#" if cell < head else ("|" if cell == head else "-")
        bar.append(char, style="reverse" if cell in span else None)
    return bar


def _cell(position_s: float, duration_s: float) -> int:
    fraction = max(0.0, min(position_s / duration_s, 1.0))
    return min(BAR_WIDTH - 1, int(fraction * BAR_WIDTH))
