"""Cross-module event/message models for service and UI communication.

Dataclass events are emitted by `TransportController`, while `textual.message`
types are used for widget-level interaction routing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from textual.message import Message

if TYPE_CHECKING:
    from playhead.services.lyrics_parser import LyricLine
    from playhead.services.playback_backend import LoopRegion
    from playhead.services.track_catalog import Track
    from playhead.services.transport_controller import PlaybackState


@dataclass(frozen=True)
class PlaybackStateChanged:
    """Service event emitted when the published playback snapshot changes."""

    state: PlaybackState


@dataclass(frozen=True)
class TrackChanged:
    """Service event emitted when a different catalog track becomes active."""

    index: int
    track: Track | None


@dataclass(frozen=True)
class LoopRegionChanged:
    region: LoopRegion | None


@dataclass(frozen=True)
class LyricsChanged:
    """Service event carrying the lyric lines for the active track.

    `status` is set instead of lines when nothing could be found.
    """

    lines: tuple[LyricLine, ...]
    synced: bool
    status: str | None = None


@dataclass(frozen=True)
class LyricLineChanged:
    index: int


class TrackRowActivated(Message):
    """UI message requesting playback of a catalog row."""

    def __init__(self, index: int) -> None:
        super().__init__()
        self.index = index
