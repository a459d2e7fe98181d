"""Playback backend contracts and event payloads.

`TransportController` depends on this protocol to stay backend-agnostic.
Concrete implementations (local VLC engine, remote stream surface, fakes)
translate engine-specific behavior into these shared commands and events.
Optional features are separate `runtime_checkable` protocols; callers query
them through `has_capability` instead of branching on the backend type.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

from playhead.services.track_catalog import Track, TrackKind

Capability = Literal["playback_rate", "region_loop", "volume"]


@dataclass(frozen=True)
class BackendEvent:
    """Marker base type for backend-originated events."""

    pass


@dataclass(frozen=True)
class BackendReady(BackendEvent):
    """Loaded media is decodable/streamable; duration in seconds."""

    duration_s: float


@dataclass(frozen=True)
class TimeUpdated(BackendEvent):
    """Transport position update in seconds."""

    position_s: float
    duration_s: float


@dataclass(frozen=True)
class PlaybackEnded(BackendEvent):
    """Natural end of the loaded media."""

    pass


@dataclass(frozen=True)
class PlayStateChanged(BackendEvent):
    """Engine started or stopped producing audio."""

    playing: bool


@dataclass(frozen=True)
class VolumeChanged(BackendEvent):
    """Volume observed on the engine side, normalized to [0.0, 1.0]."""

    volume: float


@dataclass(frozen=True)
class BackendError(BackendEvent):
    """Backend-reported load or runtime failure."""

    message: str


@dataclass(frozen=True)
class LoopRegion:
    """Bounded sub-range of a track, in seconds."""

    start_s: float
    end_s: float

    @property
    def span_s(self) -> float:
        return self.end_s - self.start_s

    def contains(self, position_s: float) -> bool:
        return self.start_s <= position_s < self.end_s


BackendEventHandler = Callable[[BackendEvent], Awaitable[None]]


class PlaybackBackend(Protocol):
    """Playback engine protocol consumed by `TransportController`."""

    @property
    def kind(self) -> TrackKind: ...

    def set_event_handler(self, handler: BackendEventHandler | None) -> None: ...

    async def start(self) -> None: ...

    async def shutdown(self) -> None: ...

    async def load(self, track: Track) -> None: ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def seek(self, position_s: float) -> None: ...

    async def get_current_time(self) -> float: ...

    async def get_duration(self) -> float: ...


@runtime_checkable
class PlaybackRateControl(Protocol):
    """Optional capability: arbitrary playback rate."""

    async def set_playback_rate(self, rate: float) -> None: ...


@runtime_checkable
class RegionLoopControl(Protocol):
    """Optional capability: gapless repeat of a bounded region."""

    async def set_loop_region(self, region: LoopRegion | None) -> None: ...


@runtime_checkable
class VolumeControl(Protocol):
    """Optional capability: read/write output volume in [0.0, 1.0]."""

    async def get_volume(self) -> float: ...

    async def set_volume(self, volume: float) -> None: ...


_CAPABILITY_PROTOCOLS: dict[Capability, type] = {
    "playback_rate": PlaybackRateControl,
    "region_loop": RegionLoopControl,
    "volume": VolumeControl,
}


def has_capability(backend: object | None, capability: Capability) -> bool:
    """Return whether `backend` implements the named optional capability."""
    if backend is None:
        return False
    return isinstance(backend, _CAPABILITY_PROTOCOLS[capability])


def region_wrap_target(position_s: float, region: LoopRegion | None) -> float | None:
    """Return the re-seek target when the playhead has reached the region end."""
    if region is None or region.span_s <= 0:
        return None
    if position_s >= region.end_s:
        return region.start_s
    return None
