"""Fake playback engines for deterministic testing and `--backend fake`."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from contextlib import suppress
from dataclasses import dataclass
from typing import Literal

from .playback_backend import (
    BackendError,
    BackendEvent,
    BackendEventHandler,
    BackendReady,
    LoopRegion,
    PlaybackEnded,
    PlayStateChanged,
    TimeUpdated,
    region_wrap_target,
)
from .remote_backend import SurfaceState
from .track_catalog import Track, TrackKind

RATE_MIN = 0.5
RATE_MAX = 4.0

_LocalStatus = Literal["idle", "loading", "ready", "playing", "paused", "ended"]


@dataclass
class _PlaybackState:
    status: _LocalStatus = "idle"
    position_s: float = 0.0
    duration_s: float = 0.0
    volume: float = 1.0
    rate: float = 1.0
    region: LoopRegion | None = None


class FakeLocalBackend:
    """In-memory local engine that simulates decode readiness and progress."""

    def __init__(
        self,
        *,
        tick_interval_ms: int = 250,
        default_duration_s: float = 180.0,
        fail_sources: Iterable[str] = (),
    ) -> None:
        self._tick_interval_ms = tick_interval_ms
        self._default_duration_s = default_duration_s
        self._fail_sources = frozenset(fail_sources)
        self._state = _PlaybackState()
        self._handler: BackendEventHandler | None = None
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.loaded: list[str] = []

    @property
    def kind(self) -> TrackKind:
        return "local"

    def set_event_handler(self, handler: BackendEventHandler | None) -> None:
        self._handler = handler

    async def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._ticker_loop())

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def load(self, track: Track) -> None:
        async with self._lock:
            self._state.status = "loading"
            self._state.position_s = 0.0
            self._state.region = None
        self.loaded.append(track.source_ref)
        if track.source_ref in self._fail_sources:
            async with self._lock:
                self._state.status = "idle"
            await self._emit(BackendError(f"Unable to decode {track.source_ref}"))
            return
        duration = track.duration_hint or self._default_duration_s
        async with self._lock:
            self._state.duration_s = duration
            self._state.status = "ready"
        await self._emit(BackendReady(duration))

    async def play(self) -> None:
        async with self._lock:
            if self._state.status not in {"ready", "paused", "ended"}:
                return
            if self._state.status == "ended":
                self._state.position_s = 0.0
            self._state.status = "playing"
        await self._emit(PlayStateChanged(True))

    async def pause(self) -> None:
        async with self._lock:
            if self._state.status != "playing":
                return
            self._state.status = "paused"
        await self._emit(PlayStateChanged(False))

    async def seek(self, position_s: float) -> None:
        async with self._lock:
            pos = _clamp_float(position_s, 0.0, self._state.duration_s)
            self._state.position_s = pos
            if self._state.status == "ended":
                self._state.status = "paused"
            duration = self._state.duration_s
        await self._emit(TimeUpdated(pos, duration))

    async def set_playback_rate(self, rate: float) -> None:
        async with self._lock:
            self._state.rate = _clamp_float(rate, RATE_MIN, RATE_MAX)

    async def set_loop_region(self, region: LoopRegion | None) -> None:
        async with self._lock:
            self._state.region = region

    async def get_volume(self) -> float:
        async with self._lock:
            return self._state.volume

    async def set_volume(self, volume: float) -> None:
        async with self._lock:
            self._state.volume = _clamp_float(volume, 0.0, 1.0)

    async def get_current_time(self) -> float:
        async with self._lock:
            return self._state.position_s

    async def get_duration(self) -> float:
        async with self._lock:
            return self._state.duration_s

    @property
    def rate(self) -> float:
        return self._state.rate

    @property
    def region(self) -> LoopRegion | None:
        return self._state.region

    async def advance(self, seconds: float) -> None:
        """Move the playhead as if `seconds` of wall time elapsed."""
        events: list[BackendEvent] = []
        async with self._lock:
            if self._state.status != "playing" or self._state.duration_s <= 0:
                return
            next_pos = self._state.position_s + seconds * self._state.rate
            wrap_to = region_wrap_target(next_pos, self._state.region)
            if wrap_to is not None:
                next_pos = wrap_to
            elif next_pos >= self._state.duration_s:
                next_pos = self._state.duration_s
                self._state.status = "ended"
            self._state.position_s = next_pos
            events.append(TimeUpdated(next_pos, self._state.duration_s))
            if self._state.status == "ended":
                events.append(PlayStateChanged(False))
                events.append(PlaybackEnded())
        for event in events:
            await self._emit(event)

    async def _ticker_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                await asyncio.sleep(self._tick_interval_ms / 1000)
                await self.advance(self._tick_interval_ms / 1000)
        except asyncio.CancelledError:
            pass

    async def _emit(self, event: BackendEvent) -> None:
        if self._handler is None:
            return
        await self._handler(event)


class FakeRemoteSurface:
    """In-memory stand-in for an embedded remote player.

    Progress is derived from `clock`, so the surface advances on its own the
    way a real stream does and can only be observed by polling.
    """

    def __init__(
        self,
        *,
        default_duration_s: float = 240.0,
        fail_sources: Iterable[str] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_duration_s = default_duration_s
        self._fail_sources = frozenset(fail_sources)
        self._clock = clock
        self._anchor = clock()
        self.state: SurfaceState = "unstarted"
        self.position_s = 0.0
        self.duration_s = 0.0
        self.volume = 1.0
        self.source_ref: str | None = None
        self.volume_writes: list[float] = []

    async def load(self, source_ref: str) -> None:
        if source_ref in self._fail_sources:
            self.state = "error"
            raise RuntimeError(f"Stream unavailable: {source_ref}")
        self.source_ref = source_ref
        self.position_s = 0.0
        self.duration_s = self._default_duration_s
        self.state = "buffering"

    async def play(self) -> None:
        self._sync()
        if self.state in {"buffering", "paused", "ended", "unstarted"}:
            if self.state == "ended":
                self.position_s = 0.0
            self.state = "playing"
            self._anchor = self._clock()

    async def pause(self) -> None:
        self._sync()
        if self.state == "playing":
            self.state = "paused"

    async def seek_to(self, position_s: float) -> None:
        self._sync()
        self.position_s = _clamp_float(position_s, 0.0, self.duration_s)
        if self.state == "ended":
            self.state = "paused"
        self._anchor = self._clock()

    async def get_current_time(self) -> float:
        self._sync()
        return self.position_s

    async def get_duration(self) -> float:
        return self.duration_s

    async def get_volume(self) -> float:
        return self.volume

    async def set_volume(self, volume: float) -> None:
        self.volume_writes.append(volume)
        self.volume = _clamp_float(volume, 0.0, 1.0)

    async def get_state(self) -> SurfaceState:
        self._sync()
        return self.state

    async def close(self) -> None:
        self.state = "unstarted"
        self.source_ref = None

    def set_external_volume(self, volume: float) -> None:
        """Simulate a volume change made outside the app (hardware keys)."""
        self.volume = _clamp_float(volume, 0.0, 1.0)

    def _sync(self) -> None:
        now = self._clock()
        if self.state == "playing":
            self.position_s += max(0.0, now - self._anchor)
            if self.duration_s > 0 and self.position_s >= self.duration_s:
                self.position_s = self.duration_s
                self.state = "ended"
        self._anchor = now


def _clamp_float(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(value, max_value))
