"""Remote stream backend driven by polling an embedded player surface.

Remote players expose no reliable push events for progress or volume, so this
adapter polls the surface on a fixed cadence (at most every 500 ms) and turns
the readings into the same events the local engine pushes. Each poll is tagged
with the load generation it was issued for; a reading that resolves after a
newer `load` is dropped so it can never describe the wrong track.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Literal, Protocol

from playhead.services.playback_backend import (
    BackendError,
    BackendEvent,
    BackendEventHandler,
    BackendReady,
    PlaybackEnded,
    PlayStateChanged,
    TimeUpdated,
    VolumeChanged,
)
from playhead.services.track_catalog import Track, TrackKind
from playhead.utils.generation import GenerationCounter

logger = logging.getLogger(__name__)

SurfaceState = Literal["unstarted", "buffering", "playing", "paused", "ended", "error"]
POLL_INTERVAL_MIN_S = 0.05
POLL_INTERVAL_MAX_S = 0.5
VOLUME_DEAD_BAND = 0.05
# While paused only the volume is sampled, at a slower cadence.
PAUSED_POLL_INTERVAL_S = 1.0


class RemotePlayerSurface(Protocol):
    """Minimal control surface of an embedded remote player."""

    async def load(self, source_ref: str) -> None: ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def seek_to(self, position_s: float) -> None: ...

    async def get_current_time(self) -> float: ...

    async def get_duration(self) -> float: ...

    async def get_volume(self) -> float: ...

    async def set_volume(self, volume: float) -> None: ...

    async def get_state(self) -> SurfaceState: ...

    async def close(self) -> None: ...


class RemoteStreamBackend:
    """Backend adapter for streamed sources; no rate control, no region loop."""

    def __init__(
        self,
        surface: RemotePlayerSurface,
        *,
        poll_interval_s: float = POLL_INTERVAL_MAX_S,
        volume_dead_band: float = VOLUME_DEAD_BAND,
    ) -> None:
        self._surface = surface
        self._poll_interval = max(
            POLL_INTERVAL_MIN_S, min(POLL_INTERVAL_MAX_S, float(poll_interval_s))
        )
        self._volume_dead_band = max(0.0, volume_dead_band)
        self._handler: BackendEventHandler | None = None
        self._loads = GenerationCounter()
        self._poll_task: asyncio.Task[None] | None = None
        self._volume_only = False
        self._ended_generation: int | None = None
        self._volume = 1.0

    @property
    def kind(self) -> TrackKind:
        return "remote"

    @property
    def load_generation(self) -> int:
        return self._loads.current

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def watching_volume(self) -> bool:
        """True while paused and sampling only the surface volume."""
        return self.polling and self._volume_only

    def set_event_handler(self, handler: BackendEventHandler | None) -> None:
        self._handler = handler

    async def start(self) -> None:
        try:
            self._volume = await self._surface.get_volume()
        except Exception as exc:
            logger.warning("Remote surface volume unavailable at start: %s", exc)

    async def shutdown(self) -> None:
        self._loads.advance()
        await self._stop_polling()
        with suppress(Exception):
            await self._surface.close()

    async def load(self, track: Track) -> None:
        generation = self._loads.advance()
        await self._stop_polling()
        self._ended_generation = None
        try:
            await self._surface.load(track.source_ref)
            duration = await self._surface.get_duration()
        except Exception as exc:
            if self._loads.is_current(generation):
                message = str(exc) or "Remote stream failed to load."
                await self._emit(BackendError(message))
            return
        if not self._loads.is_current(generation):
            logger.debug(
                "Remote load superseded before ready (generation=%s)", generation
            )
            return
        if duration <= 0:
            duration = track.duration_hint or 0.0
        await self._emit(BackendReady(duration))

    async def play(self) -> None:
        await self._surface.play()
        self._ended_generation = None
        if self.watching_volume:
            await self._stop_polling()
        self._start_polling()
        await self._emit(PlayStateChanged(True))

    async def pause(self) -> None:
        await self._surface.pause()
        await self._stop_polling()
        self._start_polling(volume_only=True)
        await self._emit(PlayStateChanged(False))

    async def seek(self, position_s: float) -> None:
        await self._surface.seek_to(max(0.0, position_s))

    async def get_current_time(self) -> float:
        return await self._surface.get_current_time()

    async def get_duration(self) -> float:
        return await self._surface.get_duration()

    async def get_volume(self) -> float:
        return self._volume

    async def set_volume(self, volume: float) -> None:
        volume = max(0.0, min(1.0, volume))
        # Record before writing so the next poll sees no drift.
        self._volume = volume
        await self._surface.set_volume(volume)

    async def poll_once(self, generation: int) -> bool:
        """Sample the surface once; return False when polling should stop."""
        try:
            position = await self._surface.get_current_time()
            duration = await self._surface.get_duration()
            volume = await self._surface.get_volume()
            state = await self._surface.get_state()
        except Exception as exc:
            logger.warning("Remote poll failed: %s", exc)
            return self._loads.is_current(generation)
        if not self._loads.is_current(generation):
            logger.debug(
                "Discarding remote poll for superseded load (generation=%s current=%s)",
                generation,
                self._loads.current,
            )
            return False
        events: list[BackendEvent] = [
            TimeUpdated(max(0.0, position), max(0.0, duration))
        ]
        if abs(volume - self._volume) > self._volume_dead_band:
            self._volume = volume
            events.append(VolumeChanged(volume))
        keep_polling = True
        if state == "ended" and self._ended_generation != generation:
            self._ended_generation = generation
            events.append(PlayStateChanged(False))
            events.append(PlaybackEnded())
            keep_polling = False
        elif state == "error":
            events.append(BackendError("Remote player reported a playback error."))
            keep_polling = False
        for event in events:
            await self._emit(event)
        return keep_polling

    async def poll_volume_once(self, generation: int) -> bool:
        """Sample only the surface volume; used while playback is paused."""
        try:
            volume = await self._surface.get_volume()
        except Exception as exc:
            logger.warning("Remote volume poll failed: %s", exc)
            return self._loads.is_current(generation)
        if not self._loads.is_current(generation):
            return False
        if abs(volume - self._volume) > self._volume_dead_band:
            self._volume = volume
            await self._emit(VolumeChanged(volume))
        return True

    def _start_polling(self, *, volume_only: bool = False) -> None:
        if self.polling and self._poll_task is not asyncio.current_task():
            return
        self._volume_only = volume_only
        self._poll_task = asyncio.create_task(
            self._poll_loop(self._loads.current, volume_only=volume_only)
        )

    async def _stop_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # Called from an event handler running inside the poll task; the
            # loop exits on its own once it is no longer the registered task.
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def _poll_loop(self, generation: int, *, volume_only: bool) -> None:
        interval = PAUSED_POLL_INTERVAL_S if volume_only else self._poll_interval
        sample = self.poll_volume_once if volume_only else self.poll_once
        try:
            while (
                self._loads.is_current(generation)
                and self._poll_task is asyncio.current_task()
            ):
                await asyncio.sleep(interval)
                if not await sample(generation):
                    return
        except asyncio.CancelledError:
            return

    async def _emit(self, event: BackendEvent) -> None:
        if self._handler is None:
            return
        await self._handler(event)
