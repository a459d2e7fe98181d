"""Playback orchestration between UI intent and the two backend variants.

`TransportController` is the transport authority and the only public playback
surface. It owns the single `PlaybackState`, activates the backend matching the
selected track's kind, normalizes backend events, applies the end-of-track
policy, and keeps loop-region and lyric-line state derived from the playhead.

Every backend subscription is bound to a generation. Selecting a track advances
the generation before the new backend attaches, so events (time updates, ended,
errors) still in flight from the previous track are recognized and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable, Mapping
from contextlib import suppress
from dataclasses import dataclass, replace
from functools import partial
from typing import Callable, Literal

from playhead.events import (
    LoopRegionChanged,
    LyricLineChanged,
    LyricsChanged,
    PlaybackStateChanged,
    TrackChanged,
)
from playhead.services.loop_region import DEFAULT_SPAN_S, LoopRegionManager
from playhead.services.lyric_sync import LyricSync
from playhead.services.lyrics_service import (
    NOT_FOUND,
    LyricsResult,
    LyricsService,
)
from playhead.services.playback_backend import (
    BackendError,
    BackendEvent,
    BackendReady,
    LoopRegion,
    PlaybackBackend,
    PlaybackEnded,
    PlaybackRateControl,
    PlayStateChanged,
    TimeUpdated,
    VolumeChanged,
    VolumeControl,
    has_capability,
)
from playhead.services.playlist_advancer import LoopMode, next_index, previous_index
from playhead.services.track_catalog import (
    Track,
    TrackCatalog,
    TrackDescriptor,
    TrackKind,
)
from playhead.utils.generation import GenerationCounter

logger = logging.getLogger(__name__)

STATUS = Literal["idle", "loading", "ready", "playing", "paused", "stopped", "error"]
RATE_MIN = 0.5
RATE_MAX = 4.0
RATE_STEP = 0.25
VOLUME_WRITE_DEAD_BAND = 0.01
TIME_EMIT_THRESHOLD_S = 0.1
_LOOP_MODE_CYCLE: dict[LoopMode, LoopMode] = {"off": "all", "all": "one", "one": "off"}


def _format_user_error(
    *, what_failed: str, likely_cause: str, next_step: str, detail: str | None = None
) -> str:
    message = f"{what_failed}\nLikely cause: {likely_cause}\nNext step: {next_step}"
    if detail:
        message = f"{message}\nDetails: {detail}"
    return message


@dataclass(frozen=True)
class PlaybackState:
    """Immutable snapshot of transport state published to the UI."""

    position: int = -1
    is_playing: bool = False
    current_time_s: float = 0.0
    duration_s: float = 0.0
    playback_rate: float = 1.0
    loop_mode: LoopMode = "off"
    status: STATUS = "idle"
    volume: float = 1.0
    backend_kind: TrackKind | None = None
    region_enabled: bool = False
    error: str | None = None


class TransportController:
    """Owns playback state and routes commands to the active backend."""

    def __init__(
        self,
        *,
        emit_event: Callable[[object], Awaitable[None]],
        catalog: TrackCatalog,
        backends: Mapping[TrackKind, PlaybackBackend],
        lyrics_service: LyricsService | None = None,
        default_region_span_s: float = DEFAULT_SPAN_S,
        initial_state: PlaybackState | None = None,
    ) -> None:
        self._emit_event = emit_event
        self._catalog = catalog
        self._backends = dict(backends)
        self._lyrics_service = lyrics_service
        self._state = initial_state or PlaybackState()
        self._lock = asyncio.Lock()
        self._active: PlaybackBackend | None = None
        self._generations = GenerationCounter()
        self._ended_generation: int | None = None
        self._stale_events = 0
        self._loop_regions = LoopRegionManager(
            default_span_s=default_region_span_s,
            start_region_playback=self._play_region,
            on_region_changed=self._on_region_changed,
        )
        self._lyric_sync = LyricSync()
        self._lyrics_key: tuple[str, str] | None = None
        self._lyrics_generations = GenerationCounter()
        self._lyrics_tasks: set[asyncio.Task[None]] = set()
        self._active_lyric_index = -1
        self._last_emitted_time_s = self._state.current_time_s

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def catalog(self) -> TrackCatalog:
        return self._catalog

    @property
    def active_backend(self) -> PlaybackBackend | None:
        return self._active

    @property
    def generation(self) -> int:
        return self._generations.current

    @property
    def loop_region(self) -> LoopRegion | None:
        return self._loop_regions.region

    @property
    def lyric_sync(self) -> LyricSync:
        return self._lyric_sync

    @property
    def stale_events_discarded(self) -> int:
        return self._stale_events

    @property
    def pending_lyrics_fetches(self) -> tuple[asyncio.Task[None], ...]:
        return tuple(self._lyrics_tasks)

    @property
    def current_track(self) -> Track | None:
        return self._catalog.get(self._state.position)

    async def start(self) -> None:
        """Start every distinct backend engine."""
        for backend in self._distinct_backends():
            await backend.start()
            logger.info("Started %s backend", backend.kind)

    async def shutdown(self) -> None:
        """Detach from backends, cancel lyric fetches, stop engines."""
        self._generations.advance()
        self._lyrics_generations.advance()
        for task in list(self._lyrics_tasks):
            task.cancel()
        for task in list(self._lyrics_tasks):
            with suppress(asyncio.CancelledError):
                await task
        self._lyrics_tasks.clear()
        if self._active is not None:
            self._active.set_event_handler(None)
            self._active = None
        for backend in self._distinct_backends():
            with suppress(Exception):
                await backend.shutdown()

    async def add_tracks(
        self, descriptors: Iterable[TrackDescriptor], *, autoplay: bool = True
    ) -> int | None:
        """Append a batch (title order) and optionally start its first track."""
        first_index = self._catalog.extend(descriptors, sort_by_title=True)
        if first_index is None:
            return None
        logger.info("Added tracks starting at index %d", first_index)
        if autoplay:
            await self.select_track(first_index)
        else:
            await self._emit_state()
        return first_index

    async def select_track(self, index: int, *, autoplay: bool = True) -> None:
        """Activate the backend for track `index`, load it, and optionally play."""
        track = self._catalog.get(index)
        if track is None:
            logger.debug("Ignoring selection of missing index %d", index)
            return
        incoming = self._backends.get(track.kind)
        async with self._lock:
            generation = self._generations.advance()
            outgoing = self._active
            self._active = None
            self._ended_generation = None
        await self._detach(outgoing)

        if incoming is None:
            async with self._lock:
                self._state = replace(
                    self._state,
                    position=index,
                    is_playing=False,
                    current_time_s=0.0,
                    duration_s=track.duration_hint or 0.0,
                    status="error",
                    backend_kind=None,
                    region_enabled=False,
                    error=_format_user_error(
                        what_failed=f"No playback backend for {track.kind} sources.",
                        likely_cause="No backend for this source kind is configured.",
                        next_step="Restart with a backend that supports this source.",
                    ),
                )
            await self._loop_regions.attach(None)
            await self._emit_event(TrackChanged(index, track))
            await self._emit_state()
            return

        incoming.set_event_handler(partial(self._on_backend_event, generation))
        async with self._lock:
            self._active = incoming
            self._state = replace(
                self._state,
                position=index,
                is_playing=False,
                current_time_s=0.0,
                duration_s=track.duration_hint or 0.0,
                status="loading",
                backend_kind=incoming.kind,
                region_enabled=has_capability(incoming, "region_loop"),
                error=None,
            )
            self._last_emitted_time_s = 0.0
        await self._loop_regions.attach(incoming)
        self._refresh_lyrics(track)
        await self._emit_event(TrackChanged(index, track))
        await self._emit_state()
        logger.info(
            "Selected track %d (%s) on %s backend", index, track.title, incoming.kind
        )

        await self._apply_engine_settings(incoming)
        try:
            await incoming.load(track)
        except Exception as exc:
            logger.warning("Load failed for %s: %s", track.source_ref, exc)
            await self._report_error(generation, str(exc), during_load=True)
            return
        if not autoplay or not self._generations.is_current(generation):
            return
        if self._state.status == "error":
            return
        await self._play_active(generation)

    async def play(self) -> None:
        """Resume playback; selects the first track when nothing is selected."""
        if self._state.position < 0 or self._active is None:
            if self._state.position < 0 and len(self._catalog) == 0:
                return
            await self.select_track(max(0, self._state.position))
            return
        if self._state.status == "error":
            await self.select_track(self._state.position)
            return
        if self._state.is_playing:
            return
        await self._play_active(self._generations.current)

    async def pause(self) -> None:
        backend = self._active
        if backend is None:
            return
        await backend.pause()
        async with self._lock:
            status: STATUS = (
                "paused"
                if self._state.status in {"playing", "ready", "loading"}
                else self._state.status
            )
            self._state = replace(self._state, is_playing=False, status=status)
        await self._emit_state()

    async def toggle_play(self) -> None:
        if self._state.is_playing:
            await self.pause()
        else:
            await self.play()

    async def seek(self, position_s: float) -> None:
        """Seek to an absolute time; the next backend time update is authoritative."""
        backend = self._active
        if backend is None:
            return
        async with self._lock:
            target = _clamp_to_duration(position_s, self._state.duration_s)
            self._state = replace(self._state, current_time_s=target)
        await backend.seek(target)
        await self._emit_state()

    async def skip(self, delta_s: float) -> None:
        await self.seek(self._state.current_time_s + delta_s)

    async def set_playback_rate(self, rate: float) -> None:
        backend = self._active
        if not isinstance(backend, PlaybackRateControl):
            logger.debug("Playback rate unsupported by active backend; ignoring")
            return
        async with self._lock:
            self._state = replace(
                self._state, playback_rate=_clamp_float(rate, RATE_MIN, RATE_MAX)
            )
            rate = self._state.playback_rate
        await backend.set_playback_rate(rate)
        await self._emit_state()

    async def change_speed(self, delta_steps: int) -> None:
        rate = self._state.playback_rate + delta_steps * RATE_STEP
        await self.set_playback_rate(rate)

    async def reset_speed(self) -> None:
        await self.set_playback_rate(1.0)

    async def set_volume(self, volume: float) -> None:
        volume = _clamp_float(volume, 0.0, 1.0)
        async with self._lock:
            self._state = replace(self._state, volume=volume)
        backend = self._active
        if isinstance(backend, VolumeControl):
            await self._write_volume(backend, volume)
        await self._emit_state()

    async def next(self) -> None:
        """Manual skip forward; stops on the last track when not looping."""
        target = next_index(
            len(self._catalog), self._state.position, self._state.loop_mode
        )
        if target is None:
            await self._stop_on_last()
            return
        await self.select_track(target)

    async def previous(self) -> None:
        target = previous_index(
            len(self._catalog), self._state.position, self._state.loop_mode
        )
        if target is None:
            return
        if target == self._state.position and self._active is not None:
            await self.play()
            return
        await self.select_track(target)

    async def cycle_loop_mode(self) -> None:
        """Cycle off -> all -> one -> off; leaving looping clears the region."""
        async with self._lock:
            mode = _LOOP_MODE_CYCLE[self._state.loop_mode]
            self._state = replace(self._state, loop_mode=mode)
        if mode == "off":
            await self._loop_regions.clear()
        await self._emit_state()

    async def set_loop_boundary_a(self) -> None:
        now = await self._authoritative_time()
        await self._loop_regions.set_boundary_a(now, self._state.duration_s)

    async def set_loop_boundary_b(self) -> None:
        now = await self._authoritative_time()
        await self._loop_regions.set_boundary_b(now, self._state.duration_s)

    async def create_loop_region(self, start_s: float, end_s: float) -> None:
        """Replace any region with `[start_s, end_s]` and loop it."""
        await self._loop_regions.create(start_s, end_s, self._state.duration_s)

    async def update_loop_region(self, start_s: float, end_s: float) -> None:
        """Apply a drag/resize; re-seek only if the playhead fell outside."""
        await self._loop_regions.update(start_s, end_s, self._state.duration_s)
        region = self._loop_regions.region
        if region is None:
            return
        now = await self._authoritative_time()
        if not region.contains(now):
            await self.seek(region.start_s)

    async def clear_loop_region(self) -> None:
        await self._loop_regions.clear()

    async def _on_backend_event(self, generation: int, event: BackendEvent) -> None:
        """Normalize backend events into state; drop events from old subscriptions."""
        if not self._generations.is_current(generation):
            self._stale_events += 1
            logger.debug(
                "Discarding stale %s (generation=%s current=%s)",
                type(event).__name__,
                generation,
                self._generations.current,
            )
            return
        if isinstance(event, BackendError):
            await self._report_error(
                generation, event.message, during_load=self._state.status == "loading"
            )
            return
        emit = False
        handle_end = False
        lyric_index: int | None = None
        async with self._lock:
            if isinstance(event, TimeUpdated):
                position = max(0.0, event.position_s)
                duration = max(0.0, event.duration_s) or self._state.duration_s
                if duration != self._state.duration_s:
                    self._state = replace(self._state, duration_s=duration)
                    emit = True
                if position != self._state.current_time_s:
                    self._state = replace(self._state, current_time_s=position)
                    moved = abs(position - self._last_emitted_time_s)
                    if moved >= TIME_EMIT_THRESHOLD_S:
                        emit = True
                index = self._lyric_sync.active_index(position)
                if index != self._active_lyric_index:
                    self._active_lyric_index = index
                    lyric_index = index
            elif isinstance(event, BackendReady):
                duration = event.duration_s if event.duration_s > 0 else None
                status = self._state.status
                self._state = replace(
                    self._state,
                    duration_s=duration or self._state.duration_s,
                    status="ready" if status == "loading" else status,
                )
                emit = True
            elif isinstance(event, PlayStateChanged):
                if event.playing:
                    status: STATUS = "playing"
                elif self._state.status == "playing":
                    status = "paused"
                else:
                    status = self._state.status
                if (
                    event.playing != self._state.is_playing
                    or status != self._state.status
                ):
                    self._state = replace(
                        self._state, is_playing=event.playing, status=status
                    )
                    emit = True
            elif isinstance(event, VolumeChanged):
                volume = _clamp_float(event.volume, 0.0, 1.0)
                if volume != self._state.volume:
                    self._state = replace(self._state, volume=volume)
                    emit = True
            elif isinstance(event, PlaybackEnded):
                if self._ended_generation == generation:
                    logger.debug(
                        "Duplicate end-of-track ignored (generation=%s)", generation
                    )
                else:
                    self._ended_generation = generation
                    handle_end = True
        if emit:
            await self._emit_state()
        if lyric_index is not None:
            await self._emit_event(LyricLineChanged(lyric_index))
        if handle_end:
            await self._handle_track_end(generation)

    async def _handle_track_end(self, generation: int) -> None:
        """Apply the loop-mode policy after a natural end of media."""
        async with self._lock:
            mode = self._state.loop_mode
            position = self._state.position
        backend = self._active
        if backend is None or not self._generations.is_current(generation):
            return
        logger.debug("Track %d ended (loop_mode=%s)", position, mode)
        if mode == "one":
            await backend.seek(0.0)
            await self._play_active(generation)
            return
        target = next_index(len(self._catalog), position, mode)
        if target is None:
            await self._stop_on_last()
            return
        await self.select_track(target)

    async def _stop_on_last(self) -> None:
        backend = self._active
        if backend is not None and self._state.is_playing:
            await backend.pause()
        async with self._lock:
            self._state = replace(self._state, is_playing=False, status="stopped")
        await self._emit_state()

    async def _play_active(self, generation: int) -> None:
        backend = self._active
        if backend is None:
            return
        async with self._lock:
            # A restart re-arms end-of-track handling for this generation.
            self._ended_generation = None
        try:
            await backend.play()
        except Exception as exc:
            logger.warning("Backend play failed: %s", exc)
            await self._report_error(generation, str(exc), during_load=False)
            return
        if not self._generations.is_current(generation):
            return
        async with self._lock:
            if self._state.status == "error":
                return
            self._state = replace(self._state, is_playing=True, status="playing")
        await self._emit_state()

    async def _play_region(self, region: LoopRegion) -> None:
        await self.seek(region.start_s)
        if not self._state.is_playing:
            await self._play_active(self._generations.current)

    async def _on_region_changed(self, region: LoopRegion | None) -> None:
        await self._emit_event(LoopRegionChanged(region))

    async def _report_error(
        self, generation: int, detail: str, *, during_load: bool
    ) -> None:
        if not self._generations.is_current(generation):
            return
        if during_load:
            message = _format_user_error(
                what_failed="Failed to load the selected track.",
                likely_cause="The source is missing, unsupported, or unreachable.",
                next_step="Check the file path or stream URL, then retry playback.",
                detail=detail,
            )
        else:
            message = _format_user_error(
                what_failed="Playback backend reported an error.",
                likely_cause="Backend runtime, codec, or network failure.",
                next_step="Check backend setup and the source, then retry playback.",
                detail=detail,
            )
        logger.warning("Playback error: %s", detail)
        async with self._lock:
            self._state = replace(
                self._state, is_playing=False, status="error", error=message
            )
        await self._emit_state()

    async def _detach(self, backend: PlaybackBackend | None) -> None:
        # The outgoing media is silenced even when the same engine loads next.
        if backend is None:
            return
        backend.set_event_handler(None)
        try:
            await backend.pause()
        except Exception as exc:
            logger.warning("Pausing outgoing %s backend failed: %s", backend.kind, exc)

    async def _apply_engine_settings(self, backend: PlaybackBackend) -> None:
        try:
            if isinstance(backend, PlaybackRateControl):
                await backend.set_playback_rate(self._state.playback_rate)
            if isinstance(backend, VolumeControl):
                await self._write_volume(backend, self._state.volume)
        except Exception as exc:
            logger.warning("Applying engine settings failed: %s", exc)

    async def _write_volume(self, backend: VolumeControl, volume: float) -> None:
        current = await backend.get_volume()
        if abs(current - volume) > VOLUME_WRITE_DEAD_BAND:
            await backend.set_volume(volume)

    async def _authoritative_time(self) -> float:
        backend = self._active
        if backend is None:
            return self._state.current_time_s
        try:
            return await backend.get_current_time()
        except Exception as exc:
            logger.debug("Backend time unavailable, using last update: %s", exc)
            return self._state.current_time_s

    def _refresh_lyrics(self, track: Track) -> None:
        key = (track.artist, track.title)
        if key == self._lyrics_key:
            return
        self._lyrics_key = key
        generation = self._lyrics_generations.advance()
        self._lyric_sync.clear()
        self._active_lyric_index = -1
        if self._lyrics_service is None:
            return
        task = asyncio.create_task(
            self._fetch_lyrics(
                self._lyrics_service, generation, track.artist, track.title
            )
        )
        self._lyrics_tasks.add(task)
        task.add_done_callback(self._lyrics_tasks.discard)

    async def _fetch_lyrics(
        self, service: LyricsService, generation: int, artist: str, title: str
    ) -> None:
        await self._emit_event(LyricsChanged((), False, None))
        try:
            outcome = await service.fetch(artist, title)
        except Exception:
            logger.exception("Lyrics lookup crashed for %r", title)
            outcome = None
        if not self._lyrics_generations.is_current(generation):
            logger.debug("Discarding lyrics for replaced track %r", title)
            return
        if isinstance(outcome, LyricsResult):
            self._lyric_sync.replace(outcome.lines, synced=outcome.synced)
            await self._emit_event(LyricsChanged(outcome.lines, outcome.synced))
        else:
            self._lyric_sync.clear()
            message = outcome.message if outcome is not None else NOT_FOUND
            await self._emit_event(LyricsChanged((), False, message))
        index = self._lyric_sync.active_index(self._state.current_time_s)
        self._active_lyric_index = index
        await self._emit_event(LyricLineChanged(index))

    async def _emit_state(self) -> None:
        self._last_emitted_time_s = self._state.current_time_s
        await self._emit_event(PlaybackStateChanged(self._state))

    def _distinct_backends(self) -> list[PlaybackBackend]:
        seen: set[int] = set()
        unique: list[PlaybackBackend] = []
        for backend in self._backends.values():
            if id(backend) in seen:
                continue
            seen.add(id(backend))
            unique.append(backend)
        return unique


def _clamp_float(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(value, max_value))


def _clamp_to_duration(position_s: float, duration_s: float) -> float:
    if duration_s > 0:
        return _clamp_float(position_s, 0.0, duration_s)
    return max(0.0, position_s)
