"""Local audio backend using python-vlc on a dedicated engine thread.

Commands are queued to the engine thread and answered through asyncio futures.
Between commands the thread samples libVLC at a high rate and pushes time
updates, readiness, and end-of-media events back onto the event loop. While a
loop region is armed, reaching its end re-seeks to its start on the engine
thread itself, so the wrap happens without a round-trip and never surfaces as
an end-of-track event.

Every emission carries the load generation of the media it describes. Events
for media loaded before the current subscriber attached, or before a newer
`load`, are dropped on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NamedTuple

from playhead.services.playback_backend import (
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
from playhead.services.track_catalog import Track, TrackKind
from playhead.utils.generation import GenerationCounter

logger = logging.getLogger(__name__)

RATE_MIN = 0.5
RATE_MAX = 4.0
# libvlc_media_parse_local with the default parser timeout.
_PARSE_LOCAL = 0
_PARSE_DEFAULT_TIMEOUT = -1

# libVLC state names folded into the handful the engine cares about.
_VLC_STATES = {
    "playing": "playing",
    "paused": "paused",
    "ended": "ended",
    "opening": "loading",
    "buffering": "loading",
    "error": "error",
}


class _Command(NamedTuple):
    name: str
    args: tuple[Any, ...]
    future: asyncio.Future[Any] | None


_WAKE = _Command("wake", (), None)


@dataclass
class _EngineState:
    """Engine-thread-confined bookkeeping for the loaded media."""

    generation: int = 0
    media: Any = None
    source_ref: str | None = None
    duration_hint_s: float = 0.0
    duration_s: float = 0.0
    pending_ready: bool = False
    region: LoopRegion | None = None
    last_position_s: float = -1.0
    playing: bool = False
    ended: bool = False
    error_reported: bool = False


def _ms(seconds: float) -> int:
    return int(seconds * 1000)


def _seconds(ms: int | None) -> float:
    return max(ms or 0, 0) / 1000


class LocalAudioBackend:
    """Playback backend for local files backed by a libVLC thread."""

    def __init__(self, *, tick_interval_ms: int = 50) -> None:
        self._tick_interval = tick_interval_ms / 1000
        self._handler: BackendEventHandler | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._commands: queue.Queue[_Command] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._stopping = threading.Event()
        self._engine = _EngineState()
        self._loads = GenerationCounter()

    @property
    def kind(self) -> TrackKind:
        return "local"

    @property
    def load_generation(self) -> int:
        return self._loads.current

    def set_event_handler(self, handler: BackendEventHandler | None) -> None:
        # A new subscriber never hears about media loaded before it attached.
        self._loads.advance()
        self._handler = handler

    async def start(self) -> None:
        """Spin up the engine thread and wait until libVLC is usable."""
        if self._worker is not None:
            return
        loop = asyncio.get_running_loop()
        self._loop = loop
        started: asyncio.Future[None] = loop.create_future()
        self._stopping.clear()
        self._worker = threading.Thread(
            target=self._run_engine,
            args=(started,),
            name="LocalAudioEngineThread",
            daemon=True,
        )
        self._worker.start()
        await started

    async def shutdown(self) -> None:
        worker = self._worker
        if worker is None:
            return
        self._stopping.set()
        self._commands.put(_WAKE)
        await asyncio.to_thread(worker.join, 2.0)
        self._worker = None

    async def load(self, track: Track) -> None:
        generation = self._loads.advance()
        await self._submit(
            "load", track.source_ref, track.duration_hint or 0.0, generation
        )

    async def play(self) -> None:
        await self._submit("play")

    async def pause(self) -> None:
        await self._submit("pause")

    async def seek(self, position_s: float) -> None:
        await self._submit("seek", position_s)

    async def set_playback_rate(self, rate: float) -> None:
        await self._submit("set_rate", max(RATE_MIN, min(rate, RATE_MAX)))

    async def set_loop_region(self, region: LoopRegion | None) -> None:
        await self._submit("set_region", region)

    async def get_volume(self) -> float:
        return float(await self._submit("get_volume"))

    async def set_volume(self, volume: float) -> None:
        await self._submit("set_volume", max(0.0, min(volume, 1.0)))

    async def get_current_time(self) -> float:
        return float(await self._submit("get_time"))

    async def get_duration(self) -> float:
        return float(await self._submit("get_duration"))

    async def _submit(self, name: str, *args: Any) -> Any:
        if self._loop is None or self._worker is None:
            raise RuntimeError("Local audio backend not started.")
        reply: asyncio.Future[Any] = self._loop.create_future()
        self._commands.put(_Command(name, args, reply))
        return await reply

    # Engine thread

    def _run_engine(self, started: asyncio.Future[None]) -> None:
        try:
            import vlc

            instance = vlc.Instance()
            player = instance.media_player_new()
        except Exception as exc:  # pragma: no cover - depends on VLC install
            self._settle(
                started,
                error=RuntimeError(
                    "Local audio engine unavailable. Ensure VLC/libVLC is installed."
                ),
            )
            self._emit_event(BackendError(str(exc)), scoped=False)
            return

        self._settle(started)
        try:
            while not self._stopping.is_set():
                self._drain_one(instance, player)
                self._engine_tick(player)
        finally:
            player.stop()

    def _drain_one(self, instance: Any, player: Any) -> None:
        try:
            cmd = self._commands.get(timeout=self._tick_interval)
        except queue.Empty:
            return
        if cmd.name == "wake":
            return
        try:
            result = self._handle_command(cmd, instance, player)
        except Exception as exc:  # pragma: no cover - backend safety net
            logger.exception("Local engine command %s failed", cmd.name)
            self._settle(cmd.future, error=exc)
            self._emit_event(BackendError(str(exc)), scoped=False)
        else:
            self._settle(cmd.future, result)

    def _handle_command(self, cmd: _Command, instance: Any, player: Any) -> Any:
        handler: Callable[..., Any] | None = getattr(self, f"_cmd_{cmd.name}", None)
        if handler is None:
            raise ValueError(f"Unknown command {cmd.name}")
        return handler(instance, player, *cmd.args)

    def _cmd_load(
        self,
        instance: Any,
        player: Any,
        source_ref: str,
        hint_s: float,
        generation: int,
    ) -> None:
        player.stop()
        media = instance.media_new_path(source_ref)
        player.set_media(media)
        media.parse_with_options(_PARSE_LOCAL, _PARSE_DEFAULT_TIMEOUT)
        self._engine = _EngineState(
            generation=generation,
            media=media,
            source_ref=source_ref,
            duration_hint_s=float(hint_s),
            pending_ready=True,
        )

    def _cmd_play(self, instance: Any, player: Any) -> None:
        if _map_state(player) == "ended":
            # libVLC needs a stop before an ended media can restart.
            player.stop()
        self._engine.ended = False
        player.play()

    def _cmd_pause(self, instance: Any, player: Any) -> None:
        player.set_pause(1)

    def _cmd_seek(self, instance: Any, player: Any, position_s: float) -> None:
        engine = self._engine
        position_s = float(position_s)
        player.set_time(_ms(position_s))
        engine.ended = False
        engine.last_position_s = position_s
        self._emit_event(TimeUpdated(position_s, engine.duration_s))

    def _cmd_set_rate(self, instance: Any, player: Any, rate: float) -> None:
        player.set_rate(float(rate))

    def _cmd_set_region(
        self, instance: Any, player: Any, region: LoopRegion | None
    ) -> None:
        self._engine.region = region

    def _cmd_get_volume(self, instance: Any, player: Any) -> float:
        return max(0, player.audio_get_volume()) / 100

    def _cmd_set_volume(self, instance: Any, player: Any, volume: float) -> None:
        player.audio_set_volume(int(round(volume * 100)))

    def _cmd_get_time(self, instance: Any, player: Any) -> float:
        return _seconds(player.get_time())

    def _cmd_get_duration(self, instance: Any, player: Any) -> float:
        return self._engine.duration_s

    def _engine_tick(self, player: Any) -> None:
        engine = self._engine
        if engine.media is None:
            return
        if engine.pending_ready:
            self._check_parsed(engine)

        state = _map_state(player)
        playing = state == "playing"
        if playing != engine.playing:
            engine.playing = playing
            self._emit_event(PlayStateChanged(playing))

        if state == "error":
            if not engine.error_reported:
                engine.error_reported = True
                engine.pending_ready = False
                self._emit_event(
                    BackendError(f"libVLC could not play {engine.source_ref}")
                )
        elif state in ("playing", "paused"):
            self._sample_position(engine, player, playing)
        elif state == "ended" and not engine.ended:
            self._on_media_end(engine, player)

    def _sample_position(
        self, engine: _EngineState, player: Any, playing: bool
    ) -> None:
        position_s = _seconds(player.get_time())
        length_s = _seconds(player.get_length())
        if length_s > 0:
            engine.duration_s = length_s
        wrap_to = region_wrap_target(position_s, engine.region) if playing else None
        if wrap_to is not None:
            player.set_time(_ms(wrap_to))
            position_s = wrap_to
        if position_s != engine.last_position_s:
            engine.last_position_s = position_s
            self._emit_event(TimeUpdated(position_s, engine.duration_s))

    def _on_media_end(self, engine: _EngineState, player: Any) -> None:
        region = engine.region
        if region is not None and region.span_s > 0:
            # Region reaches the end of the media: restart inside it.
            player.stop()
            player.play()
            player.set_time(_ms(region.start_s))
            return
        engine.ended = True
        self._emit_event(TimeUpdated(engine.duration_s, engine.duration_s))
        self._emit_event(PlaybackEnded())

    def _check_parsed(self, engine: _EngineState) -> None:
        status = engine.media.get_parsed_status()
        name = str(getattr(status, "name", status)).lower()
        if name == "done":
            engine.pending_ready = False
            engine.duration_s = (
                _seconds(engine.media.get_duration()) or engine.duration_hint_s
            )
            self._emit_event(BackendReady(engine.duration_s))
        elif name in ("failed", "timeout"):
            engine.pending_ready = False
            engine.error_reported = True
            self._emit_event(BackendError(f"Unable to open {engine.source_ref}"))

    # Thread-to-loop handoff

    def _emit_event(self, event: BackendEvent, *, scoped: bool = True) -> None:
        if self._loop is None:
            return
        generation = self._engine.generation if scoped else None
        asyncio.run_coroutine_threadsafe(self._deliver(generation, event), self._loop)

    async def _deliver(self, generation: int | None, event: BackendEvent) -> None:
        if generation is not None and not self._loads.is_current(generation):
            logger.debug(
                "Dropping %s for superseded load (generation=%s current=%s)",
                type(event).__name__,
                generation,
                self._loads.current,
            )
            return
        handler = self._handler
        if handler is None:
            return
        await handler(event)

    def _settle(
        self,
        future: asyncio.Future[Any] | None,
        value: Any = None,
        *,
        error: BaseException | None = None,
    ) -> None:
        if future is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(_complete, future, value, error)


def _complete(
    future: asyncio.Future[Any], value: Any, error: BaseException | None
) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(value)


def _map_state(player: Any) -> str:
    try:
        state = player.get_state()
    except Exception:
        return "error"
    return _VLC_STATES.get(getattr(state, "name", "").lower(), "idle")
