"""python-vlc implementation of the remote player surface.

libVLC calls are short but blocking, so each one is offloaded to a worker
thread. The surface is only ever polled; it does not push events.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .remote_backend import SurfaceState

logger = logging.getLogger(__name__)


class VLCStreamSurface:
    """Remote surface that streams network URLs through libVLC."""

    def __init__(self) -> None:
        self._instance: Any = None
        self._player: Any = None
        self._last_volume = 1.0

    async def load(self, source_ref: str) -> None:
        await asyncio.to_thread(self._load_blocking, source_ref)

    async def play(self) -> None:
        player = await asyncio.to_thread(self._ensure_player)
        await asyncio.to_thread(_restart_if_ended, player)

    async def pause(self) -> None:
        player = await asyncio.to_thread(self._ensure_player)
        await asyncio.to_thread(player.set_pause, 1)

    async def seek_to(self, position_s: float) -> None:
        player = await asyncio.to_thread(self._ensure_player)
        await asyncio.to_thread(player.set_time, int(position_s * 1000))

    async def get_current_time(self) -> float:
        player = await asyncio.to_thread(self._ensure_player)
        return max(await asyncio.to_thread(player.get_time), 0) / 1000

    async def get_duration(self) -> float:
        player = await asyncio.to_thread(self._ensure_player)
        return max(await asyncio.to_thread(player.get_length), 0) / 1000

    async def get_volume(self) -> float:
        player = await asyncio.to_thread(self._ensure_player)
        volume = await asyncio.to_thread(player.audio_get_volume)
        # libVLC reports -1 until an audio output exists.
        if volume >= 0:
            self._last_volume = volume / 100
        return self._last_volume

    async def set_volume(self, volume: float) -> None:
        player = await asyncio.to_thread(self._ensure_player)
        self._last_volume = volume
        await asyncio.to_thread(player.audio_set_volume, int(round(volume * 100)))

    async def get_state(self) -> SurfaceState:
        player = await asyncio.to_thread(self._ensure_player)
        return _map_surface_state(await asyncio.to_thread(player.get_state))

    async def close(self) -> None:
        if self._player is None:
            return
        player = self._player
        self._player = None
        await asyncio.to_thread(player.stop)
        await asyncio.to_thread(player.release)

    def _ensure_player(self) -> Any:
        if self._player is None:
            import vlc

            if self._instance is None:
                self._instance = vlc.Instance("--no-video")
            self._player = self._instance.media_player_new()
        return self._player

    def _load_blocking(self, source_ref: str) -> None:
        player = self._ensure_player()
        player.stop()
        media = self._instance.media_new(source_ref)
        player.set_media(media)
        logger.debug("Remote stream media set: %s", source_ref)


def _restart_if_ended(player: Any) -> None:
    if getattr(player.get_state(), "name", "").lower() == "ended":
        player.stop()
    if player.play() == -1:
        raise RuntimeError("libVLC refused to start the stream.")


def _map_surface_state(state: Any) -> SurfaceState:
    name = getattr(state, "name", "").lower()
    if name == "playing":
        return "playing"
    if name == "paused":
        return "paused"
    if name in {"opening", "buffering"}:
        return "buffering"
    if name == "ended":
        return "ended"
    if name == "error":
        return "error"
    return "unstarted"
