"""Construct backend pairs and lyric lookup from resolved runtime options."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from playhead.services.fake_backend import FakeLocalBackend, FakeRemoteSurface
from playhead.services.local_backend import LocalAudioBackend
from playhead.services.lyrics_service import LyricsService
from playhead.services.playback_backend import PlaybackBackend
from playhead.services.remote_backend import POLL_INTERVAL_MAX_S, RemoteStreamBackend
from playhead.services.sidecar_lyrics import SidecarLyricsProvider
from playhead.services.track_catalog import TrackKind
from playhead.services.vlc_surface import VLCStreamSurface

logger = logging.getLogger(__name__)


def build_backends(
    name: str, *, poll_interval_s: float = POLL_INTERVAL_MAX_S
) -> dict[TrackKind, PlaybackBackend]:
    """Return one backend per track kind for backend family `name`."""
    logger.info("Playback backend selected: %s", name)
    if name == "vlc":
        return {
            "local": LocalAudioBackend(),
            "remote": RemoteStreamBackend(
                VLCStreamSurface(), poll_interval_s=poll_interval_s
            ),
        }
    return {
        "local": FakeLocalBackend(),
        "remote": RemoteStreamBackend(
            FakeRemoteSurface(), poll_interval_s=poll_interval_s
        ),
    }


def build_lyrics_service(directories: Iterable[Path]) -> LyricsService:
    return LyricsService(SidecarLyricsProvider(directories))
