"""Tests for the deterministic fake engines."""

from __future__ import annotations

import asyncio

from playhead.services.fake_backend import FakeLocalBackend, FakeRemoteSurface
from playhead.services.playback_backend import (
    BackendError,
    BackendReady,
    LoopRegion,
    PlaybackEnded,
    TimeUpdated,
    has_capability,
)
from playhead.services.track_catalog import Track


def _run(coro):
    return asyncio.run(coro)


def _track(source: str = "/music/a.mp3", duration: float | None = 10.0) -> Track:
    return Track(
        id=1,
        title="a",
        artist="b",
        source_ref=source,
        kind="local",
        duration_hint=duration,
    )


def test_fake_local_advertises_every_capability() -> None:
    backend = FakeLocalBackend()
    assert has_capability(backend, "playback_rate")
    assert has_capability(backend, "region_loop")
    assert has_capability(backend, "volume")


def test_fake_local_load_play_and_end() -> None:
    async def run() -> None:
        events = []

        async def handler(event) -> None:
            events.append(event)

        backend = FakeLocalBackend()
        backend.set_event_handler(handler)
        await backend.load(_track())
        await backend.play()
        await backend.advance(4.0)
        await backend.advance(20.0)

        assert isinstance(events[0], BackendReady)
        assert events[0].duration_s == 10.0
        updates = [e for e in events if isinstance(e, TimeUpdated)]
        assert [u.position_s for u in updates] == [4.0, 10.0]
        assert sum(isinstance(e, PlaybackEnded) for e in events) == 1

    _run(run())


def test_fake_local_rate_scales_progress() -> None:
    async def run() -> None:
        backend = FakeLocalBackend()
        await backend.load(_track(duration=100.0))
        await backend.set_playback_rate(2.0)
        await backend.play()
        await backend.advance(3.0)
        assert await backend.get_current_time() == 6.0

    _run(run())


def test_fake_local_region_wraps_without_ending() -> None:
    async def run() -> None:
        events = []

        async def handler(event) -> None:
            events.append(event)

        backend = FakeLocalBackend()
        backend.set_event_handler(handler)
        await backend.load(_track(duration=30.0))
        await backend.set_loop_region(LoopRegion(2.0, 5.0))
        await backend.play()
        await backend.seek(4.0)
        await backend.advance(2.0)

        assert await backend.get_current_time() == 2.0
        assert not any(isinstance(e, PlaybackEnded) for e in events)

    _run(run())


def test_fake_local_failing_source_reports_error() -> None:
    async def run() -> None:
        events = []

        async def handler(event) -> None:
            events.append(event)

        backend = FakeLocalBackend(fail_sources={"/music/bad.mp3"})
        backend.set_event_handler(handler)
        await backend.load(_track("/music/bad.mp3"))
        assert isinstance(events[-1], BackendError)
        await backend.play()
        assert await backend.get_current_time() == 0.0

    _run(run())


def test_fake_remote_surface_progresses_with_clock() -> None:
    async def run() -> None:
        now = [0.0]
        surface = FakeRemoteSurface(default_duration_s=20.0, clock=lambda: now[0])
        await surface.load("https://example.com/song.mp3")
        await surface.play()
        now[0] = 5.0
        assert await surface.get_current_time() == 5.0
        await surface.pause()
        now[0] = 9.0
        assert await surface.get_current_time() == 5.0
        await surface.play()
        now[0] = 30.0
        assert await surface.get_state() == "ended"
        assert await surface.get_current_time() == 20.0

    _run(run())
