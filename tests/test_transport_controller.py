"""Tests for transport orchestration across local and remote backends."""

from __future__ import annotations

import asyncio

import pytest

from playhead.events import (
    LoopRegionChanged,
    LyricLineChanged,
    LyricsChanged,
    PlaybackStateChanged,
    TrackChanged,
)
from playhead.services.fake_backend import FakeLocalBackend, FakeRemoteSurface
from playhead.services.lyrics_service import LyricsRecord, LyricsService
from playhead.services.playback_backend import (
    LoopRegion,
    PlaybackEnded,
    TimeUpdated,
)
from playhead.services.remote_backend import RemoteStreamBackend
from playhead.services.track_catalog import TrackCatalog, TrackDescriptor
from playhead.services.transport_controller import (
    PlaybackState,
    TransportController,
)


def _run(coro):
    return asyncio.run(coro)


def _local(title: str, duration: float = 10.0) -> TrackDescriptor:
    return TrackDescriptor(
        title=title,
        artist="Band",
        source_ref=f"/music/{title}.mp3",
        kind="local",
        duration_hint=duration,
    )


def _remote(title: str) -> TrackDescriptor:
    return TrackDescriptor(
        title=title,
        artist="DJ",
        source_ref=f"https://example.com/{title}.mp3",
        kind="remote",
    )


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class RecordingLocalBackend(FakeLocalBackend):
    """Fake local engine that remembers every handler it was given."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.handlers: list[object] = []

    def set_event_handler(self, handler) -> None:
        if handler is not None:
            self.handlers.append(handler)
        super().set_event_handler(handler)


class _DictLyricsProvider:
    def __init__(self, records: dict[str, LyricsRecord]) -> None:
        self._records = records

    async def get(self, *, artist: str, title: str):
        return self._records.get(title)

    async def search(self, query: str):
        return []


def _controller(
    descriptors,
    *,
    local=None,
    remote=None,
    lyrics_service=None,
    initial_state: PlaybackState | None = None,
):
    events: list[object] = []

    async def emit_event(event: object) -> None:
        events.append(event)

    backends = {}
    backends["local"] = local if local is not None else FakeLocalBackend()
    if remote is not None:
        backends["remote"] = remote
    controller = TransportController(
        emit_event=emit_event,
        catalog=TrackCatalog(descriptors),
        backends=backends,
        lyrics_service=lyrics_service,
        initial_state=initial_state,
    )
    return controller, backends, events


def _states(events: list[object]) -> list[PlaybackState]:
    return [e.state for e in events if isinstance(e, PlaybackStateChanged)]


def test_select_track_loads_and_plays() -> None:
    async def run() -> None:
        controller, backends, events = _controller([_local("a"), _local("b")])
        await controller.select_track(1)
        state = controller.state
        assert state.position == 1
        assert state.status == "playing"
        assert state.is_playing is True
        assert state.duration_s == 10.0
        assert state.backend_kind == "local"
        assert state.region_enabled is True
        assert backends["local"].loaded == ["/music/b.mp3"]
        assert any(isinstance(e, TrackChanged) and e.index == 1 for e in events)

    _run(run())


def test_select_without_autoplay_stays_ready() -> None:
    async def run() -> None:
        controller, _backends, _events = _controller([_local("a")])
        await controller.select_track(0, autoplay=False)
        assert controller.state.status == "ready"
        assert controller.state.is_playing is False

    _run(run())


def test_play_with_nothing_selected_starts_first_track() -> None:
    async def run() -> None:
        controller, backends, _events = _controller([_local("a"), _local("b")])
        await controller.play()
        assert controller.state.position == 0
        assert controller.state.is_playing is True
        assert backends["local"].loaded == ["/music/a.mp3"]

    _run(run())


def test_play_with_empty_catalog_is_noop() -> None:
    async def run() -> None:
        controller, _backends, events = _controller([])
        await controller.play()
        assert controller.state.position == -1
        assert events == []

    _run(run())


def test_add_tracks_sorts_batch_and_autoplays_first() -> None:
    async def run() -> None:
        controller, _backends, _events = _controller([])
        first = await controller.add_tracks([_local("zeta"), _local("alpha")])
        assert first == 0
        assert [t.title for t in controller.catalog] == ["alpha", "zeta"]
        assert controller.current_track.title == "alpha"
        assert controller.state.is_playing is True

    _run(run())


@pytest.mark.parametrize(
    ("loop_mode", "start", "expected_position", "expected_status"),
    [
        ("off", 0, 1, "playing"),
        ("off", 2, 2, "stopped"),
        ("all", 2, 0, "playing"),
        ("all", 0, 1, "playing"),
        ("one", 1, 1, "playing"),
    ],
)
def test_end_of_track_policy(
    loop_mode: str, start: int, expected_position: int, expected_status: str
) -> None:
    async def run() -> None:
        controller, backends, _events = _controller(
            [_local("a"), _local("b"), _local("c")],
            initial_state=PlaybackState(loop_mode=loop_mode),  # type: ignore[arg-type]
        )
        backend = backends["local"]
        await controller.select_track(start)
        await backend.advance(11.0)

        assert controller.state.position == expected_position
        assert controller.state.status == expected_status
        assert controller.state.is_playing is (expected_status == "playing")

    _run(run())


def test_loop_one_restarts_without_reloading() -> None:
    async def run() -> None:
        controller, backends, _events = _controller(
            [_local("a"), _local("b")],
            initial_state=PlaybackState(loop_mode="one"),
        )
        backend = backends["local"]
        await controller.select_track(0)
        await backend.advance(11.0)
        await backend.advance(11.0)

        assert backend.loaded == ["/music/a.mp3"]
        assert controller.state.position == 0
        assert controller.state.is_playing is True

    _run(run())


def test_stopped_last_track_can_play_again_and_end_again() -> None:
    async def run() -> None:
        controller, backends, _events = _controller([_local("a")])
        backend = backends["local"]
        await controller.select_track(0)
        await backend.advance(11.0)
        assert controller.state.status == "stopped"

        await controller.play()
        assert controller.state.is_playing is True
        await backend.advance(11.0)
        assert controller.state.status == "stopped"

    _run(run())


def test_duplicate_end_event_is_handled_once() -> None:
    async def run() -> None:
        backend = RecordingLocalBackend()
        controller, _backends, events = _controller([_local("a")], local=backend)
        await controller.select_track(0)
        handler = backend.handlers[-1]

        await handler(PlaybackEnded())
        await handler(PlaybackEnded())

        stopped = [s for s in _states(events) if s.status == "stopped"]
        assert len(stopped) == 1
        assert controller.stale_events_discarded == 0

    _run(run())


def test_events_from_previous_selection_are_discarded() -> None:
    async def run() -> None:
        backend = RecordingLocalBackend()
        controller, _backends, _events = _controller(
            [_local("a", 100.0), _local("b", 100.0), _local("c", 100.0)],
            local=backend,
        )
        await controller.select_track(0)
        old_handler = backend.handlers[-1]
        await controller.select_track(1)
        before = controller.state

        await old_handler(TimeUpdated(50.0, 100.0))
        await old_handler(PlaybackEnded())

        assert controller.state == before
        assert controller.state.position == 1
        assert controller.stale_events_discarded == 2

    _run(run())


def test_switching_local_to_remote_detaches_local_engine() -> None:
    async def run() -> None:
        local = RecordingLocalBackend()
        remote = RemoteStreamBackend(FakeRemoteSurface(clock=_Clock()))
        controller, _backends, _events = _controller(
            [_local("a", 100.0), _remote("b")], local=local, remote=remote
        )
        await controller.select_track(0)
        await local.advance(5.0)
        local_handler = local.handlers[-1]

        await controller.select_track(1)
        assert controller.state.backend_kind == "remote"
        assert controller.active_backend is remote
        assert controller.state.region_enabled is False
        assert controller.state.current_time_s == 0.0

        await local_handler(TimeUpdated(6.0, 100.0))
        assert controller.state.current_time_s == 0.0
        assert controller.stale_events_discarded == 1
        await controller.shutdown()

    _run(run())


def test_rate_and_region_are_noops_on_remote() -> None:
    async def run() -> None:
        remote = RemoteStreamBackend(FakeRemoteSurface(clock=_Clock()))
        controller, _backends, events = _controller([_remote("b")], remote=remote)
        await controller.select_track(0)
        await controller.set_playback_rate(2.0)
        await controller.change_speed(1)
        await controller.set_loop_boundary_a()
        await controller.create_loop_region(1.0, 5.0)

        assert controller.state.playback_rate == 1.0
        assert controller.loop_region is None
        assert not any(isinstance(e, LoopRegionChanged) for e in events)
        await controller.shutdown()

    _run(run())


def test_speed_steps_are_clamped() -> None:
    async def run() -> None:
        controller, backends, _events = _controller([_local("a")])
        await controller.select_track(0)
        await controller.change_speed(2)
        assert controller.state.playback_rate == 1.5
        assert backends["local"].rate == 1.5
        await controller.set_playback_rate(10.0)
        assert controller.state.playback_rate == 4.0
        await controller.change_speed(-100)
        assert controller.state.playback_rate == 0.5
        await controller.reset_speed()
        assert controller.state.playback_rate == 1.0

    _run(run())


def test_load_failure_sets_error_state() -> None:
    async def run() -> None:
        backend = FakeLocalBackend(fail_sources={"/music/bad.mp3"})
        controller, _backends, _events = _controller([_local("bad")], local=backend)
        await controller.select_track(0)

        state = controller.state
        assert state.status == "error"
        assert state.is_playing is False
        assert state.error is not None
        assert state.error.startswith("Failed to load the selected track.")
        assert "Unable to decode" in state.error

    _run(run())


def test_missing_backend_for_kind_reports_error() -> None:
    async def run() -> None:
        controller, _backends, _events = _controller([_remote("b")])
        await controller.select_track(0)
        assert controller.state.status == "error"
        assert controller.active_backend is None

    _run(run())


def test_remote_volume_writes_respect_dead_band() -> None:
    async def run() -> None:
        surface = FakeRemoteSurface(clock=_Clock())
        remote = RemoteStreamBackend(surface)
        controller, _backends, _events = _controller([_remote("b")], remote=remote)
        await controller.select_track(0)
        assert surface.volume_writes == []

        await controller.set_volume(0.995)
        assert surface.volume_writes == []
        await controller.set_volume(0.5)
        assert surface.volume_writes == [0.5]
        assert controller.state.volume == 0.5
        await controller.shutdown()

    _run(run())


def test_seek_clamps_to_duration() -> None:
    async def run() -> None:
        controller, backends, _events = _controller([_local("a", 30.0)])
        await controller.select_track(0)
        await controller.seek(99.0)
        assert controller.state.current_time_s == 30.0
        await controller.skip(-100.0)
        assert controller.state.current_time_s == 0.0
        assert await backends["local"].get_current_time() == 0.0

    _run(run())


def test_previous_at_first_track_without_loop_keeps_position() -> None:
    async def run() -> None:
        controller, backends, _events = _controller([_local("a"), _local("b")])
        await controller.select_track(0)
        await controller.pause()
        await controller.previous()
        assert controller.state.position == 0
        assert controller.state.is_playing is True
        assert backends["local"].loaded == ["/music/a.mp3"]

    _run(run())


def test_manual_next_at_last_track_stops() -> None:
    async def run() -> None:
        controller, _backends, _events = _controller([_local("a"), _local("b")])
        await controller.select_track(1)
        await controller.next()
        assert controller.state.position == 1
        assert controller.state.status == "stopped"

    _run(run())


def test_boundary_b_before_a_loops_from_track_start() -> None:
    async def run() -> None:
        controller, backends, events = _controller([_local("a", 60.0)])
        backend = backends["local"]
        await controller.select_track(0)
        await backend.advance(8.0)
        await controller.set_loop_boundary_b()

        assert controller.loop_region == LoopRegion(0.0, 8.0)
        assert backend.region == LoopRegion(0.0, 8.0)
        assert controller.state.current_time_s == 0.0
        assert any(isinstance(e, LoopRegionChanged) for e in events)

    _run(run())


def test_update_region_reseeks_only_when_playhead_is_outside() -> None:
    async def run() -> None:
        controller, backends, _events = _controller([_local("a", 60.0)])
        backend = backends["local"]
        await controller.select_track(0)
        await controller.create_loop_region(10.0, 20.0)
        await backend.advance(5.0)
        assert await backend.get_current_time() == 15.0

        await controller.update_loop_region(12.0, 25.0)
        assert await backend.get_current_time() == 15.0

        await controller.update_loop_region(30.0, 40.0)
        assert await backend.get_current_time() == 30.0
        assert controller.loop_region == LoopRegion(30.0, 40.0)

    _run(run())


def test_cycle_loop_mode_back_to_off_clears_region() -> None:
    async def run() -> None:
        controller, backends, _events = _controller([_local("a", 60.0)])
        await controller.select_track(0)
        await controller.create_loop_region(1.0, 4.0)

        await controller.cycle_loop_mode()
        assert controller.state.loop_mode == "all"
        await controller.cycle_loop_mode()
        assert controller.state.loop_mode == "one"
        assert controller.loop_region is not None
        await controller.cycle_loop_mode()
        assert controller.state.loop_mode == "off"
        assert controller.loop_region is None
        assert backends["local"].region is None

    _run(run())


def test_region_is_dropped_when_another_track_is_selected() -> None:
    async def run() -> None:
        controller, backends, _events = _controller(
            [_local("a", 60.0), _local("b", 60.0)]
        )
        await controller.select_track(0)
        await controller.create_loop_region(1.0, 4.0)
        await controller.select_track(1)
        assert controller.loop_region is None
        assert backends["local"].region is None

    _run(run())


def test_lyrics_follow_track_and_playhead() -> None:
    async def run() -> None:
        provider = _DictLyricsProvider(
            {"a": LyricsRecord(synced_lyrics="[00:01.00]one\n[00:03.00]two")}
        )
        controller, backends, events = _controller(
            [_local("a", 60.0)], lyrics_service=LyricsService(provider)
        )
        await controller.select_track(0)
        await asyncio.gather(*controller.pending_lyrics_fetches)

        lyrics = [e for e in events if isinstance(e, LyricsChanged)]
        assert lyrics[0].lines == ()
        assert [line.text for line in lyrics[-1].lines] == ["one", "two"]
        assert lyrics[-1].synced is True

        events.clear()
        await backends["local"].advance(3.5)
        assert LyricLineChanged(1) in events
        assert controller.lyric_sync.active_index(3.5) == 1

    _run(run())


def test_missing_lyrics_report_status() -> None:
    async def run() -> None:
        controller, _backends, events = _controller(
            [_local("a")], lyrics_service=LyricsService(_DictLyricsProvider({}))
        )
        await controller.select_track(0)
        await asyncio.gather(*controller.pending_lyrics_fetches)
        last = [e for e in events if isinstance(e, LyricsChanged)][-1]
        assert last.status == "Lyrics not found"
        assert last.lines == ()

    _run(run())


def test_state_snapshots_are_immutable_between_emits() -> None:
    async def run() -> None:
        controller, _backends, events = _controller([_local("a")])
        await controller.select_track(0)
        snapshot = controller.state
        await controller.set_volume(0.3)
        assert snapshot.volume == 1.0
        assert _states(events)[-1].volume == 0.3

    _run(run())


class _RunningClockLocalBackend(FakeLocalBackend):
    """Fake engine whose media keeps advancing during command round-trips."""

    async def get_volume(self) -> float:
        await self.advance(1.0)
        return await super().get_volume()


def test_outgoing_media_cannot_report_into_next_local_track() -> None:
    async def run() -> None:
        local = _RunningClockLocalBackend()
        controller, _backends, events = _controller(
            [_local("a", 150.5), _local("b", 90.0), _local("c", 90.0)],
            local=local,
        )
        await controller.select_track(0)
        await local.advance(150.0)
        events.clear()

        await controller.select_track(1)

        assert local.loaded == ["/music/a.mp3", "/music/b.mp3"]
        assert controller.state.position == 1
        assert controller.state.current_time_s == 0.0
        assert controller.state.is_playing is True
        on_b = [s for s in _states(events) if s.position == 1]
        assert on_b
        assert all(s.current_time_s == 0.0 for s in on_b)
        assert not any(s.position == 2 for s in _states(events))

    _run(run())


class _GatedLyricsProvider:
    def __init__(
        self, records: dict[str, LyricsRecord], gates: dict[str, asyncio.Event]
    ) -> None:
        self._records = records
        self._gates = gates

    async def get(self, *, artist: str, title: str):
        gate = self._gates.get(title)
        if gate is not None:
            await gate.wait()
        return self._records.get(title)

    async def search(self, query: str):
        return []


def test_late_lyrics_for_replaced_track_are_never_applied() -> None:
    async def run() -> None:
        release_a = asyncio.Event()
        provider = _GatedLyricsProvider(
            {
                "a": LyricsRecord(synced_lyrics="[00:01.00]from a"),
                "b": LyricsRecord(synced_lyrics="[00:01.00]from b"),
            },
            {"a": release_a},
        )
        controller, _backends, events = _controller(
            [_local("a", 60.0), _local("b", 60.0)],
            lyrics_service=LyricsService(provider),
        )
        await controller.select_track(0)
        await controller.select_track(1)

        def texts() -> list[str]:
            return [line.text for line in controller.lyric_sync.lines]

        for _ in range(50):
            if texts() == ["from b"]:
                break
            await asyncio.sleep(0)
        assert texts() == ["from b"]

        release_a.set()
        await asyncio.gather(*controller.pending_lyrics_fetches)

        assert texts() == ["from b"]
        applied = [
            [line.text for line in e.lines]
            for e in events
            if isinstance(e, LyricsChanged) and e.lines
        ]
        assert applied == [["from b"]]
        await controller.shutdown()

    _run(run())
