"""Textual TUI app for playhead."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import DataTable, Footer, Header, Input

from .cli import add_runtime_arguments, resolve_lyrics_dirs
from .events import (
    LoopRegionChanged,
    LyricLineChanged,
    LyricsChanged,
    PlaybackStateChanged,
    TrackChanged,
    TrackRowActivated,
)
from .logging_utils import setup_logging
from .paths import log_dir
from .runtime_config import (
    clamp_poll_interval,
    normalize_backend_name,
    resolve_log_level,
)
from .services.backend_factory import build_backends, build_lyrics_service
from .services.remote_backend import POLL_INTERVAL_MAX_S
from .services.track_catalog import TrackCatalog
from .services.track_metadata import describe_sources
from .services.track_search import LibrarySearchStrategy, TrackSearchService
from .services.transport_controller import PlaybackState, TransportController
from .ui.lyrics_pane import LyricsPane
from .ui.modals.error import ErrorModal
from .ui.status_pane import StatusPane
from .version import build_help_epilog

logger = logging.getLogger(__name__)
SEEK_STEP_S = 5.0
SEEK_BIG_STEP_S = 30.0
VOLUME_STEP = 0.05


class PlayheadApp(App):
    TITLE = "playhead"
    CSS = """
    Screen {
        layout: vertical;
    }

    #main {
        height: 1fr;
    }

    #playlist-column {
        width: 1fr;
        min-width: 40%;
    }

    #find {
        height: 1;
        border: none;
        padding: 0 1;
        background: $panel;
    }

    #find:focus {
        background: $boost;
    }

    #playlist {
        height: 1fr;
    }

    #lyrics-pane {
        width: 1fr;
        border: solid white;
        padding: 0 1;
    }

    #status-pane {
        border: solid white;
        padding: 0 1;
    }
    """
    BINDINGS = [
        ("escape", "dismiss_modal", "Dismiss"),
        ("space", "play_pause", "Play/Pause"),
        ("f", "focus_find", "Find"),
        ("n", "next_track", "Next"),
        ("p", "previous_track", "Previous"),
        ("comma", "seek_back", "Seek -5s"),
        ("full_stop", "seek_forward", "Seek +5s"),
        ("less_than_sign", "seek_back_big", "Seek -30s"),
        ("greater_than_sign", "seek_forward_big", "Seek +30s"),
        ("home", "seek_start", "Seek start"),
        ("-", "volume_down", "Vol -"),
        ("+", "volume_up", "Vol +"),
        ("[", "speed_down", "Speed -"),
        ("]", "speed_up", "Speed +"),
        ("\\", "speed_reset", "Speed reset"),
        ("r", "loop_mode", "Loop"),
        ("a", "loop_a", "Set A"),
        ("b", "loop_b", "Set B"),
        ("c", "loop_clear", "Clear A-B"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        *,
        sources: Sequence[str] = (),
        backend_name: str = "vlc",
        lyrics_dirs: Sequence[Path] = (),
        poll_interval_s: float = POLL_INTERVAL_MAX_S,
        auto_init: bool = True,
    ) -> None:
        super().__init__()
        self._sources = list(sources)
        self._backend_name = backend_name
        self._lyrics_dirs = list(lyrics_dirs)
        self._poll_interval_s = poll_interval_s
        self._auto_init = auto_init
        self._init_task: asyncio.Task[None] | None = None
        self.catalog = TrackCatalog()
        self.controller: TransportController | None = None
        self.search_service: TrackSearchService | None = None
        self.playback_state = PlaybackState()

    def compose(self) -> ComposeResult:
        self._find = Input(placeholder="Find title or artist...", id="find")
        self._table: DataTable = DataTable(
            id="playlist", cursor_type="row", zebra_stripes=True
        )
        self._lyrics_pane = LyricsPane(id="lyrics-pane")
        self._status_pane = StatusPane(id="status-pane")
        yield Header()
        yield Horizontal(
            Vertical(self._find, self._table, id="playlist-column"),
            self._lyrics_pane,
            id="main",
        )
        yield self._status_pane
        yield Footer()

    def on_mount(self) -> None:
        self._table.add_columns(" ", "Title", "Artist", "Kind")
        if self._auto_init:
            self._init_task = asyncio.create_task(self._initialize())

    async def wait_for_init(self) -> None:
        if self._init_task is not None:
            await self._init_task

    async def _initialize(self) -> None:
        fallback_notice: str | None = None
        try:
            controller = self._build_controller(self._backend_name)
            try:
                await controller.start()
            except Exception as exc:
                logger.exception(
                    "Failed to start backend %s: %s", self._backend_name, exc
                )
                if self._backend_name == "fake":
                    raise
                await controller.shutdown()
                self._backend_name = "fake"
                controller = self._build_controller("fake")
                await controller.start()
                fallback_notice = (
                    "VLC backend unavailable; using fake backend.\n"
                    "Likely cause: VLC/libVLC runtime is not installed.\n"
                    "Next step: install VLC/libVLC and restart with --backend vlc."
                )
            self.controller = controller
            library_dirs = [Path(s) for s in self._sources if Path(s).is_dir()]
            strategies = [LibrarySearchStrategy(library_dirs)] if library_dirs else []
            self.search_service = TrackSearchService(self.catalog, strategies)
            descriptors = await describe_sources(self._sources)
            await controller.add_tracks(descriptors, autoplay=False)
            self._refresh_playlist()
            self._table.focus()
            if fallback_notice is not None:
                await self.push_screen(ErrorModal(fallback_notice))
        except Exception as exc:
            logger.exception("Failed to initialize app: %s", exc)
            await self.push_screen(
                ErrorModal(
                    "Failed to initialize app.\n"
                    "Likely cause: backend startup or source scanning failure.\n"
                    "Next step: check the sources and review the log file."
                )
            )

    def _build_controller(self, backend_name: str) -> TransportController:
        return TransportController(
            emit_event=self._handle_event,
            catalog=self.catalog,
            backends=build_backends(
                backend_name, poll_interval_s=self._poll_interval_s
            ),
            lyrics_service=build_lyrics_service(self._lyrics_dirs),
        )

    async def on_unmount(self) -> None:
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
        if self.controller is not None:
            await self.controller.shutdown()

    def action_dismiss_modal(self) -> None:
        if isinstance(self.screen, ModalScreen):
            self.pop_screen()
            return
        find = self._find
        if find.has_focus or find.value:
            find.value = ""
            self._table.focus()

    def action_focus_find(self) -> None:
        self._find.focus()

    async def action_play_pause(self) -> None:
        if self.controller is None:
            return
        if self.playback_state.position < 0:
            if self._table.row_count:
                await self.controller.select_track(self._table.cursor_row)
            return
        await self.controller.toggle_play()

    async def action_quit(self) -> None:
        self.exit()

    async def action_next_track(self) -> None:
        if self.controller is not None:
            await self.controller.next()

    async def action_previous_track(self) -> None:
        if self.controller is not None:
            await self.controller.previous()

    async def action_seek_back(self) -> None:
        if self.controller is not None:
            await self.controller.skip(-SEEK_STEP_S)

    async def action_seek_forward(self) -> None:
        if self.controller is not None:
            await self.controller.skip(SEEK_STEP_S)

    async def action_seek_back_big(self) -> None:
        if self.controller is not None:
            await self.controller.skip(-SEEK_BIG_STEP_S)

    async def action_seek_forward_big(self) -> None:
        if self.controller is not None:
            await self.controller.skip(SEEK_BIG_STEP_S)

    async def action_seek_start(self) -> None:
        if self.controller is not None:
            await self.controller.seek(0.0)

    async def action_volume_down(self) -> None:
        if self.controller is not None:
            await self.controller.set_volume(self.playback_state.volume - VOLUME_STEP)

    async def action_volume_up(self) -> None:
        if self.controller is not None:
            await self.controller.set_volume(self.playback_state.volume + VOLUME_STEP)

    async def action_speed_down(self) -> None:
        if self.controller is not None:
            await self.controller.change_speed(-1)

    async def action_speed_up(self) -> None:
        if self.controller is not None:
            await self.controller.change_speed(1)

    async def action_speed_reset(self) -> None:
        if self.controller is not None:
            await self.controller.reset_speed()

    async def action_loop_mode(self) -> None:
        if self.controller is not None:
            await self.controller.cycle_loop_mode()

    async def action_loop_a(self) -> None:
        if self.controller is not None:
            await self.controller.set_loop_boundary_a()

    async def action_loop_b(self) -> None:
        if self.controller is not None:
            await self.controller.set_loop_boundary_b()

    async def action_loop_clear(self) -> None:
        if self.controller is not None:
            await self.controller.clear_loop_region()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        event.stop()
        self.post_message(TrackRowActivated(event.cursor_row))

    async def on_track_row_activated(self, message: TrackRowActivated) -> None:
        if self.controller is not None:
            await self.controller.select_track(message.index)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        if self.search_service is None or self.controller is None:
            return
        result = await self.search_service.search(event.value)
        if result.stale:
            return
        status = self._status_pane
        table = self._table
        if result.failed:
            status.set_notice(result.reason)
            return
        if result.local_matches:
            index = self.catalog.index_of(result.local_matches[0].id)
            if index is not None:
                table.move_cursor(row=index)
            status.set_notice(f"{len(result.local_matches)} match(es) in playlist")
        elif result.remote_results:
            first = await self.controller.add_tracks(
                result.remote_results, autoplay=False
            )
            self._refresh_playlist()
            if first is not None:
                table.move_cursor(row=first)
            status.set_notice(f"Added {len(result.remote_results)} track(s)")
        else:
            status.set_notice(f"No matches for {result.query!r}")
            return
        table.focus()

    async def _handle_event(self, event: object) -> None:
        if isinstance(event, PlaybackStateChanged):
            self.playback_state = event.state
            self._status_pane.update_state(event.state)
        elif isinstance(event, TrackChanged):
            track = event.track
            self.sub_title = f"{track.artist} - {track.title}" if track else ""
            self._refresh_playlist()
        elif isinstance(event, LoopRegionChanged):
            self._status_pane.set_region(event.region)
        elif isinstance(event, LyricsChanged):
            self._lyrics_pane.set_lyrics(
                event.lines, synced=event.synced, status=event.status
            )
        elif isinstance(event, LyricLineChanged):
            self._lyrics_pane.set_active_index(event.index)

    def _refresh_playlist(self) -> None:
        table = self._table
        cursor = table.cursor_row
        table.clear()
        active = self.playback_state.position
        if self.controller is not None:
            active = self.controller.state.position
        for index, track in enumerate(self.catalog):
            marker = ">" if index == active else " "
            table.add_row(marker, track.title, track.artist, track.kind)
        if table.row_count:
            table.move_cursor(row=min(max(cursor, 0), table.row_count - 1))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playhead",
        description="Terminal music player with A/B looping and synced lyrics.",
        epilog=build_help_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_runtime_arguments(parser)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
            console=False,
        )
        logger.info("Starting playhead TUI")
        PlayheadApp(
            sources=args.sources,
            backend_name=normalize_backend_name(args.backend),
            lyrics_dirs=resolve_lyrics_dirs(args.lyrics_dir),
            poll_interval_s=clamp_poll_interval(args.poll_interval),
        ).run()
        return 0
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Fatal startup error: %s", exc)
        print(
            "Startup failed. Verify backend and log paths, re-run with --verbose.",
            file=sys.stderr,
        )
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
