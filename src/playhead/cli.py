"""Headless command-line runner for playhead.

Plays the given sources in order through to the end of the playlist, printing
track changes and synced lyric lines, then exits.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .events import LyricLineChanged, PlaybackStateChanged, TrackChanged
from .logging_utils import setup_logging
from .paths import log_dir, lyrics_dir
from .runtime_config import (
    BACKEND_NAMES,
    clamp_poll_interval,
    normalize_backend_name,
    resolve_log_level,
)
from .services.backend_factory import build_backends, build_lyrics_service
from .services.track_catalog import TrackCatalog
from .services.track_metadata import describe_sources
from .services.transport_controller import TransportController
from .version import build_help_epilog

logger = logging.getLogger(__name__)


def add_runtime_arguments(parser: argparse.ArgumentParser) -> None:
    """Flags shared by the TUI and headless entrypoints."""
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "sources", nargs="*", help="Audio files, folders, or http(s) stream URLs"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument(
        "--backend",
        choices=BACKEND_NAMES,
        help="Playback backend family to use (fake or vlc).",
    )
    parser.add_argument(
        "--lyrics-dir",
        action="append",
        default=None,
        help="Folder with .lrc/.txt lyric files (repeatable)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=0.5,
        help="Remote stream poll interval in seconds (max 0.5)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playhead-cli",
        description="Play audio files and streams headlessly with lyric output.",
        epilog=build_help_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_runtime_arguments(parser)
    return parser


def resolve_lyrics_dirs(values: list[str] | None) -> list[Path]:
    if values:
        return [Path(value).expanduser() for value in values]
    return [lyrics_dir()]


class HeadlessRunner:
    """Drives a controller until the playlist stops, echoing progress."""

    def __init__(self, *, backend_name: str, poll_interval_s: float) -> None:
        self._backend_name = backend_name
        self._poll_interval_s = poll_interval_s
        self._finished = asyncio.Event()
        self._pending: set[asyncio.Task[None]] = set()
        self.controller: TransportController | None = None

    async def run(self, sources: list[str], lyrics_dirs: list[Path]) -> int:
        descriptors = await describe_sources(sources)
        if not descriptors:
            print("No playable sources given.", file=sys.stderr)
            return 2
        controller = await self._start_controller(lyrics_dirs)
        try:
            await controller.add_tracks(descriptors, autoplay=True)
            await self._finished.wait()
        finally:
            await controller.shutdown()
        return 0

    async def _start_controller(self, lyrics_dirs: list[Path]) -> TransportController:
        controller = self._build_controller(self._backend_name, lyrics_dirs)
        try:
            await controller.start()
        except Exception as exc:
            if self._backend_name == "fake":
                raise
            logger.exception("Failed to start %s backend: %s", self._backend_name, exc)
            print("VLC backend unavailable; using fake backend.", file=sys.stderr)
            await controller.shutdown()
            controller = self._build_controller("fake", lyrics_dirs)
            await controller.start()
        self.controller = controller
        return controller

    def _build_controller(
        self, backend_name: str, lyrics_dirs: list[Path]
    ) -> TransportController:
        return TransportController(
            emit_event=self._handle_event,
            catalog=TrackCatalog(),
            backends=build_backends(
                backend_name, poll_interval_s=self._poll_interval_s
            ),
            lyrics_service=build_lyrics_service(lyrics_dirs),
        )

    async def _handle_event(self, event: object) -> None:
        controller = self.controller
        if isinstance(event, TrackChanged) and event.track is not None:
            print(f"Now playing: {event.track.artist} - {event.track.title}")
        elif isinstance(event, LyricLineChanged) and controller is not None:
            lines = controller.lyric_sync.lines
            if controller.lyric_sync.synced and 0 <= event.index < len(lines):
                print(f"  {lines[event.index].text}")
        elif isinstance(event, PlaybackStateChanged):
            state = event.state
            if state.status == "stopped":
                self._finished.set()
            elif state.status == "error" and controller is not None:
                print(state.error or "Playback error.", file=sys.stderr)
                # Skip the broken track; stopping on the last one ends the run.
                task = asyncio.create_task(controller.next())
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
        )
        logger.info("Starting playhead CLI")
        runner = HeadlessRunner(
            backend_name=normalize_backend_name(args.backend),
            poll_interval_s=clamp_poll_interval(args.poll_interval),
        )
        return asyncio.run(
            runner.run(list(args.sources), resolve_lyrics_dirs(args.lyrics_dir))
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
