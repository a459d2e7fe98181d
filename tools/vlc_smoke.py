"""Manual smoke run of the libVLC backends against a real file or stream URL."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from playhead.services.backend_factory import build_backends  # noqa: E402
from playhead.services.playback_backend import (  # noqa: E402
    LoopRegion,
    RegionLoopControl,
)
from playhead.services.track_catalog import TrackCatalog  # noqa: E402
from playhead.services.track_metadata import describe_source  # noqa: E402


async def _run(source: str, seconds: float, region: LoopRegion | None) -> int:
    descriptor = describe_source(source)
    if descriptor is None:
        print(f"Unsupported source: {source}", file=sys.stderr)
        return 2
    track = TrackCatalog([descriptor])[0]
    backend = build_backends("vlc")[track.kind]

    async def _handler(event) -> None:
        print(event)

    backend.set_event_handler(_handler)
    await backend.start()
    try:
        await backend.load(track)
        if region is not None and isinstance(backend, RegionLoopControl):
            await backend.set_loop_region(region)
            await backend.seek(region.start_s)
        await backend.play()
        await asyncio.sleep(seconds)
        await backend.pause()
    finally:
        await backend.shutdown()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="libVLC backend smoke test.")
    parser.add_argument("source", help="Audio file path or http(s) stream URL.")
    parser.add_argument("--seconds", type=float, default=5.0)
    parser.add_argument(
        "--region",
        nargs=2,
        type=float,
        metavar=("START", "END"),
        help="Loop this region (local files only).",
    )
    args = parser.parse_args()
    region = LoopRegion(*args.region) if args.region else None
    return asyncio.run(_run(args.source, args.seconds, region))


if __name__ == "__main__":
    raise SystemExit(main())
