"""Turn file paths and stream URLs into track descriptors (mutagen-backed)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import unquote, urlsplit

from mutagen import File as MutagenFile

from playhead.media_formats import is_stream_ref, is_supported_audio_file
from playhead.services.track_catalog import UNKNOWN_ARTIST, TrackDescriptor

logger = logging.getLogger(__name__)


def describe_source(ref: str) -> TrackDescriptor | None:
    """Build a descriptor for `ref`, or return None for unsupported files."""
    if is_stream_ref(ref):
        return _describe_stream(ref)
    path = Path(ref).expanduser()
    if not is_supported_audio_file(path):
        logger.debug("Skipping unsupported source %s", ref)
        return None
    title, artist, duration = _read_tags(path)
    return TrackDescriptor(
        title=title or path.stem,
        artist=artist or UNKNOWN_ARTIST,
        source_ref=str(path),
        kind="local",
        duration_hint=duration,
    )


async def describe_sources(
    refs: Iterable[str], *, concurrency: int = 4
) -> list[TrackDescriptor]:
    """Describe many sources off the event loop, preserving input order."""
    semaphore = asyncio.Semaphore(concurrency)

    async def _one(ref: str) -> TrackDescriptor | None:
        async with semaphore:
            return await asyncio.to_thread(describe_source, ref)

    results = await asyncio.gather(*(_one(ref) for ref in expand_sources(refs)))
    return [desc for desc in results if desc is not None]


def expand_sources(refs: Iterable[str]) -> list[str]:
    """Replace directories with the supported audio files found beneath them."""
    expanded: list[str] = []
    for ref in refs:
        if is_stream_ref(ref):
            expanded.append(ref)
            continue
        path = Path(ref).expanduser()
        if path.is_dir():
            expanded.extend(
                str(child)
                for child in sorted(path.rglob("*"))
                if child.is_file() and is_supported_audio_file(child)
            )
        else:
            expanded.append(ref)
    return expanded


def _describe_stream(ref: str) -> TrackDescriptor:
    parts = urlsplit(ref)
    name = unquote(Path(parts.path).stem) if parts.path not in {"", "/"} else ""
    return TrackDescriptor(
        title=name or parts.netloc or ref,
        artist=UNKNOWN_ARTIST,
        source_ref=ref,
        kind="remote",
    )


def _read_tags(path: Path) -> tuple[str | None, str | None, float | None]:
    try:
        audio = MutagenFile(path, easy=True)
    except Exception as exc:
        logger.warning("Failed to read tags for %s: %s", path, exc)
        return None, None, None
    if audio is None:
        return None, None, None
    tags = audio.tags or {}
    length = getattr(audio.info, "length", None)
    duration = None
    if isinstance(length, (int, float)) and length > 0:
        duration = float(length)
    return _first_tag(tags, "title"), _first_tag(tags, "artist"), duration


def _first_tag(tags: object, key: str) -> str | None:
    getter = getattr(tags, "get", None)
    if getter is None:
        return None
    value = getter(key)
    if isinstance(value, list) and value:
        value = value[0]
    if value is None:
        return None
    text = str(value).strip()
    return text or None
