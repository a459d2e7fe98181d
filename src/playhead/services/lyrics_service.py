"""Lyrics lookup with a ranked fallback chain over a pluggable provider.

Titles coming from remote sources are noisy ("Artist - Song (Official Video)"),
so lookup degrades from an exact artist/title match to progressively looser
searches. The first strategy that yields a record wins; a strategy that raises
is logged and skipped. Not finding lyrics is a status, never an exception.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from playhead.services.lyrics_parser import LyricLine, parse_lrc, plain_lyrics
from playhead.services.track_catalog import UNKNOWN_ARTIST

logger = logging.getLogger(__name__)

NO_SONG_LOADED = "No song loaded"
NOT_FOUND = "Lyrics not found"
EMPTY_CONTENT = "Lyrics not found (empty content)"

_BRACKETED_RE = re.compile(r"\(.*\)|\[.*\]")
_CLUTTER_RE = re.compile(
    r"- topic|official video|official audio|lyrics|official|video|audio",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class LyricsRecord:
    """Raw lyric payload returned by a provider."""

    synced_lyrics: str | None = None
    plain_lyrics: str | None = None


class LyricsProvider(Protocol):
    async def get(self, *, artist: str, title: str) -> LyricsRecord | None: ...

    async def search(self, query: str) -> Sequence[LyricsRecord]: ...


@dataclass(frozen=True)
class LyricsResult:
    lines: tuple[LyricLine, ...]
    synced: bool
    strategy: str


@dataclass(frozen=True)
class LyricsStatus:
    """Lookup outcome that carries no lines, only a message for the user."""

    message: str


def clean_title(title: str) -> str:
    """Strip bracketed segments, pipe suffixes, and upload clutter words."""
    cleaned = _BRACKETED_RE.sub("", title)
    cleaned = cleaned.split("|")[0]
    cleaned = _CLUTTER_RE.sub("", cleaned)
    return cleaned.strip()


class LyricsService:
    """Resolves lyric lines for an (artist, title) pair."""

    def __init__(self, provider: LyricsProvider) -> None:
        self._provider = provider

    async def fetch(self, artist: str, title: str) -> LyricsResult | LyricsStatus:
        if not title or not title.strip():
            return LyricsStatus(NO_SONG_LOADED)
        known_artist = "" if artist == UNKNOWN_ARTIST else (artist or "").strip()
        cleaned = clean_title(title)

        strategies: list[tuple[str, Callable[[], Awaitable[LyricsRecord | None]]]] = [
            ("exact", lambda: self._provider.get(artist=known_artist, title=cleaned)),
            ("search", lambda: self._first(f"{known_artist} {cleaned}".strip())),
        ]
        if "-" in title:
            left, _, right = title.partition("-")
            split_query = f"{left.strip()} {clean_title(right).strip()}"
            strategies.append(("split", lambda: self._first(split_query)))
        strategies.append(("title", lambda: self._first(cleaned)))

        for name, strategy in strategies:
            try:
                record = await strategy()
            except Exception as exc:
                logger.warning("Lyrics strategy %s failed: %s", name, exc)
                continue
            if record is None:
                continue
            logger.info("Lyrics found for %r using %s strategy", title, name)
            return _to_result(record, name)
        logger.info("Lyrics not found for %r", title)
        return LyricsStatus(NOT_FOUND)

    async def _first(self, query: str) -> LyricsRecord | None:
        if not query:
            return None
        results = await self._provider.search(query)
        return results[0] if results else None


def _to_result(record: LyricsRecord, strategy: str) -> LyricsResult | LyricsStatus:
    # Synced text with no usable timestamps degrades to the plain body.
    synced = tuple(parse_lrc(record.synced_lyrics or ""))
    if synced:
        return LyricsResult(synced, True, strategy)
    plain = tuple(plain_lyrics(record.plain_lyrics or ""))
    if plain:
        return LyricsResult(plain, False, strategy)
    return LyricsStatus(EMPTY_CONTENT)
