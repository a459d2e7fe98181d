"""Lyrics provider reading `.lrc` / `.txt` sidecar files from local folders.

Files are matched by a normalized stem, so `Artist - Title.lrc` and
`title.LRC` both resolve. A `.lrc` file supplies synced lyrics and a `.txt`
file with the same stem supplies plain lyrics.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from playhead.services.lyrics_service import LyricsRecord

logger = logging.getLogger(__name__)

LYRIC_SUFFIXES = (".lrc", ".txt")
_NON_WORD_RE = re.compile(r"[^\w]+", re.UNICODE)


@dataclass
class _SidecarEntry:
    lrc_path: Path | None = None
    txt_path: Path | None = None


def normalize_name(value: str) -> str:
    return " ".join(_NON_WORD_RE.sub(" ", value.lower()).split())


class SidecarLyricsProvider:
    def __init__(self, directories: Iterable[Path | str]) -> None:
        self._directories = [Path(d) for d in directories]
        self._index: dict[str, _SidecarEntry] | None = None

    async def get(self, *, artist: str, title: str) -> LyricsRecord | None:
        index = await self._ensure_index()
        keys = []
        if artist:
            keys.append(normalize_name(f"{artist} - {title}"))
        keys.append(normalize_name(title))
        for key in keys:
            entry = index.get(key)
            if entry is not None:
                return await asyncio.to_thread(_read_entry, entry)
        return None

    async def search(self, query: str) -> Sequence[LyricsRecord]:
        tokens = set(normalize_name(query).split())
        if not tokens:
            return []
        index = await self._ensure_index()
        scored: list[tuple[int, str]] = []
        for key in index:
            overlap = len(tokens & set(key.split()))
            if overlap:
                scored.append((overlap, key))
        scored.sort(key=lambda item: (-item[0], item[1]))
        records = []
        for _score, key in scored:
            records.append(await asyncio.to_thread(_read_entry, index[key]))
        return records

    def invalidate(self) -> None:
        self._index = None

    async def _ensure_index(self) -> dict[str, _SidecarEntry]:
        if self._index is None:
            self._index = await asyncio.to_thread(_build_index, self._directories)
            logger.debug("Indexed %d lyric sidecar stems", len(self._index))
        return self._index


def _build_index(directories: Sequence[Path]) -> dict[str, _SidecarEntry]:
    index: dict[str, _SidecarEntry] = {}
    for directory in directories:
        if not directory.is_dir():
            logger.warning("Lyrics directory not found: %s", directory)
            continue
        for path in sorted(directory.rglob("*")):
            suffix = path.suffix.lower()
            if suffix not in LYRIC_SUFFIXES or not path.is_file():
                continue
            entry = index.setdefault(normalize_name(path.stem), _SidecarEntry())
            if suffix == ".lrc" and entry.lrc_path is None:
                entry.lrc_path = path
            elif suffix == ".txt" and entry.txt_path is None:
                entry.txt_path = path
    return index


def _read_entry(entry: _SidecarEntry) -> LyricsRecord:
    return LyricsRecord(
        synced_lyrics=_read_text(entry.lrc_path),
        plain_lyrics=_read_text(entry.txt_path),
    )


def _read_text(path: Path | None) -> str | None:
    if path is None:
        return None
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Failed to read lyrics file %s: %s", path, exc)
        return None
