"""Track discovery: catalog matching plus a chain of alternate strategies.

Search never raises to its caller. Remote strategies are tried in order and a
strategy that raises simply rotates to the next one; when every strategy fails
and nothing matched locally the result is marked failed. Each search is tagged
with a generation so a slow answer to an older query can be recognized.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from playhead.media_formats import is_supported_audio_file
from playhead.services.track_catalog import Track, TrackCatalog, TrackDescriptor
from playhead.services.track_metadata import describe_source
from playhead.utils.generation import GenerationCounter

logger = logging.getLogger(__name__)

SearchStrategy = Callable[[str], Awaitable[Sequence[TrackDescriptor]]]


@dataclass(frozen=True)
class SearchResult:
    query: str
    local_matches: tuple[Track, ...] = ()
    remote_results: tuple[TrackDescriptor, ...] = ()
    failed: bool = False
    reason: str | None = None
    generation: int = 0
    stale: bool = False


class TrackSearchService:
    """Runs catalog and strategy searches for a free-text query."""

    def __init__(
        self, catalog: TrackCatalog, strategies: Iterable[SearchStrategy] = ()
    ) -> None:
        self._catalog = catalog
        self._strategies = list(strategies)
        self._generations = GenerationCounter()

    async def search(self, query: str) -> SearchResult:
        generation = self._generations.advance()
        query = query.strip()
        if not query:
            return SearchResult(query=query, generation=generation)
        local_matches = tuple(self._catalog.search(query))
        remote: tuple[TrackDescriptor, ...] = ()
        succeeded = not self._strategies
        errors: list[str] = []
        for strategy in self._strategies:
            try:
                found = await strategy(query)
            except Exception as exc:
                name = getattr(strategy, "__name__", type(strategy).__name__)
                logger.warning("Search strategy %s failed: %s", name, exc)
                errors.append(str(exc) or type(exc).__name__)
                continue
            remote = tuple(found)
            succeeded = True
            break
        failed = not succeeded and not local_matches
        reason = None
        if failed:
            reason = "All search providers failed."
            if errors:
                reason = f"{reason} Last error: {errors[-1]}"
        stale = not self._generations.is_current(generation)
        if stale:
            logger.debug("Search for %r superseded (generation=%s)", query, generation)
        return SearchResult(
            query=query,
            local_matches=local_matches,
            remote_results=remote,
            failed=failed,
            reason=reason,
            generation=generation,
            stale=stale,
        )


class LibrarySearchStrategy:
    """Search strategy matching audio file names under library folders."""

    __name__ = "library"

    def __init__(self, directories: Iterable[Path | str], *, limit: int = 25) -> None:
        self._directories = [Path(d) for d in directories]
        self._limit = limit

    async def __call__(self, query: str) -> Sequence[TrackDescriptor]:
        return await asyncio.to_thread(self._search_blocking, query)

    def _search_blocking(self, query: str) -> list[TrackDescriptor]:
        needle = query.casefold()
        results: list[TrackDescriptor] = []
        for directory in self._directories:
            if not directory.is_dir():
                raise FileNotFoundError(f"Library folder not found: {directory}")
            for path in sorted(directory.rglob("*")):
                if not path.is_file() or not is_supported_audio_file(path):
                    continue
                if needle not in path.stem.casefold():
                    continue
                descriptor = describe_source(str(path))
                if descriptor is not None:
                    results.append(descriptor)
                if len(results) >= self._limit:
                    return results
        return results
