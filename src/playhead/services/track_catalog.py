"""Session-scoped ordered playlist of immutable tracks.

`TrackCatalog` is the only owner of the track sequence. The transport refers to
tracks by index and never keeps copies, so catalog order is the playlist order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

TrackKind = Literal["local", "remote"]
UNKNOWN_ARTIST = "Unknown Artist"


@dataclass(frozen=True)
class TrackDescriptor:
    """Finished track description handed over by metadata/search providers."""

    title: str
    artist: str
    source_ref: str
    kind: TrackKind
    artwork_ref: str | None = None
    duration_hint: float | None = None


@dataclass(frozen=True)
class Track:
    """Catalog entry; immutable once added."""

    id: int
    title: str
    artist: str
    source_ref: str
    kind: TrackKind
    duration_hint: float | None = None
    artwork_ref: str | None = None


class TrackCatalog:
    """Owns the ordered track sequence for one session."""

    def __init__(self, descriptors: Iterable[TrackDescriptor] = ()) -> None:
        self._tracks: list[Track] = []
        self._next_id = 1
        for descriptor in descriptors:
            self.add(descriptor)

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(tuple(self._tracks))

    def __getitem__(self, index: int) -> Track:
        if not 0 <= index < len(self._tracks):
            raise IndexError(f"track index {index} out of range")
        return self._tracks[index]

    def get(self, index: int) -> Track | None:
        if 0 <= index < len(self._tracks):
            return self._tracks[index]
        return None

    def add(self, descriptor: TrackDescriptor) -> int:
        """Append one track and return its index."""
        track = Track(
            id=self._next_id,
            title=descriptor.title.strip() or descriptor.source_ref,
            artist=descriptor.artist.strip() or UNKNOWN_ARTIST,
            source_ref=descriptor.source_ref,
            kind=descriptor.kind,
            duration_hint=_positive_or_none(descriptor.duration_hint),
            artwork_ref=descriptor.artwork_ref,
        )
        self._next_id += 1
        self._tracks.append(track)
        return len(self._tracks) - 1

    def extend(
        self, descriptors: Iterable[TrackDescriptor], *, sort_by_title: bool = False
    ) -> int | None:
        """Append a batch and return the index of its first track, if any."""
        batch = list(descriptors)
        if sort_by_title:
            batch.sort(key=lambda item: item.title.casefold())
        if not batch:
            return None
        first_index = len(self._tracks)
        for descriptor in batch:
            self.add(descriptor)
        logger.debug("Catalog extended by %d tracks (total=%d)", len(batch), len(self))
        return first_index

    def index_of(self, track_id: int) -> int | None:
        for index, track in enumerate(self._tracks):
            if track.id == track_id:
                return index
        return None

    def search(self, query: str) -> list[Track]:
        """Return tracks whose title or artist contains the query."""
        needle = query.strip().casefold()
        if not needle:
            return []
        return [
            track
            for track in self._tracks
            if needle in track.title.casefold() or needle in track.artist.casefold()
        ]


def _positive_or_none(value: float | None) -> float | None:
    if value is None or value <= 0:
        return None
    return float(value)
