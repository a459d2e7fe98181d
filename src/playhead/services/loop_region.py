"""A/B loop region ownership.

`LoopRegionManager` is the single owner of the (at most one) active loop
region. Every gesture either replaces the region wholesale or moves one of its
boundaries; the armed region is pushed to the active backend through the
optional region-loop capability. Backends without that capability turn every
gesture into a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from playhead.services.playback_backend import (
    LoopRegion,
    RegionLoopControl,
)

logger = logging.getLogger(__name__)

DEFAULT_SPAN_S = 10.0


class LoopRegionManager:
    """Owns the singleton loop region and arms it on the active backend."""

    def __init__(
        self,
        *,
        default_span_s: float = DEFAULT_SPAN_S,
        start_region_playback: Callable[[LoopRegion], Awaitable[None]] | None = None,
        on_region_changed: Callable[[LoopRegion | None], Awaitable[None]]
        | None = None,
    ) -> None:
        if default_span_s <= 0:
            raise ValueError("default_span_s must be > 0")
        self._default_span_s = default_span_s
        self._start_region_playback = start_region_playback
        self._on_region_changed = on_region_changed
        self._backend: RegionLoopControl | None = None
        self._region: LoopRegion | None = None

    @property
    def region(self) -> LoopRegion | None:
        return self._region

    @property
    def enabled(self) -> bool:
        return self._backend is not None

    async def attach(self, backend: object | None) -> None:
        """Bind to a newly activated backend; any old region is dropped."""
        had_region = self._region is not None
        self._region = None
        self._backend = backend if isinstance(backend, RegionLoopControl) else None
        if had_region:
            await self._notify()

    async def set_boundary_a(self, current_time_s: float, duration_s: float) -> None:
        """Create a region starting here, or move the existing start here."""
        if self._backend is None:
            return
        start = _clamp_to_duration(current_time_s, duration_s)
        if self._region is None:
            end = _clamp_to_duration(start + self._default_span_s, duration_s)
            await self.create(start, end, duration_s)
            return
        end = self._region.end_s
        if end <= start:
            end = _clamp_to_duration(start + self._default_span_s, duration_s)
        if end <= start:
            logger.debug("Boundary A at %.3fs leaves no room for a region", start)
            return
        await self._install(LoopRegion(start, end))

    async def set_boundary_b(self, current_time_s: float, duration_s: float) -> None:
        """Create a region ending here, or move the existing end here."""
        if self._backend is None:
            return
        end = _clamp_to_duration(current_time_s, duration_s)
        if self._region is None:
            await self.create(0.0, end, duration_s)
            return
        if end <= self._region.start_s:
            return
        region = LoopRegion(self._region.start_s, end)
        await self._install(region)
        await self._begin_playback(region)

    async def create(self, start_s: float, end_s: float, duration_s: float) -> None:
        """Replace any region with a new one and start looping it."""
        if self._backend is None:
            return
        region = _normalized(start_s, end_s, duration_s)
        if region is None:
            logger.debug("Ignoring empty loop region %.3f-%.3f", start_s, end_s)
            return
        await self._install(region)
        await self._begin_playback(region)

    async def update(self, start_s: float, end_s: float, duration_s: float) -> None:
        """Apply a completed drag/resize of the current region."""
        if self._backend is None or self._region is None:
            return
        region = _normalized(start_s, end_s, duration_s)
        if region is None:
            return
        await self._install(region)

    async def clear(self) -> None:
        """Remove the region and restore unrestricted playback."""
        if self._region is None:
            return
        self._region = None
        if self._backend is not None:
            await self._backend.set_loop_region(None)
        logger.debug("Loop region cleared")
        await self._notify()

    async def _install(self, region: LoopRegion) -> None:
        self._region = region
        if self._backend is not None:
            await self._backend.set_loop_region(region)
        logger.debug("Loop region armed %.3f-%.3f", region.start_s, region.end_s)
        await self._notify()

    async def _begin_playback(self, region: LoopRegion) -> None:
        if self._start_region_playback is not None:
            await self._start_region_playback(region)

    async def _notify(self) -> None:
        if self._on_region_changed is not None:
            await self._on_region_changed(self._region)


def _clamp_to_duration(value: float, duration_s: float) -> float:
    value = max(0.0, value)
    if duration_s > 0:
        return min(value, duration_s)
    return value


def _normalized(start_s: float, end_s: float, duration_s: float) -> LoopRegion | None:
    start = _clamp_to_duration(min(start_s, end_s), duration_s)
    end = _clamp_to_duration(max(start_s, end_s), duration_s)
    if end <= start:
        return None
    return LoopRegion(start, end)
