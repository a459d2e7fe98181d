"""Monotonic generation tags for discarding superseded async results.

Every poll, fetch, and backend subscription records the generation that was
current when it was issued. When the result resolves, the holder compares the
tag with the live counter and drops the result if a newer generation exists.
"""

from __future__ import annotations


class GenerationCounter:
    """Monotonically increasing marker shared by one owner."""

    def __init__(self) -> None:
        self._value = 0

    @property
    def current(self) -> int:
        return self._value

    def advance(self) -> int:
        """Invalidate every outstanding tag and return the new generation."""
        self._value += 1
        return self._value

    def is_current(self, generation: int) -> bool:
        return generation == self._value
