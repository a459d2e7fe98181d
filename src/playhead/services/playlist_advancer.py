"""Pure next/previous index decisions under a loop mode."""

from __future__ import annotations

from typing import Literal

LoopMode = Literal["off", "one", "all"]
Direction = Literal["next", "previous"]


def advance(
    catalog_length: int,
    current_index: int,
    loop_mode: LoopMode,
    direction: Direction,
) -> int | None:
    """Return the index to move to, or None at the end of a non-looping list.

    `loop_mode == "one"` behaves like `"off"` here: repeating a single track
    only applies to natural end-of-track handling, never to manual navigation.
    """
    if catalog_length <= 0:
        return None
    wrap = loop_mode == "all"
    last = catalog_length - 1
    if direction == "next":
        if current_index >= last:
            return 0 if wrap else None
        return max(0, current_index + 1)
    if current_index <= 0:
        return last if wrap else 0
    return current_index - 1


def next_index(
    catalog_length: int, current_index: int, loop_mode: LoopMode
) -> int | None:
    return advance(catalog_length, current_index, loop_mode, "next")


def previous_index(
    catalog_length: int, current_index: int, loop_mode: LoopMode
) -> int | None:
    return advance(catalog_length, current_index, loop_mode, "previous")
