"""Source classification helpers shared by the CLI and track metadata reader."""

from __future__ import annotations

from pathlib import Path

LOCAL_AUDIO_EXTENSIONS = frozenset(
    {
        ".aac",
        ".aiff",
        ".flac",
        ".m4a",
        ".mka",
        ".mp3",
        ".ogg",
        ".opus",
        ".wav",
        ".wma",
    }
)
"""Suffixes the local engine is expected to decode."""

STREAM_SCHEMES = ("http://", "https://")


def is_supported_audio_file(path: Path) -> bool:
    return path.suffix.lower() in LOCAL_AUDIO_EXTENSIONS


def is_stream_ref(ref: str) -> bool:
    """Return whether `ref` names a network stream rather than a file."""
    return ref.strip().lower().startswith(STREAM_SCHEMES)
